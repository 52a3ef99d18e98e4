# spentiva/schemas/support.py
from typing import List

from pydantic import BaseModel, Field

from spentiva.db.models import TicketStatus, TicketType


class Attachment(BaseModel):
    fileId: str = Field(..., min_length=1)
    filePath: str = Field(..., min_length=1)
    fileName: str = Field(..., min_length=1)
    fileUrl: str = Field(..., min_length=1)


class TicketCreate(BaseModel):
    type: TicketType
    subject: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    attachments: List[Attachment] = []


class TicketStatusUpdate(BaseModel):
    status: TicketStatus


class TicketUpdateCreate(BaseModel):
    message: str = Field(..., min_length=1, max_length=5000)


