# spentiva/schemas/tracker.py
from pydantic import BaseModel, EmailStr, Field
from typing import Literal, Optional

from spentiva.db.models import CurrencyCode, ShareRole, TrackerType


class TrackerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    type: TrackerType
    currency: CurrencyCode = CurrencyCode.INR
    description: Optional[str] = Field(None, max_length=500)
    botImage: Optional[str] = Field(None, max_length=1024)


class TrackerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    type: Optional[TrackerType] = None
    currency: Optional[CurrencyCode] = None
    description: Optional[str] = Field(None, max_length=500)
    botImage: Optional[str] = Field(None, max_length=1024)


class DeleteConfirm(BaseModel):
    otp: str = Field(..., pattern=r"^\d{6}$")


class ShareCreate(BaseModel):
    email: EmailStr
    role: ShareRole = ShareRole.editor


class ShareEmail(BaseModel):
    email: EmailStr


class InviteResponse(BaseModel):
    action: Literal["accept", "reject"]
