# spentiva/schemas/usage_log.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from spentiva.db.models import MessageRole


class TrackerSnapshot(BaseModel):
    trackerId: int
    trackerName: str = Field(..., min_length=1, max_length=150)
    trackerType: str = Field(..., min_length=1, max_length=20)
    isDeleted: bool = False
    deletedAt: Optional[datetime] = None


class UsageLogCreate(BaseModel):
    trackerSnapshot: TrackerSnapshot
    messageRole: MessageRole
    messageContent: str = Field(..., min_length=1)
    tokenCount: int = Field(0, ge=0)
    timestamp: Optional[datetime] = None
