# spentiva/schemas/analytics.py
from typing import Optional

from pydantic import BaseModel, EmailStr


class EmailReportRequest(BaseModel):
    trackerId: Optional[int] = None
    filter: Optional[str] = None
    customStart: Optional[str] = None
    customEnd: Optional[str] = None
    email: Optional[EmailStr] = None
