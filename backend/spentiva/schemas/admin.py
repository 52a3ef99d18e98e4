# spentiva/schemas/admin.py
from typing import Optional

from pydantic import BaseModel, Field

from spentiva.db.models import AccountType, UserRole


class AdminUserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    role: Optional[UserRole] = None
    accountType: Optional[AccountType] = None
    emailVerified: Optional[bool] = None
