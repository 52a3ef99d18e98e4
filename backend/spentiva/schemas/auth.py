# spentiva/schemas/auth.py
from pydantic import BaseModel, EmailStr, Field
from typing import Optional

from spentiva.db.models import AccountType


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    email: EmailStr
    password: str = Field(..., min_length=6)
    accountType: Optional[AccountType] = None


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class EmailOnly(BaseModel):
    email: EmailStr


class VerifyEmail(BaseModel):
    email: EmailStr
    otp: str = Field(..., pattern=r"^\d{6}$")


class ResetPassword(BaseModel):
    email: EmailStr
    otp: str = Field(..., pattern=r"^\d{6}$")
    newPassword: str = Field(..., min_length=6)
    confirmPassword: str = Field(..., min_length=6)


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
