# spentiva/schemas/upload.py
from typing import List, Optional

from pydantic import BaseModel, Field


class Base64File(BaseModel):
    fileName: str = Field(..., min_length=1, max_length=255)
    mimeType: Optional[str] = Field(None, max_length=100)
    data: str = Field(..., min_length=1)


class Base64Upload(BaseModel):
    files: List[Base64File] = Field(..., min_length=1)
