# spentiva/schemas/category.py
from pydantic import BaseModel, Field
from typing import List, Optional


class SubcategoryIn(BaseModel):
    id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=150)


class CategoryCreate(BaseModel):
    trackerId: int
    name: str = Field(..., min_length=1, max_length=150)
    subcategories: List[SubcategoryIn] = []


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    subcategories: Optional[List[SubcategoryIn]] = None
