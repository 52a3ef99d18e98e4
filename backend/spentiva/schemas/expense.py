# spentiva/schemas/expense.py
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from spentiva.db.models import ExpenseType


class ExpenseBatchCreate(BaseModel):
    trackerId: int
    # rows are checked one by one so errors can name the failing index
    expenses: Any = None


class ExpenseUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, ge=0)
    category: Optional[str] = Field(None, min_length=1, max_length=150)
    subcategory: Optional[str] = Field(None, min_length=1, max_length=150)
    categoryId: Optional[int] = None
    type: Optional[ExpenseType] = None
    paymentMethod: Optional[str] = Field(None, max_length=100)
    creditFrom: Optional[str] = Field(None, max_length=150)
    currency: Optional[str] = Field(None, max_length=10)
    description: Optional[str] = None
    timestamp: Optional[datetime] = None


class BulkDelete(BaseModel):
    ids: List[int] = Field(..., min_length=1)


class ParseRequest(BaseModel):
    input: str = Field(..., min_length=1, max_length=2000)
    trackerId: int
