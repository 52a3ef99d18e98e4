# spentiva/schemas/refund.py
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from spentiva.db.models import RefundStatus


class RefundCreate(BaseModel):
    refundId: str = Field(..., min_length=1, max_length=100)
    paymentId: str = Field(..., min_length=1, max_length=100)
    refundAmount: Decimal = Field(..., ge=Decimal("0.01"))
    refundReason: str = Field(..., min_length=1, max_length=1000)


class RefundStatusUpdate(BaseModel):
    status: RefundStatus
    refundDate: Optional[datetime] = None
