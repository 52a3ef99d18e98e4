# spentiva/schemas/payment.py
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from spentiva.db.models import CurrencyCode, PaymentState


class PaymentMethod(str, Enum):
    credit_card = "Credit Card"
    debit_card = "Debit Card"
    upi = "UPI"
    net_banking = "Net Banking"
    wallet = "Wallet"
    other = "Other"


class UserSelectedPlan(str, Enum):
    pro = "pro"
    businesspro = "businesspro"


class PlanDuration(str, Enum):
    monthly = "monthly"
    yearly = "yearly"


class PaymentType(str, Enum):
    onetime = "onetime"
    subscription = "subscription"


class CardStore(BaseModel):
    token: Optional[str] = Field(None, max_length=255)
    last4: Optional[str] = Field(None, min_length=4, max_length=4)
    brand: Optional[str] = Field(None, max_length=50)
    expiryMonth: Optional[int] = Field(None, ge=1, le=12)
    expiryYear: Optional[int] = Field(None, ge=2000, le=2100)


class PaymentCreate(BaseModel):
    paymentId: str = Field(..., min_length=1, max_length=100)
    userId: Optional[int] = None
    paymentUsing: PaymentMethod
    cardStore: Optional[CardStore] = None
    userSelectedPlan: UserSelectedPlan
    planDuration: PlanDuration
    discount: Decimal = Field(Decimal("0"), ge=0)
    couponCode: Optional[str] = Field(None, max_length=50)
    paymentCountry: str = Field(..., min_length=2, max_length=2)
    amount: Decimal = Field(..., ge=Decimal("0.01"))
    currency: CurrencyCode
    paymentType: PaymentType


class PaymentStateUpdate(BaseModel):
    state: PaymentState
    reason: str = Field(..., min_length=1, max_length=500)
