# spentiva/api/v1/payments.py
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from spentiva.api.v1.deps import get_current_user, get_db_dep, is_admin, require_admin
from spentiva.core.responses import bad_request, not_found, success_response
from spentiva.db import models
from spentiva.schemas.payment import PaymentCreate, PaymentStateUpdate, UserSelectedPlan
from spentiva.services.analytics import parse_bound

logger = logging.getLogger(__name__)
router = APIRouter(tags=["payment"])

PAYMENT_NOT_FOUND = "Payment not found"

TERMINAL_STATES = {
    models.PaymentState.success,
    models.PaymentState.failed,
    models.PaymentState.expired,
    models.PaymentState.cancelled,
}
PENDING_STATES = (models.PaymentState.initiated, models.PaymentState.processing)


def payment_to_dict(p: models.Payment) -> Dict[str, Any]:
    card = None
    if p.card_token or p.card_last4:
        card = {
            "token": p.card_token,
            "last4": p.card_last4,
            "brand": p.card_brand,
            "expiryMonth": p.card_expiry_month,
            "expiryYear": p.card_expiry_year,
        }
    return {
        "id": p.id,
        "paymentId": p.payment_id,
        "userId": p.user_id,
        "paymentUsing": p.payment_using,
        "cardStore": card,
        "userSelectedPlan": p.user_selected_plan.value,
        "planDuration": p.plan_duration,
        "discount": float(p.discount or 0),
        "couponCode": p.coupon_code,
        "paymentCountry": p.payment_country,
        "amount": float(p.amount),
        "currency": p.currency.value,
        "paymentState": p.payment_state.value,
        "paymentStateReason": p.payment_state_reason,
        "paymentType": p.payment_type,
        "paymentDate": p.payment_date.isoformat() if p.payment_date else None,
        "createdAt": p.created_at.isoformat() if p.created_at else None,
        "updatedAt": p.updated_at.isoformat() if p.updated_at else None,
    }


def _forbidden():
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only access your own payments")


def get_owned_payment(db: Session, payment_id: str, user: models.User) -> models.Payment:
    payment = db.query(models.Payment).filter(models.Payment.payment_id == payment_id).first()
    # someone else's payment looks the same as a missing one
    if not payment or (payment.user_id != user.id and not is_admin(user)):
        raise not_found(PAYMENT_NOT_FOUND)
    return payment


OWNER_STATES = {models.PaymentState.cancelled}


def check_transition(current: models.PaymentState, new: models.PaymentState, admin: bool) -> None:
    # settlement comes from the billing side; owners may only cancel
    if not admin and new not in OWNER_STATES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail=f"Only an admin can mark a payment as {new.value}"
        )
    if current not in TERMINAL_STATES or current == new:
        return
    if current == models.PaymentState.success and new == models.PaymentState.cancelled and admin:
        return
    raise bad_request(f"Cannot change payment state from {current.value} to {new.value}")


@router.post("/")
def create_payment(
    payload: PaymentCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    user_id = payload.userId or current_user.id
    if user_id != current_user.id and not is_admin(current_user):
        raise _forbidden()
    if db.query(models.Payment).filter(models.Payment.payment_id == payload.paymentId).first():
        raise bad_request("Payment with this ID already exists")
    if user_id != current_user.id and not db.query(models.User).filter(models.User.id == user_id).first():
        raise bad_request("User not found")

    card = payload.cardStore
    payment = models.Payment(
        payment_id=payload.paymentId,
        user_id=user_id,
        payment_using=payload.paymentUsing.value,
        card_token=card.token if card else None,
        card_last4=card.last4 if card else None,
        card_brand=card.brand if card else None,
        card_expiry_month=card.expiryMonth if card else None,
        card_expiry_year=card.expiryYear if card else None,
        user_selected_plan=models.AccountType(payload.userSelectedPlan.value),
        plan_duration=payload.planDuration.value,
        discount=payload.discount,
        coupon_code=payload.couponCode,
        payment_country=payload.paymentCountry.upper(),
        amount=payload.amount,
        currency=payload.currency,
        payment_type=payload.paymentType.value,
        payment_state=models.PaymentState.initiated,
        payment_state_reason="Payment initiated",
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    logger.info("Payment %s initiated for user %s", payment.payment_id, user_id)
    return success_response({"payment": payment_to_dict(payment)}, "Payment created successfully")


@router.get("/stats")
def payment_stats(
    userId: Optional[int] = Query(None),
    admin: models.User = Depends(require_admin),
    db: Session = Depends(get_db_dep),
):
    q = db.query(models.Payment.payment_state, func.count(models.Payment.id), func.sum(models.Payment.amount))
    if userId is not None:
        q = q.filter(models.Payment.user_id == userId)
    rows = q.group_by(models.Payment.payment_state).all()
    counts = {state: (count, amount) for state, count, amount in rows}

    def count_of(*states):
        return sum(counts.get(s, (0, 0))[0] for s in states)

    success_amount = counts.get(models.PaymentState.success, (0, 0))[1] or 0
    data = {
        "totalPayments": sum(c for c, _ in counts.values()),
        "totalAmount": round(float(success_amount), 2),
        "successPayments": count_of(models.PaymentState.success),
        "failedPayments": count_of(models.PaymentState.failed),
        "pendingPayments": count_of(*PENDING_STATES),
    }
    return success_response(data)


@router.get("/user/{user_id}")
def list_user_payments(
    user_id: int,
    state: Optional[models.PaymentState] = Query(None),
    planType: Optional[UserSelectedPlan] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    if user_id != current_user.id and not is_admin(current_user):
        raise _forbidden()
    q = db.query(models.Payment).filter(models.Payment.user_id == user_id)
    if state is not None:
        q = q.filter(models.Payment.payment_state == state)
    if planType is not None:
        q = q.filter(models.Payment.user_selected_plan == models.AccountType(planType.value))
    rows = q.order_by(models.Payment.created_at.desc(), models.Payment.id.desc()).limit(limit).all()
    return success_response({"payments": [payment_to_dict(p) for p in rows], "count": len(rows)})


@router.get("/")
def list_payments(
    state: Optional[models.PaymentState] = Query(None),
    planType: Optional[UserSelectedPlan] = Query(None),
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    skip: int = Query(0, ge=0),
    admin: models.User = Depends(require_admin),
    db: Session = Depends(get_db_dep),
):
    q = db.query(models.Payment)
    if state is not None:
        q = q.filter(models.Payment.payment_state == state)
    if planType is not None:
        q = q.filter(models.Payment.user_selected_plan == models.AccountType(planType.value))
    if startDate:
        q = q.filter(models.Payment.created_at >= parse_bound(startDate, end=False))
    if endDate:
        q = q.filter(models.Payment.created_at <= parse_bound(endDate, end=True))
    total = q.count()
    rows = q.order_by(models.Payment.created_at.desc(), models.Payment.id.desc()).offset(skip).limit(limit).all()
    return success_response({"payments": [payment_to_dict(p) for p in rows], "total": total, "count": len(rows)})


@router.post("/expire-pending")
def expire_pending_payments(
    expiryMinutes: int = Query(30, ge=1),
    admin: models.User = Depends(require_admin),
    db: Session = Depends(get_db_dep),
):
    cutoff = datetime.utcnow() - timedelta(minutes=expiryMinutes)
    expired = (
        db.query(models.Payment)
        .filter(models.Payment.payment_state.in_(PENDING_STATES), models.Payment.created_at < cutoff)
        .update(
            {
                "payment_state": models.PaymentState.expired,
                "payment_state_reason": f"Payment expired after {expiryMinutes} minutes",
                "updated_at": datetime.utcnow(),
            },
            synchronize_session=False,
        )
    )
    db.commit()
    if expired:
        logger.info("Expired %s pending payment(s)", expired)
    return success_response({"expiredCount": expired}, f"{expired} pending payment(s) expired")


@router.get("/{payment_id}")
def get_payment(payment_id: str, current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    return success_response({"payment": payment_to_dict(get_owned_payment(db, payment_id, current_user))})


@router.patch("/{payment_id}/state")
def update_payment_state(
    payment_id: str,
    payload: PaymentStateUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    payment = get_owned_payment(db, payment_id, current_user)
    check_transition(payment.payment_state, payload.state, is_admin(current_user))

    payment.payment_state = payload.state
    payment.payment_state_reason = payload.reason
    if payload.state == models.PaymentState.success:
        payment.payment_date = datetime.utcnow()
        # a completed purchase upgrades the account
        payment.user.account_type = payment.user_selected_plan
    db.commit()
    db.refresh(payment)
    logger.info("Payment %s moved to %s", payment.payment_id, payment.payment_state.value)
    return success_response({"payment": payment_to_dict(payment)}, "Payment state updated successfully")


@router.delete("/{payment_id}")
def delete_payment(payment_id: str, current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    payment = get_owned_payment(db, payment_id, current_user)
    db.delete(payment)
    db.commit()
    logger.info("Payment %s deleted by user %s", payment_id, current_user.id)
    return success_response({"paymentId": payment_id}, "Payment deleted successfully")
