# spentiva/api/v1/refunds.py
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from spentiva.api.v1.deps import get_current_user, get_db_dep, is_admin, require_admin
from spentiva.core.responses import bad_request, not_found, success_response
from spentiva.db import models
from spentiva.schemas.refund import RefundCreate, RefundStatusUpdate
from spentiva.services.analytics import parse_bound

logger = logging.getLogger(__name__)
router = APIRouter(tags=["refund"])

OPEN_REFUND_STATES = (models.RefundStatus.initiated, models.RefundStatus.processing, models.RefundStatus.success)
PENDING_REFUND_STATES = (models.RefundStatus.initiated, models.RefundStatus.processing)


def refund_to_dict(r: models.Refund) -> Dict[str, Any]:
    return {
        "id": r.id,
        "refundId": r.refund_id,
        "paymentId": r.payment_id,
        "userId": r.user_id,
        "refundAmount": float(r.refund_amount),
        "refundReason": r.refund_reason,
        "refundStatus": r.refund_status.value,
        "refundDate": r.refund_date.isoformat() if r.refund_date else None,
        "createdAt": r.created_at.isoformat() if r.created_at else None,
        "updatedAt": r.updated_at.isoformat() if r.updated_at else None,
    }


def _get_refund(db: Session, refund_id: str, user: models.User) -> models.Refund:
    refund = db.query(models.Refund).filter(models.Refund.refund_id == refund_id).first()
    if not refund or (refund.user_id != user.id and not is_admin(user)):
        raise not_found("Refund not found")
    return refund


@router.post("/")
def create_refund(
    payload: RefundCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    payment = db.query(models.Payment).filter(models.Payment.payment_id == payload.paymentId).first()
    if not payment:
        raise bad_request("Payment not found")
    if payment.user_id != current_user.id and not is_admin(current_user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only refund your own payments")
    if payment.payment_state != models.PaymentState.success:
        raise bad_request("Only successful payments can be refunded")
    existing = (
        db.query(models.Refund)
        .filter(models.Refund.payment_id == payment.payment_id, models.Refund.refund_status.in_(OPEN_REFUND_STATES))
        .first()
    )
    if existing:
        raise bad_request("Refund already exists for this payment")
    if payload.refundAmount > payment.amount:
        raise bad_request("Refund amount cannot exceed payment amount")
    if db.query(models.Refund).filter(models.Refund.refund_id == payload.refundId).first():
        raise bad_request("Refund with this ID already exists")

    refund = models.Refund(
        refund_id=payload.refundId,
        payment_id=payment.payment_id,
        user_id=payment.user_id,
        refund_amount=payload.refundAmount,
        refund_reason=payload.refundReason,
        refund_status=models.RefundStatus.initiated,
    )
    db.add(refund)
    db.commit()
    db.refresh(refund)
    logger.info("Refund %s requested for payment %s", refund.refund_id, payment.payment_id)
    return success_response({"refund": refund_to_dict(refund)}, "Refund created successfully")


@router.get("/stats")
def refund_stats(admin: models.User = Depends(require_admin), db: Session = Depends(get_db_dep)):
    rows = (
        db.query(models.Refund.refund_status, func.count(models.Refund.id), func.sum(models.Refund.refund_amount))
        .group_by(models.Refund.refund_status)
        .all()
    )
    counts = {s: (c, amount) for s, c, amount in rows}
    success_amount = counts.get(models.RefundStatus.success, (0, 0))[1] or 0
    data = {
        "totalRefunds": sum(c for c, _ in counts.values()),
        "totalRefundAmount": round(float(success_amount), 2),
        "successRefunds": counts.get(models.RefundStatus.success, (0, 0))[0],
        "failedRefunds": counts.get(models.RefundStatus.failed, (0, 0))[0],
        "pendingRefunds": sum(counts.get(s, (0, 0))[0] for s in PENDING_REFUND_STATES),
    }
    return success_response(data)


@router.get("/payment/{payment_id}")
def list_payment_refunds(payment_id: str, current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    q = db.query(models.Refund).filter(models.Refund.payment_id == payment_id)
    if not is_admin(current_user):
        q = q.filter(models.Refund.user_id == current_user.id)
    rows = q.order_by(models.Refund.created_at.desc(), models.Refund.id.desc()).all()
    return success_response({"refunds": [refund_to_dict(r) for r in rows], "count": len(rows)})


@router.get("/user/{user_id}")
def list_user_refunds(
    user_id: int,
    status_filter: Optional[models.RefundStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=100),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    if user_id != current_user.id and not is_admin(current_user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only access your own refunds")
    q = db.query(models.Refund).filter(models.Refund.user_id == user_id)
    if status_filter is not None:
        q = q.filter(models.Refund.refund_status == status_filter)
    rows = q.order_by(models.Refund.created_at.desc(), models.Refund.id.desc()).limit(limit).all()
    return success_response({"refunds": [refund_to_dict(r) for r in rows], "count": len(rows)})


@router.get("/")
def list_refunds(
    status_filter: Optional[models.RefundStatus] = Query(None, alias="status"),
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    skip: int = Query(0, ge=0),
    admin: models.User = Depends(require_admin),
    db: Session = Depends(get_db_dep),
):
    q = db.query(models.Refund)
    if status_filter is not None:
        q = q.filter(models.Refund.refund_status == status_filter)
    if startDate:
        q = q.filter(models.Refund.created_at >= parse_bound(startDate, end=False))
    if endDate:
        q = q.filter(models.Refund.created_at <= parse_bound(endDate, end=True))
    total = q.count()
    rows = q.order_by(models.Refund.created_at.desc(), models.Refund.id.desc()).offset(skip).limit(limit).all()
    return success_response({"refunds": [refund_to_dict(r) for r in rows], "total": total, "count": len(rows)})


@router.get("/{refund_id}")
def get_refund(refund_id: str, current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    return success_response({"refund": refund_to_dict(_get_refund(db, refund_id, current_user))})


@router.patch("/{refund_id}/status")
def update_refund_status(
    refund_id: str,
    payload: RefundStatusUpdate,
    admin: models.User = Depends(require_admin),
    db: Session = Depends(get_db_dep),
):
    refund = _get_refund(db, refund_id, admin)
    refund.refund_status = payload.status
    if payload.status == models.RefundStatus.success:
        refund.refund_date = payload.refundDate or datetime.utcnow()
    db.commit()
    db.refresh(refund)
    logger.info("Refund %s moved to %s", refund.refund_id, refund.refund_status.value)
    return success_response({"refund": refund_to_dict(refund)}, "Refund status updated successfully")


@router.delete("/{refund_id}")
def delete_refund(refund_id: str, current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    refund = _get_refund(db, refund_id, current_user)
    db.delete(refund)
    db.commit()
    return success_response({"refundId": refund_id}, "Refund deleted successfully")
