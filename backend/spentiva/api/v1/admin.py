# spentiva/api/v1/admin.py
import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from spentiva.api.v1.auth import user_to_dict
from spentiva.api.v1.deps import get_db_dep, require_admin
from spentiva.core.responses import bad_request, not_found, success_response
from spentiva.db import models
from spentiva.schemas.admin import AdminUserUpdate
from spentiva.services import analytics, storage

logger = logging.getLogger(__name__)
router = APIRouter(tags=["admin"])

USER_NOT_FOUND = "User not found"

# admin filter names -> analytics date filters
STATS_FILTERS = {
    "today": "today",
    "yesterday": "yesterday",
    "last7days": "last7days",
    "month": "thisMonth",
    "year": "thisYear",
    "custom": "custom",
}


def admin_user_dict(user: models.User):
    out = user_to_dict(user)
    out["createdAt"] = user.created_at.isoformat() if user.created_at else None
    out["updatedAt"] = user.updated_at.isoformat() if user.updated_at else None
    return out


def _plan_counts(db: Session, start=None, end=None):
    q = db.query(models.User.account_type, func.count(models.User.id))
    if start is not None:
        q = q.filter(models.User.created_at >= start)
    if end is not None:
        q = q.filter(models.User.created_at <= end)
    counts = {plan: n for plan, n in q.group_by(models.User.account_type).all()}
    out = {plan.value: counts.get(plan, 0) for plan in models.AccountType}
    out["total"] = sum(counts.values())
    return out


def _get_user(db: Session, user_id: int) -> models.User:
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise not_found(USER_NOT_FOUND)
    return user


@router.get("/stats")
def admin_stats(
    filter: str = Query("month"),
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    admin: models.User = Depends(require_admin),
    db: Session = Depends(get_db_dep),
):
    if filter not in STATS_FILTERS:
        raise bad_request(f"Invalid filter: {filter}")
    start, end = analytics.get_date_range(STATS_FILTERS[filter], startDate, endDate)
    data = {
        "filtered": _plan_counts(db, start, end),
        "allTime": _plan_counts(db),
        "filter": filter,
        "dateRange": {"start": start, "end": end},
    }
    return success_response(data)


@router.get("/users")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    role: Optional[models.UserRole] = Query(None),
    accountType: Optional[models.AccountType] = Query(None),
    emailVerified: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    admin: models.User = Depends(require_admin),
    db: Session = Depends(get_db_dep),
):
    q = db.query(models.User)
    if role is not None:
        q = q.filter(models.User.role == role)
    if accountType is not None:
        q = q.filter(models.User.account_type == accountType)
    if emailVerified is not None:
        q = q.filter(models.User.email_verified.is_(emailVerified))
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(models.User.name.ilike(like), models.User.email.ilike(like)))
    total = q.count()
    rows = q.order_by(models.User.created_at.desc(), models.User.id.desc()).offset((page - 1) * limit).limit(limit).all()
    pagination = {"page": page, "limit": limit, "total": total, "totalPages": math.ceil(total / limit) if total else 0}
    return success_response({"users": [admin_user_dict(u) for u in rows], "pagination": pagination})


@router.get("/users/{user_id}")
def get_user(user_id: int, admin: models.User = Depends(require_admin), db: Session = Depends(get_db_dep)):
    return success_response({"user": admin_user_dict(_get_user(db, user_id))})


@router.put("/users/{user_id}")
def update_user(
    user_id: int,
    payload: AdminUserUpdate,
    admin: models.User = Depends(require_admin),
    db: Session = Depends(get_db_dep),
):
    user = _get_user(db, user_id)
    if payload.name is not None:
        user.name = payload.name.strip()
    if payload.role is not None:
        user.role = payload.role
    if payload.accountType is not None:
        user.account_type = payload.accountType
    if payload.emailVerified is not None:
        user.email_verified = payload.emailVerified
    db.commit()
    db.refresh(user)
    logger.info("Admin %s updated user %s", admin.id, user.id)
    return success_response({"user": admin_user_dict(user)}, "User updated successfully")


@router.delete("/users/{user_id}")
def delete_user(user_id: int, admin: models.User = Depends(require_admin), db: Session = Depends(get_db_dep)):
    if user_id == admin.id:
        raise bad_request("You cannot delete your own account")
    user = _get_user(db, user_id)

    for upload in user.uploads:
        storage.delete_file(upload)
    # invites held by this user stay on the tracker as email-only entries
    db.query(models.TrackerShare).filter(models.TrackerShare.user_id == user.id).update(
        {"user_id": None}, synchronize_session=False
    )
    db.query(models.Otp).filter(models.Otp.identifier == user.email).delete(synchronize_session=False)
    db.delete(user)
    db.commit()
    logger.info("Admin %s deleted user %s", admin.id, user_id)
    return success_response({"id": user_id}, "User deleted successfully")
