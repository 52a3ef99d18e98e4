# spentiva/api/v1/usage_logs.py
import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from spentiva.api.v1.deps import get_current_user, get_db_dep, is_admin
from spentiva.core.responses import success_response
from spentiva.db import models
from spentiva.schemas.usage_log import UsageLogCreate
from spentiva.services import usage_logs
from spentiva.services.analytics import naive_utc

logger = logging.getLogger(__name__)
router = APIRouter(tags=["usage-logs"])


@router.get("/")
def list_logs(
    trackerId: Optional[int] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    q = db.query(models.UsageLog).filter(models.UsageLog.user_id == current_user.id)
    if trackerId is not None:
        q = q.filter(models.UsageLog.tracker_id == trackerId)
    rows = q.order_by(models.UsageLog.timestamp.desc(), models.UsageLog.id.desc()).limit(limit).all()
    return success_response({"logs": [usage_logs.log_to_dict(r) for r in rows], "count": len(rows)})


@router.post("/")
def create_log(
    payload: UsageLogCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    snapshot = payload.trackerSnapshot.model_dump()
    snapshot["deletedAt"] = naive_utc(snapshot.get("deletedAt"))
    timestamp = naive_utc(payload.timestamp)
    log = usage_logs.create_log(
        db, current_user.id, snapshot, payload.messageRole.value, payload.messageContent, payload.tokenCount, timestamp
    )
    db.commit()
    db.refresh(log)
    return success_response({"log": usage_logs.log_to_dict(log)}, "Usage log created successfully")


@router.delete("/cleanup")
def cleanup_logs(
    daysOld: int = Query(90, ge=1),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    cutoff = datetime.utcnow() - timedelta(days=daysOld)
    q = db.query(models.UsageLog).filter(models.UsageLog.timestamp < cutoff)
    # admins prune everyone's history, users only their own
    if not is_admin(current_user):
        q = q.filter(models.UsageLog.user_id == current_user.id)
    deleted = q.delete(synchronize_session=False)
    db.commit()
    logger.info("Usage log cleanup removed %s rows older than %s days", deleted, daysOld)
    return success_response({"deletedCount": deleted}, f"Deleted {deleted} logs older than {daysOld} days")


@router.delete("/tracker/{tracker_id}")
def delete_tracker_logs(tracker_id: int, current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    result = usage_logs.delete_logs(db, current_user.id, tracker_id)
    db.commit()
    return success_response(result, "Tracker usage data deleted successfully")


@router.delete("/user")
def delete_user_logs(current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    result = usage_logs.delete_logs(db, current_user.id)
    db.commit()
    return success_response(result, "All usage data deleted successfully")
