# spentiva/api/v1/usage.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from spentiva.api.v1.deps import get_current_user, get_db_dep
from spentiva.core.responses import success_response
from spentiva.db import models
from spentiva.services import usage_logs
from spentiva.services.trackers import get_tracker_for

router = APIRouter(tags=["usage"])


@router.get("/overview")
def usage_overview(current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    data = {
        "overall": usage_logs.usage_totals(db, current_user.id),
        "byTracker": usage_logs.tracker_breakdown(db, current_user.id),
        "recentActivity": usage_logs.daily_series(db, current_user.id),
    }
    return success_response(data)


@router.get("/graphs")
def usage_graphs(current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    data = {
        "daily": usage_logs.daily_series(db, current_user.id),
        "byTracker": usage_logs.tracker_breakdown(db, current_user.id),
    }
    return success_response(data)


@router.get("/tracker/{tracker_id}/stats")
def tracker_usage_stats(tracker_id: int, current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    last = usage_logs.latest_log(db, current_user.id, tracker_id)
    if last is not None:
        tracker = usage_logs.snapshot_of(last)
    else:
        # no usage yet: describe the live tracker; raises when it doesn't exist either
        live = get_tracker_for(db, tracker_id, current_user)
        tracker = usage_logs.create_tracker_snapshot(live)

    recent = (
        db.query(models.UsageLog)
        .filter(models.UsageLog.user_id == current_user.id, models.UsageLog.tracker_id == tracker_id)
        .order_by(models.UsageLog.timestamp.desc(), models.UsageLog.id.desc())
        .limit(100)
        .all()
    )
    data = {
        "tracker": tracker,
        "stats": usage_logs.usage_totals(db, current_user.id, tracker_id),
        "dailyUsage": usage_logs.daily_series(db, current_user.id, tracker_id),
        "messages": [usage_logs.log_to_dict(r) for r in recent],
    }
    return success_response(data)


@router.get("/tracker/{tracker_id}/graphs")
def tracker_usage_graphs(tracker_id: int, current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    return success_response({"daily": usage_logs.daily_series(db, current_user.id, tracker_id)})


@router.get("/tracker/{tracker_id}/logs")
def tracker_usage_logs(
    tracker_id: int,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    return success_response(usage_logs.get_tracker_logs_paginated(db, current_user.id, tracker_id, limit, offset))
