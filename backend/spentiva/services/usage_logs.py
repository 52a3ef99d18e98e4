# spentiva/services/usage_logs.py
"""Usage log writes and the tracker snapshots stored alongside them.

Every log row carries a copy of the tracker's name/type so dashboards keep
working after the tracker is renamed or deleted.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from spentiva.db import models

logger = logging.getLogger(__name__)


def estimate_tokens(text: str) -> int:
    """Rough token estimate (~0.75 words per token)."""
    words = len((text or "").split())
    return max(1, round(words * 4 / 3)) if words else 0


def create_tracker_snapshot(tracker: models.Tracker) -> Dict[str, Any]:
    return {
        "trackerId": tracker.id,
        "trackerName": tracker.name,
        "trackerType": tracker.type.value,
        "isDeleted": False,
        "deletedAt": None,
    }


def create_log(
    db: Session,
    user_id: int,
    snapshot: Dict[str, Any],
    role: str,
    content: str,
    token_count: int,
    timestamp: Optional[datetime] = None,
) -> models.UsageLog:
    """Insert a usage log and bump the (user, day, tracker) aggregate. Caller commits."""
    ts = timestamp or datetime.utcnow()
    msg_role = models.MessageRole(role)
    log = models.UsageLog(
        user_id=user_id,
        tracker_id=int(snapshot["trackerId"]),
        tracker_name=snapshot["trackerName"],
        tracker_type=snapshot["trackerType"],
        is_deleted=bool(snapshot.get("isDeleted", False)),
        deleted_at=snapshot.get("deletedAt"),
        message_role=msg_role,
        message_content=content,
        token_count=token_count,
        timestamp=ts,
    )
    db.add(log)

    day = (
        db.query(models.Usage)
        .filter(
            models.Usage.user_id == user_id,
            models.Usage.date == ts.date(),
            models.Usage.tracker_id == log.tracker_id,
        )
        .first()
    )
    if day is None:
        day = models.Usage(
            user_id=user_id, date=ts.date(), tracker_id=log.tracker_id,
            total_messages=0, user_messages=0, ai_messages=0, total_tokens=0,
        )
        db.add(day)
        # sessions run with autoflush off; a second log in the same request must find this row
        db.flush()
    day.total_messages += 1
    day.total_tokens += token_count
    if msg_role == models.MessageRole.user:
        day.user_messages += 1
    else:
        day.ai_messages += 1
    return log


def update_tracker_in_usage(db: Session, tracker_id: int, tracker_name: str, tracker_type: str) -> int:
    updated = (
        db.query(models.UsageLog)
        .filter(models.UsageLog.tracker_id == tracker_id)
        .update(
            {"tracker_name": tracker_name, "tracker_type": tracker_type, "modified_at": datetime.utcnow()},
            synchronize_session=False,
        )
    )
    logger.info("Updated tracker snapshot in %s usage logs (tracker=%s)", updated, tracker_id)
    return updated


def mark_tracker_as_deleted(db: Session, tracker_id: int) -> int:
    updated = (
        db.query(models.UsageLog)
        .filter(models.UsageLog.tracker_id == tracker_id)
        .update({"is_deleted": True, "deleted_at": datetime.utcnow()}, synchronize_session=False)
    )
    logger.info("Marked %s usage logs as deleted (tracker=%s)", updated, tracker_id)
    return updated


def snapshot_of(log: models.UsageLog) -> Dict[str, Any]:
    return {
        "trackerId": log.tracker_id,
        "trackerName": log.tracker_name,
        "trackerType": log.tracker_type,
        "isDeleted": log.is_deleted,
        "deletedAt": log.deleted_at.isoformat() if log.deleted_at else None,
        "modifiedAt": log.modified_at.isoformat() if log.modified_at else None,
    }


def log_to_dict(log: models.UsageLog) -> Dict[str, Any]:
    return {
        "id": log.id,
        "userId": log.user_id,
        "trackerSnapshot": snapshot_of(log),
        "messageRole": log.message_role.value,
        "messageContent": log.message_content,
        "tokenCount": log.token_count,
        "timestamp": log.timestamp.isoformat(),
    }


def get_tracker_logs_paginated(db: Session, user_id: int, tracker_id: int, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
    q = db.query(models.UsageLog).filter(models.UsageLog.user_id == user_id, models.UsageLog.tracker_id == tracker_id)
    total = q.count()
    rows = (
        q.order_by(models.UsageLog.timestamp.desc(), models.UsageLog.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return {
        "totalCount": total,
        "limit": limit,
        "offset": offset,
        "hasMore": offset + len(rows) < total,
        "logs": [
            {
                "id": r.id,
                "role": r.message_role.value,
                "content": r.message_content,
                "tokenCount": r.token_count,
                "timestamp": r.timestamp.isoformat(),
                "tracker": snapshot_of(r),
            }
            for r in rows
        ],
    }


def delete_logs(db: Session, user_id: int, tracker_id: Optional[int] = None) -> Dict[str, int]:
    logs = db.query(models.UsageLog).filter(models.UsageLog.user_id == user_id)
    days = db.query(models.Usage).filter(models.Usage.user_id == user_id)
    if tracker_id is not None:
        logs = logs.filter(models.UsageLog.tracker_id == tracker_id)
        days = days.filter(models.Usage.tracker_id == tracker_id)
    n_logs = logs.delete(synchronize_session=False)
    n_days = days.delete(synchronize_session=False)
    return {"usageLogsDeleted": n_logs, "dailyUsageDeleted": n_days, "totalDeleted": n_logs + n_days}


def usage_totals(db: Session, user_id: int, tracker_id: Optional[int] = None) -> Dict[str, int]:
    q = db.query(
        func.coalesce(func.sum(models.Usage.total_messages), 0),
        func.coalesce(func.sum(models.Usage.total_tokens), 0),
        func.coalesce(func.sum(models.Usage.user_messages), 0),
        func.coalesce(func.sum(models.Usage.ai_messages), 0),
    ).filter(models.Usage.user_id == user_id)
    if tracker_id is not None:
        q = q.filter(models.Usage.tracker_id == tracker_id)
    messages, tokens, user_msgs, ai_msgs = q.one()
    return {
        "totalMessages": int(messages),
        "totalTokens": int(tokens),
        "userMessages": int(user_msgs),
        "aiMessages": int(ai_msgs),
    }


def daily_series(
    db: Session,
    user_id: int,
    tracker_id: Optional[int] = None,
    days: int = 30,
    today: Optional[date] = None,
) -> List[Dict[str, Any]]:
    """One point per day for the last ``days`` days, oldest first, zero-filled."""
    today = today or datetime.utcnow().date()
    start = today - timedelta(days=days - 1)
    q = (
        db.query(
            models.Usage.date,
            func.sum(models.Usage.total_messages),
            func.sum(models.Usage.total_tokens),
        )
        .filter(models.Usage.user_id == user_id, models.Usage.date >= start, models.Usage.date <= today)
    )
    if tracker_id is not None:
        q = q.filter(models.Usage.tracker_id == tracker_id)
    by_day = {d: (int(m or 0), int(t or 0)) for d, m, t in q.group_by(models.Usage.date).all()}
    points = []
    for i in range(days):
        d = start + timedelta(days=i)
        messages, tokens = by_day.get(d, (0, 0))
        points.append({"label": d.isoformat(), "messages": messages, "tokens": tokens})
    return points


def tracker_breakdown(db: Session, user_id: int) -> List[Dict[str, Any]]:
    """Per-tracker message and token counts, busiest first."""
    rows = (
        db.query(
            models.UsageLog.tracker_id,
            models.UsageLog.tracker_name,
            models.UsageLog.tracker_type,
            models.UsageLog.is_deleted,
            func.max(models.UsageLog.deleted_at),
            func.count(models.UsageLog.id),
            func.coalesce(func.sum(models.UsageLog.token_count), 0),
        )
        .filter(models.UsageLog.user_id == user_id)
        .group_by(
            models.UsageLog.tracker_id,
            models.UsageLog.tracker_name,
            models.UsageLog.tracker_type,
            models.UsageLog.is_deleted,
        )
        .all()
    )
    out = [
        {
            "trackerId": tracker_id,
            "trackerName": name,
            "trackerType": kind,
            "isDeleted": bool(is_deleted),
            "deletedAt": deleted_at.isoformat() if deleted_at else None,
            "messageCount": int(count),
            "tokenCount": int(tokens),
        }
        for tracker_id, name, kind, is_deleted, deleted_at, count, tokens in rows
    ]
    out.sort(key=lambda r: r["messageCount"], reverse=True)
    return out


def latest_log(db: Session, user_id: int, tracker_id: int) -> Optional[models.UsageLog]:
    return (
        db.query(models.UsageLog)
        .filter(models.UsageLog.user_id == user_id, models.UsageLog.tracker_id == tracker_id)
        .order_by(models.UsageLog.timestamp.desc(), models.UsageLog.id.desc())
        .first()
    )
