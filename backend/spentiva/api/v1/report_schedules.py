# spentiva/api/v1/report_schedules.py
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from spentiva.api.v1.deps import get_current_user, get_db_dep
from spentiva.core.responses import bad_request, success_response
from spentiva.db import models
from spentiva.schemas.report_schedule import ScheduleCreate, ScheduleUpdate
from spentiva.services.reports import DEFAULT_TIMEZONE, next_run_for
from spentiva.services.trackers import get_tracker_for

router = APIRouter(tags=["report-schedule"])

SCHEDULE_NOT_FOUND = "Schedule not found"


def schedule_to_dict(s: models.ReportSchedule) -> Dict[str, Any]:
    return {
        "id": s.id,
        "userId": s.user_id,
        "userEmail": s.user_email,
        "trackerId": s.tracker_id,
        "trackerName": s.tracker_name,
        "frequency": s.frequency.value,
        "dayOfWeek": s.day_of_week,
        "dayOfMonth": s.day_of_month,
        "hour": s.hour,
        "timezone": s.timezone,
        "enabled": s.enabled,
        "lastSentAt": s.last_sent_at.isoformat() if s.last_sent_at else None,
        "nextRunAt": s.next_run_at.isoformat() if s.next_run_at else None,
        "createdAt": s.created_at.isoformat() if s.created_at else None,
    }


def _check_required_days(schedule: models.ReportSchedule) -> None:
    if schedule.frequency == models.ReportFrequency.weekly and schedule.day_of_week is None:
        raise bad_request("dayOfWeek is required for weekly reports")
    if schedule.frequency == models.ReportFrequency.monthly and schedule.day_of_month is None:
        raise bad_request("dayOfMonth is required for monthly reports")


def _get_schedule(db: Session, schedule_id: int, user: models.User) -> models.ReportSchedule:
    schedule = (
        db.query(models.ReportSchedule)
        .filter(models.ReportSchedule.id == schedule_id, models.ReportSchedule.user_id == user.id)
        .first()
    )
    if not schedule:
        raise bad_request(SCHEDULE_NOT_FOUND)
    return schedule


@router.post("/create")
def create_schedule(
    payload: ScheduleCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    tracker = get_tracker_for(db, payload.trackerId, current_user)
    exists = (
        db.query(models.ReportSchedule)
        .filter(models.ReportSchedule.user_id == current_user.id, models.ReportSchedule.tracker_id == tracker.id)
        .first()
    )
    if exists:
        raise bad_request("A report schedule already exists for this tracker. Update or delete it instead.")

    schedule = models.ReportSchedule(
        user_id=current_user.id,
        user_email=current_user.email,
        tracker_id=tracker.id,
        tracker_name=tracker.name,
        frequency=payload.frequency,
        day_of_week=payload.dayOfWeek,
        day_of_month=payload.dayOfMonth,
        hour=payload.hour,
        timezone=payload.timezone or DEFAULT_TIMEZONE,
        enabled=True,
    )
    _check_required_days(schedule)
    schedule.next_run_at = next_run_for(schedule)
    db.add(schedule)
    db.commit()
    db.refresh(schedule)
    return success_response({"schedule": schedule_to_dict(schedule)}, "Report schedule created successfully")


@router.get("/all")
def list_schedules(current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    rows = (
        db.query(models.ReportSchedule)
        .filter(models.ReportSchedule.user_id == current_user.id)
        .order_by(models.ReportSchedule.created_at.desc(), models.ReportSchedule.id.desc())
        .all()
    )
    return success_response({"schedules": [schedule_to_dict(s) for s in rows]})


@router.get("/tracker/{tracker_id}")
def get_tracker_schedule(tracker_id: int, current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    schedule = (
        db.query(models.ReportSchedule)
        .filter(models.ReportSchedule.user_id == current_user.id, models.ReportSchedule.tracker_id == tracker_id)
        .first()
    )
    return success_response({"schedule": schedule_to_dict(schedule) if schedule else None})


@router.put("/update/{schedule_id}")
def update_schedule(
    schedule_id: int,
    payload: ScheduleUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    schedule = _get_schedule(db, schedule_id, current_user)
    fields = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    # validate on a detached copy so a rejected update leaves the row untouched
    candidate = models.ReportSchedule(
        frequency=fields.get("frequency", schedule.frequency),
        day_of_week=fields.get("dayOfWeek", schedule.day_of_week),
        day_of_month=fields.get("dayOfMonth", schedule.day_of_month),
        hour=fields.get("hour", schedule.hour),
        timezone=fields.get("timezone", schedule.timezone),
    )
    _check_required_days(candidate)

    schedule.frequency = candidate.frequency
    schedule.day_of_week = candidate.day_of_week
    schedule.day_of_month = candidate.day_of_month
    schedule.hour = candidate.hour
    schedule.timezone = candidate.timezone
    if "enabled" in fields:
        schedule.enabled = fields["enabled"]
    schedule.next_run_at = next_run_for(schedule)
    db.commit()
    db.refresh(schedule)
    return success_response({"schedule": schedule_to_dict(schedule)}, "Report schedule updated successfully")


@router.delete("/delete/{schedule_id}")
def delete_schedule(schedule_id: int, current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    schedule = _get_schedule(db, schedule_id, current_user)
    db.delete(schedule)
    db.commit()
    return success_response({"id": schedule_id}, "Report schedule deleted successfully")
