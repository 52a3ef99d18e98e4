# spentiva/api/v1/analytics.py
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from spentiva.api.v1.deps import get_current_user, get_db_dep
from spentiva.core.responses import bad_request, success_response
from spentiva.db import models
from spentiva.schemas.analytics import EmailReportRequest
from spentiva.services import analytics, mailer, reports
from spentiva.services.trackers import get_tracker_for, readable_tracker_ids

router = APIRouter(tags=["analytics"])


def _tracker_ids(db: Session, user: models.User, tracker_id: Optional[int]) -> List[int]:
    if tracker_id is not None:
        return [get_tracker_for(db, tracker_id, user).id]
    return readable_tracker_ids(db, user)


def _check_filter(value: Optional[str]) -> None:
    if value is not None and value not in analytics.DATE_FILTERS:
        raise bad_request(f"Invalid filter: {value}")


class AnalyticsParams:
    """Query parameters shared by every analytics endpoint."""

    def __init__(
        self,
        filter: Optional[str] = Query(None),
        customStart: Optional[str] = Query(None),
        customEnd: Optional[str] = Query(None),
        trackerId: Optional[int] = Query(None),
        categoryId: Optional[int] = Query(None),
    ):
        _check_filter(filter)
        self.filter = filter
        self.custom_start = customStart
        self.custom_end = customEnd
        self.tracker_id = trackerId
        self.category_id = categoryId

    def date_range(self, default: Optional[str] = None):
        return analytics.get_date_range(self.filter or default, self.custom_start, self.custom_end)


@router.get("/summary")
def summary(
    params: AnalyticsParams = Depends(),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    ids = _tracker_ids(db, current_user, params.tracker_id)
    start, end = params.date_range()
    return success_response(analytics.summary(db, ids, start, end, params.category_id))


@router.get("/by-category")
def by_category(
    params: AnalyticsParams = Depends(),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    ids = _tracker_ids(db, current_user, params.tracker_id)
    start, end = params.date_range()
    return success_response(analytics.by_category(db, ids, start, end, params.category_id))


@router.get("/by-month")
def by_month(
    year: Optional[int] = Query(None, ge=1970, le=2100),
    trackerId: Optional[int] = Query(None),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    ids = _tracker_ids(db, current_user, trackerId)
    return success_response(analytics.by_month(db, ids, year or datetime.utcnow().year))


@router.get("/by-expense-from")
def by_payment_method(
    params: AnalyticsParams = Depends(),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    ids = _tracker_ids(db, current_user, params.tracker_id)
    start, end = params.date_range()
    return success_response(analytics.by_payment_method(db, ids, start, end, params.category_id))


@router.get("/total")
def total(
    params: AnalyticsParams = Depends(),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    ids = _tracker_ids(db, current_user, params.tracker_id)
    start, end = params.date_range(default="all")
    return success_response({"total": analytics.grand_total(db, ids, start, end)})


@router.post("/email-report")
def email_report(
    payload: EmailReportRequest,
    background_tasks: BackgroundTasks,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    _check_filter(payload.filter)
    filter = payload.filter or "thisMonth"
    start, end = analytics.get_date_range(filter, payload.customStart, payload.customEnd)

    if payload.trackerId is not None:
        tracker = get_tracker_for(db, payload.trackerId, current_user)
        ids, title, currency = [tracker.id], tracker.name, tracker.currency.value
    else:
        ids, title, currency = readable_tracker_ids(db, current_user), "All trackers", models.CurrencyCode.INR.value

    body = reports.build_report_html(
        title,
        currency,
        analytics.FILTER_LABELS.get(filter, filter),
        analytics.summary(db, ids, start, end),
        analytics.by_category(db, ids, start, end),
    )
    to = payload.email or current_user.email
    background_tasks.add_task(mailer.send_email, to, f"Spentiva report - {title}", body)
    return success_response({"email": to, "filter": filter}, "Report email queued")
