# spentiva/services/reports.py
"""Scheduled analytics reports: next-run arithmetic, HTML rendering and the
background loop that emails due reports."""
import html
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from spentiva.core.config import settings
from spentiva.db import models
from spentiva.services import analytics, mailer
from spentiva.services.trackers import tracker_role

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Asia/Kolkata"

FREQUENCY_FILTERS = {
    "daily": "today",
    "weekly": "last7days",
    "monthly": "thisMonth",
}


def compute_next_run(
    frequency: str,
    hour: int,
    day_of_week: Optional[int] = None,
    day_of_month: Optional[int] = None,
    tz: str = DEFAULT_TIMEZONE,
    now: Optional[datetime] = None,
) -> datetime:
    """
    Next send time as a naive UTC datetime.

    Wall-clock arithmetic happens in the schedule's own time zone. Weekdays use
    Sunday=0 .. Saturday=6; a weekly schedule always moves at least one day
    forward, so picking today's weekday lands on next week.
    """
    now = now or datetime.utcnow()
    zone = ZoneInfo(tz or DEFAULT_TIMEZONE)
    local_now = now.replace(tzinfo=timezone.utc).astimezone(zone)
    nxt = local_now.replace(hour=hour, minute=0, second=0, microsecond=0)

    if frequency == "daily":
        if nxt <= local_now:
            nxt += timedelta(days=1)
    elif frequency == "weekly":
        dow = 1 if day_of_week is None else day_of_week
        today_dow = (nxt.weekday() + 1) % 7
        nxt += timedelta(days=((7 + dow - today_dow) % 7) or 7)
    elif frequency == "monthly":
        nxt = nxt.replace(day=day_of_month or 1)
        if nxt <= local_now:
            nxt += relativedelta(months=1)
    else:
        raise ValueError(f"unknown frequency: {frequency}")

    return nxt.astimezone(timezone.utc).replace(tzinfo=None)


def next_run_for(schedule: models.ReportSchedule, now: Optional[datetime] = None) -> datetime:
    return compute_next_run(
        schedule.frequency.value,
        schedule.hour,
        schedule.day_of_week,
        schedule.day_of_month,
        schedule.timezone,
        now,
    )


def get_due_schedules(db: Session, now: Optional[datetime] = None) -> List[models.ReportSchedule]:
    now = now or datetime.utcnow()
    return (
        db.query(models.ReportSchedule)
        .filter(models.ReportSchedule.enabled.is_(True), models.ReportSchedule.next_run_at <= now)
        .order_by(models.ReportSchedule.next_run_at)
        .all()
    )


def mark_sent(schedule: models.ReportSchedule, delivered: bool = True, now: Optional[datetime] = None) -> None:
    now = now or datetime.utcnow()
    if delivered:
        schedule.last_sent_at = now
    schedule.next_run_at = next_run_for(schedule, now)


def build_report_html(
    tracker_name: str,
    currency: str,
    period_label: str,
    summary: Dict[str, Any],
    categories: List[Dict[str, Any]],
) -> str:
    symbol = mailer.currency_symbol(currency)
    rows = "".join(
        "<tr>"
        f"<td style=\"padding:6px 12px\">{html.escape(str(c['category']))}</td>"
        f"<td style=\"padding:6px 12px;text-align:right\">{symbol}{c['total']:,.2f}</td>"
        f"<td style=\"padding:6px 12px;text-align:right\">{c['count']}</td>"
        "</tr>"
        for c in categories[:10]
    )
    if not rows:
        rows = "<tr><td colspan=\"3\" style=\"padding:6px 12px\">No expenses in this period.</td></tr>"
    return (
        "<html><body style=\"font-family:Arial,sans-serif;color:#1f2937\">"
        f"<h2 style=\"color:#4f46e5\">{html.escape(tracker_name)}: {html.escape(period_label)}</h2>"
        "<p>"
        f"Total spent: <strong>{symbol}{summary['totalExpenses']:,.2f}</strong><br>"
        f"Transactions: <strong>{summary['transactionCount']}</strong><br>"
        f"Average expense: <strong>{symbol}{summary['averageExpense']:,.2f}</strong>"
        "</p>"
        "<table style=\"border-collapse:collapse\">"
        "<tr><th style=\"text-align:left;padding:6px 12px\">Category</th>"
        "<th style=\"text-align:right;padding:6px 12px\">Total</th>"
        "<th style=\"text-align:right;padding:6px 12px\">Count</th></tr>"
        f"{rows}</table>"
        "<p style=\"color:#6b7280;font-size:12px\">Spentiva</p>"
        "</body></html>"
    )


def render_tracker_report(db: Session, tracker: models.Tracker, filter: str, now: Optional[datetime] = None) -> str:
    start, end = analytics.get_date_range(filter, now=now)
    ids = [tracker.id]
    return build_report_html(
        tracker.name,
        tracker.currency.value,
        analytics.FILTER_LABELS.get(filter, filter),
        analytics.summary(db, ids, start, end),
        analytics.by_category(db, ids, start, end),
    )


def send_schedule_report(db: Session, schedule: models.ReportSchedule, now: Optional[datetime] = None) -> bool:
    tracker = schedule.tracker
    if tracker is None:
        logger.warning("Report schedule %s points at a missing tracker", schedule.id)
        return False
    if schedule.user is None or tracker_role(tracker, schedule.user) is None:
        # access was revoked after the schedule was created
        logger.warning(
            "Disabling report schedule %s: user %s lost access to tracker %s", schedule.id, schedule.user_id, tracker.id
        )
        schedule.enabled = False
        return False
    filter = FREQUENCY_FILTERS[schedule.frequency.value]
    body = render_tracker_report(db, tracker, filter, now)
    subject = f"{schedule.frequency.value.capitalize()} report - {tracker.name}"
    return mailer.send_email(schedule.user_email, subject, body)


def run_due_reports(db: Session, now: Optional[datetime] = None) -> int:
    """Email every due report; returns how many were delivered."""
    now = now or datetime.utcnow()
    delivered = 0
    for schedule in get_due_schedules(db, now):
        try:
            ok = send_schedule_report(db, schedule, now)
            mark_sent(schedule, delivered=ok, now=now)
            db.commit()
        except Exception:
            logger.exception("Report schedule %s failed", schedule.id)
            db.rollback()
            continue
        if ok:
            delivered += 1
    if delivered:
        logger.info("Sent %s scheduled report(s)", delivered)
    return delivered


class ReportScheduler:
    """Daemon thread that runs ``run_due_reports`` every ``interval`` seconds."""

    def __init__(self, session_factory: Callable[[], Session], interval: Optional[int] = None):
        self.session_factory = session_factory
        self.interval = interval or settings.REPORT_SCHEDULER_INTERVAL_SECONDS
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def tick(self) -> int:
        db = self.session_factory()
        try:
            return run_due_reports(db)
        finally:
            db.close()

    def _run(self) -> None:
        logger.info("Report scheduler started (interval=%ss)", self.interval)
        while not self._stop.wait(self.interval):
            try:
                self.tick()
            except Exception:
                logger.exception("Report scheduler tick failed")
        logger.info("Report scheduler stopped")

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="report-scheduler", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None
