# spentiva/services/analytics.py
"""Expense aggregations (summary, by category, by month, by payment method).

All queries run on ``Expense`` rows of type ``expense`` within a date window
and a set of tracker ids the caller may read.
"""
import calendar
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from dateutil import parser as dateparser
from sqlalchemy import extract, func
from sqlalchemy.orm import Query, Session

from spentiva.core.responses import bad_request
from spentiva.db import models

DATE_FILTERS = ("today", "yesterday", "last7days", "thisMonth", "lastMonth", "thisYear", "custom", "all")

FILTER_LABELS = {
    "today": "Today",
    "yesterday": "Yesterday",
    "last7days": "Last 7 days",
    "thisMonth": "This month",
    "lastMonth": "Last month",
    "thisYear": "This year",
    "custom": "Custom range",
    "all": "All time",
}


def naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Aware datetimes become naive UTC, the form every DateTime column stores."""
    if dt is not None and dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _end_of_day(d: date) -> datetime:
    return datetime.combine(d, time.max)


def parse_bound(value: str, end: bool) -> datetime:
    try:
        dt = dateparser.isoparse(value)
    except (ValueError, OverflowError):
        raise bad_request(f"Invalid date: {value}")
    dt = naive_utc(dt)
    # a bare YYYY-MM-DD end bound covers the whole day
    if end and len(value) <= 10:
        return _end_of_day(dt.date())
    return dt


def get_date_range(
    filter: Optional[str] = None,
    custom_start: Optional[str] = None,
    custom_end: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[Optional[datetime], datetime]:
    """Resolve a named filter into (start, end). ``start`` is None for "all"."""
    now = now or datetime.utcnow()
    today = now.date()
    month_start = datetime(now.year, now.month, 1)

    if filter == "today":
        return datetime.combine(today, time.min), _end_of_day(today)
    if filter == "yesterday":
        y = today - timedelta(days=1)
        return datetime.combine(y, time.min), _end_of_day(y)
    if filter == "last7days":
        return now - timedelta(days=7), now
    if filter == "lastMonth":
        prev_year, prev_month = (now.year - 1, 12) if now.month == 1 else (now.year, now.month - 1)
        last_day = calendar.monthrange(prev_year, prev_month)[1]
        return datetime(prev_year, prev_month, 1), _end_of_day(date(prev_year, prev_month, last_day))
    if filter == "thisYear":
        return datetime(now.year, 1, 1), now
    if filter == "custom" and custom_start and custom_end:
        return parse_bound(custom_start, end=False), parse_bound(custom_end, end=True)
    if filter == "all":
        return None, now
    # thisMonth, custom without bounds, or no filter
    return month_start, now


def expense_query(
    db: Session,
    tracker_ids: Iterable[int],
    start: Optional[datetime],
    end: Optional[datetime],
    category_id: Optional[int] = None,
    *columns,
) -> Query:
    q = db.query(*columns).filter(
        models.Expense.tracker_id.in_(list(tracker_ids)),
        models.Expense.type == models.ExpenseType.expense,
    )
    if start is not None:
        q = q.filter(models.Expense.timestamp >= start)
    if end is not None:
        q = q.filter(models.Expense.timestamp <= end)
    if category_id is not None:
        q = q.filter(models.Expense.category_id == category_id)
    return q


def _money(value) -> float:
    return round(float(value or 0), 2)


def summary(db: Session, tracker_ids, start, end, category_id=None) -> Dict[str, Any]:
    row = expense_query(
        db, tracker_ids, start, end, category_id,
        func.sum(models.Expense.amount).label("total"),
        func.count(models.Expense.id).label("count"),
        func.avg(models.Expense.amount).label("avg"),
    ).one()
    if not row.count:
        return {"totalExpenses": 0, "transactionCount": 0, "averageExpense": 0}
    return {
        "totalExpenses": _money(row.total),
        "transactionCount": int(row.count),
        "averageExpense": _money(row.avg),
    }


def by_category(db: Session, tracker_ids, start, end, category_id=None) -> List[Dict[str, Any]]:
    total = func.sum(models.Expense.amount)
    rows = (
        expense_query(
            db, tracker_ids, start, end, category_id,
            models.Expense.category.label("category"),
            total.label("total"),
            func.count(models.Expense.id).label("count"),
        )
        .group_by(models.Expense.category)
        .order_by(total.desc())
        .all()
    )
    return [{"category": r.category, "total": _money(r.total), "count": int(r.count)} for r in rows]


def by_payment_method(db: Session, tracker_ids, start, end, category_id=None) -> List[Dict[str, Any]]:
    total = func.sum(models.Expense.amount)
    rows = (
        expense_query(
            db, tracker_ids, start, end, category_id,
            models.Expense.payment_method.label("payment_method"),
            total.label("total"),
            func.count(models.Expense.id).label("count"),
        )
        .group_by(models.Expense.payment_method)
        .order_by(total.desc())
        .all()
    )
    return [{"paymentMethod": r.payment_method, "total": _money(r.total), "count": int(r.count)} for r in rows]


def by_month(db: Session, tracker_ids, year: int) -> List[Dict[str, Any]]:
    month = extract("month", models.Expense.timestamp)
    rows = (
        expense_query(
            db, tracker_ids, datetime(year, 1, 1), _end_of_day(date(year, 12, 31)), None,
            month.label("month"),
            func.sum(models.Expense.amount).label("total"),
            func.count(models.Expense.id).label("count"),
        )
        .group_by(month)
        .order_by(month)
        .all()
    )
    return [{"month": int(r.month), "total": _money(r.total), "count": int(r.count)} for r in rows]


def grand_total(db: Session, tracker_ids, start, end) -> float:
    value = expense_query(db, tracker_ids, start, end, None, func.sum(models.Expense.amount)).scalar()
    return _money(value)
