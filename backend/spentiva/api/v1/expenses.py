# spentiva/api/v1/expenses.py
import logging
import math
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List

from dateutil import parser as dateparser
from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from spentiva.api.v1.deps import get_current_user, get_db_dep
from spentiva.core.rate_limit import ai_limiter
from spentiva.core.responses import bad_request, not_found, success_response
from spentiva.db import models
from spentiva.schemas.expense import BulkDelete, ExpenseBatchCreate, ExpenseUpdate, ParseRequest
from spentiva.services.analytics import naive_utc
from spentiva.services import mailer, usage_logs
from spentiva.services.catalog import UNSPECIFIED_PAYMENT_METHOD
from spentiva.services.expense_parser import assistant_reply, parse_expenses
from spentiva.services.trackers import VIEWER, get_tracker_for, tracker_role

logger = logging.getLogger(__name__)
router = APIRouter(tags=["expense"])

EXPENSE_NOT_FOUND = "Expense not found"
REQUIRED_FIELDS = ("amount", "category", "subcategory", "categoryId")
TEXT_FIELDS = ("category", "subcategory", "paymentMethod", "creditFrom", "currency", "description")


def expense_to_dict(e: models.Expense) -> Dict[str, Any]:
    return {
        "id": e.id,
        "trackerId": e.tracker_id,
        "userId": e.user_id,
        "amount": float(e.amount),
        "category": e.category,
        "subcategory": e.subcategory,
        "categoryId": e.category_id,
        "type": e.type.value,
        "paymentMethod": e.payment_method,
        "creditFrom": e.credit_from,
        "currency": e.currency,
        "description": e.description,
        "timestamp": e.timestamp.isoformat() if e.timestamp else None,
        "createdBy": e.created_by,
        "createdByName": e.created_by_name,
        "lastUpdatedBy": e.last_updated_by,
        "lastUpdatedByName": e.last_updated_by_name,
        "createdAt": e.created_at.isoformat() if e.created_at else None,
        "updatedAt": e.updated_at.isoformat() if e.updated_at else None,
    }


def _missing(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _build_expense(i: int, row: Any, tracker: models.Tracker, user: models.User) -> models.Expense:
    prefix = f"Expense at index {i}"
    if not isinstance(row, dict) or any(_missing(row.get(f)) for f in REQUIRED_FIELDS):
        raise bad_request(f"{prefix}: Missing required fields ({', '.join(REQUIRED_FIELDS)})")
    for field in TEXT_FIELDS:
        if row.get(field) is not None and not isinstance(row[field], str):
            raise bad_request(f"{prefix}: {field} must be a string")
    try:
        amount = Decimal(str(row["amount"]))
    except (InvalidOperation, ValueError):
        raise bad_request(f"{prefix}: Amount must be a number")
    if not amount.is_finite():
        raise bad_request(f"{prefix}: Amount must be a number")
    if amount < 0:
        raise bad_request(f"{prefix}: Amount must be non-negative")
    try:
        category_id = int(row["categoryId"])
    except (TypeError, ValueError):
        raise bad_request(f"{prefix}: categoryId must be an integer")
    try:
        kind = models.ExpenseType(row.get("type") or "expense")
    except ValueError:
        raise bad_request(f"{prefix}: Invalid type")
    timestamp = datetime.utcnow()
    if row.get("timestamp"):
        try:
            timestamp = naive_utc(dateparser.isoparse(str(row["timestamp"])))
        except (ValueError, OverflowError):
            raise bad_request(f"{prefix}: Invalid timestamp")

    return models.Expense(
        tracker_id=tracker.id,
        user_id=user.id,
        amount=amount,
        category=str(row["category"]).strip(),
        subcategory=str(row["subcategory"]).strip(),
        category_id=category_id,
        type=kind,
        payment_method=row.get("paymentMethod") or UNSPECIFIED_PAYMENT_METHOD,
        credit_from=row.get("creditFrom"),
        currency=row.get("currency") or tracker.currency.value,
        description=row.get("description"),
        timestamp=timestamp,
        created_by=user.id,
        created_by_name=user.name,
        last_updated_by=user.id,
        last_updated_by_name=user.name,
    )


def _notify_recipients(tracker: models.Tracker, creator: models.User) -> List[str]:
    """Everyone with accepted access to the tracker except the creator, owner included."""
    emails = []
    if tracker.owner is not None and tracker.owner.id != creator.id:
        emails.append(tracker.owner.email)
    for share in tracker.shares:
        if share.status == models.ShareStatus.accepted and share.email != creator.email and share.user_id != creator.id:
            emails.append(share.email)
    return list(dict.fromkeys(emails))


def _get_expense(db: Session, expense_id: int, user: models.User, write: bool = False) -> models.Expense:
    expense = db.query(models.Expense).filter(models.Expense.id == expense_id).first()
    if not expense:
        raise not_found(EXPENSE_NOT_FOUND)
    get_tracker_for(db, expense.tracker_id, user, write=write)
    return expense


@router.post("/create")
def create_expenses(
    payload: ExpenseBatchCreate,
    background_tasks: BackgroundTasks,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    if not isinstance(payload.expenses, list):
        raise bad_request("Expenses must be an array")
    if not payload.expenses:
        raise bad_request("Expenses array cannot be empty")
    tracker = get_tracker_for(db, payload.trackerId, current_user, write=True)

    # validate every row before touching the session so a bad row creates nothing
    rows = [_build_expense(i, row, tracker, current_user) for i, row in enumerate(payload.expenses)]
    db.add_all(rows)
    db.commit()
    for row in rows:
        db.refresh(row)
    logger.info("%s expense(s) added to tracker %s by user %s", len(rows), tracker.id, current_user.id)

    recipients = _notify_recipients(tracker, current_user)
    if recipients:
        total = sum(r.amount for r in rows)
        categories = ", ".join(dict.fromkeys(r.category for r in rows))
        background_tasks.add_task(
            mailer.send_transaction_notification_email,
            recipients,
            current_user.name,
            tracker.name,
            tracker.currency.value,
            total,
            categories,
            rows[0].type.value,
        )

    return success_response(
        {"expenses": [expense_to_dict(r) for r in rows]},
        f"{len(rows)} expense(s) created successfully",
    )


@router.get("/all")
def list_expenses(
    trackerId: int = Query(...),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    tracker = get_tracker_for(db, trackerId, current_user)
    q = db.query(models.Expense).filter(models.Expense.tracker_id == tracker.id)
    total = q.count()
    items = (
        q.order_by(models.Expense.timestamp.desc(), models.Expense.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    pagination = {"page": page, "limit": limit, "total": total, "totalPages": math.ceil(total / limit) if total else 0}
    return success_response({"expenses": [expense_to_dict(e) for e in items], "pagination": pagination})


@router.post("/bulk-delete")
def bulk_delete_expenses(
    payload: BulkDelete,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    rows = db.query(models.Expense).filter(models.Expense.id.in_(payload.ids)).all()
    # only rows on trackers the caller may write to
    roles: Dict[int, Any] = {}
    deleted = 0
    for row in rows:
        if row.tracker_id not in roles:
            roles[row.tracker_id] = tracker_role(row.tracker, current_user)
        if roles[row.tracker_id] in (None, VIEWER):
            continue
        db.delete(row)
        deleted += 1
    db.commit()
    return success_response({"deletedCount": deleted}, f"{deleted} expense(s) deleted successfully")


@router.post("/parse", dependencies=[Depends(ai_limiter)])
def parse_expense_text(
    payload: ParseRequest,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    tracker = get_tracker_for(db, payload.trackerId, current_user)
    categories = [{"id": c.id, "name": c.name, "subcategories": c.subcategories or []} for c in tracker.categories]
    result = parse_expenses(payload.input, categories)

    if "error" in result:
        reply = result["message"]
    else:
        reply = assistant_reply(result["expenses"], mailer.currency_symbol(tracker.currency.value))

    snapshot = usage_logs.create_tracker_snapshot(tracker)
    user_tokens = usage_logs.estimate_tokens(payload.input)
    ai_tokens = usage_logs.estimate_tokens(reply)
    usage_logs.create_log(db, current_user.id, snapshot, "user", payload.input, user_tokens)
    usage_logs.create_log(db, current_user.id, snapshot, "assistant", reply, ai_tokens)
    db.commit()

    if "error" in result:
        data = {"missingCategories": result["missingCategories"]} if "missingCategories" in result else None
        raise bad_request(result["message"], data)

    usage = {"userTokens": user_tokens, "aiTokens": ai_tokens, "totalTokens": user_tokens + ai_tokens}
    return success_response({"expenses": result["expenses"], "reply": reply, "usage": usage}, "Expenses parsed successfully")


@router.get("/{expense_id}")
def get_expense(expense_id: int, current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    return success_response({"expense": expense_to_dict(_get_expense(db, expense_id, current_user))})


@router.put("/{expense_id}")
def update_expense(
    expense_id: int,
    payload: ExpenseUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    expense = _get_expense(db, expense_id, current_user, write=True)
    fields = payload.model_dump(exclude_unset=True)
    columns = {
        "amount": "amount",
        "category": "category",
        "subcategory": "subcategory",
        "categoryId": "category_id",
        "type": "type",
        "paymentMethod": "payment_method",
        "creditFrom": "credit_from",
        "currency": "currency",
        "description": "description",
    }
    for key, column in columns.items():
        if key in fields and fields[key] is not None:
            setattr(expense, column, fields[key])
    if fields.get("timestamp") is not None:
        expense.timestamp = naive_utc(fields["timestamp"])
    expense.last_updated_by = current_user.id
    expense.last_updated_by_name = current_user.name
    db.commit()
    db.refresh(expense)
    return success_response({"expense": expense_to_dict(expense)}, "Expense updated successfully")


@router.delete("/{expense_id}")
def delete_expense(expense_id: int, current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    expense = _get_expense(db, expense_id, current_user, write=True)
    db.delete(expense)
    db.commit()
    return success_response({"id": expense_id}, "Expense deleted successfully")
