# spentiva/api/v1/support.py
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from spentiva.api.v1.deps import get_current_user, get_db_dep, is_admin, require_admin
from spentiva.core.responses import not_found, success_response
from spentiva.db import models
from spentiva.schemas.support import Attachment, TicketCreate, TicketStatusUpdate, TicketUpdateCreate
from spentiva.services import mailer

logger = logging.getLogger(__name__)
router = APIRouter(tags=["support"])

TICKET_COUNTER = "support_ticket"

# TicketStatus value -> key in the stats payload
STATS_KEYS = {
    models.TicketStatus.Open: "open",
    models.TicketStatus.InProgress: "inProgress",
    models.TicketStatus.Closed: "closed",
    models.TicketStatus.Escalated: "escalated",
}


def ticket_to_dict(t: models.SupportTicket) -> Dict[str, Any]:
    return {
        "id": t.id,
        "ticketId": t.ticket_id,
        "userId": t.user_id,
        "type": t.type.value,
        "subject": t.subject,
        "description": t.description,
        "status": t.status.value,
        "attachments": t.attachments or [],
        "updates": t.updates or [],
        "createdAt": t.created_at.isoformat() if t.created_at else None,
        "updatedAt": t.updated_at.isoformat() if t.updated_at else None,
    }


def next_ticket_id(db: Session) -> str:
    counter = db.query(models.TicketCounter).filter(models.TicketCounter.name == TICKET_COUNTER).with_for_update().first()
    if counter is None:
        counter = models.TicketCounter(name=TICKET_COUNTER, sequence=0)
        db.add(counter)
    counter.sequence += 1
    return f"TICKET-{counter.sequence:03d}"


def _scoped(db: Session, user: models.User):
    q = db.query(models.SupportTicket)
    if not is_admin(user):
        q = q.filter(models.SupportTicket.user_id == user.id)
    return q


def _get_ticket(db: Session, ticket_id: str, user: models.User) -> models.SupportTicket:
    ticket = _scoped(db, user).filter(models.SupportTicket.ticket_id == ticket_id).first()
    if not ticket:
        raise not_found("Ticket not found")
    return ticket


@router.post("/tickets")
def create_ticket(
    payload: TicketCreate,
    background_tasks: BackgroundTasks,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    ticket = models.SupportTicket(
        ticket_id=next_ticket_id(db),
        user_id=current_user.id,
        type=payload.type,
        subject=payload.subject.strip(),
        description=payload.description,
        status=models.TicketStatus.Open,
        attachments=[a.model_dump() for a in payload.attachments],
        updates=[],
    )
    db.add(ticket)
    db.commit()
    db.refresh(ticket)
    logger.info("Support ticket %s opened by user %s", ticket.ticket_id, current_user.id)

    background_tasks.add_task(
        mailer.send_support_ticket_user_email,
        current_user.email, current_user.name, ticket.ticket_id, ticket.subject, ticket.type.value,
    )
    background_tasks.add_task(
        mailer.send_support_ticket_agent_email,
        ticket.ticket_id, current_user.email, ticket.subject, ticket.description,
    )
    return success_response({"ticket": ticket_to_dict(ticket)}, "Support ticket created successfully")


@router.get("/tickets")
def list_tickets(
    status: Optional[models.TicketStatus] = Query(None),
    type: Optional[models.TicketType] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    skip: int = Query(0, ge=0),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    q = _scoped(db, current_user)
    if status is not None:
        q = q.filter(models.SupportTicket.status == status)
    if type is not None:
        q = q.filter(models.SupportTicket.type == type)
    total = q.count()
    rows = q.order_by(models.SupportTicket.created_at.desc(), models.SupportTicket.id.desc()).offset(skip).limit(limit).all()
    return success_response({"tickets": [ticket_to_dict(t) for t in rows], "total": total})


@router.get("/tickets/stats")
def ticket_stats(current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    q = db.query(models.SupportTicket.status, func.count(models.SupportTicket.id))
    if not is_admin(current_user):
        q = q.filter(models.SupportTicket.user_id == current_user.id)
    counts = dict(q.group_by(models.SupportTicket.status).all())
    data = {key: counts.get(status, 0) for status, key in STATS_KEYS.items()}
    data["total"] = sum(counts.values())
    return success_response(data)


@router.get("/tickets/{ticket_id}")
def get_ticket(ticket_id: str, current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    return success_response({"ticket": ticket_to_dict(_get_ticket(db, ticket_id, current_user))})


@router.put("/tickets/{ticket_id}/status")
def update_ticket_status(
    ticket_id: str,
    payload: TicketStatusUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    ticket = _get_ticket(db, ticket_id, current_user)
    ticket.status = payload.status
    db.commit()
    db.refresh(ticket)
    return success_response({"ticket": ticket_to_dict(ticket)}, "Ticket status updated successfully")


@router.post("/tickets/{ticket_id}/attachments")
def add_attachment(
    ticket_id: str,
    payload: Attachment,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    ticket = _get_ticket(db, ticket_id, current_user)
    # reassign so the JSON column is seen as changed
    ticket.attachments = list(ticket.attachments or []) + [payload.model_dump()]
    db.commit()
    db.refresh(ticket)
    return success_response({"ticket": ticket_to_dict(ticket)}, "Attachment added successfully")


@router.post("/tickets/{ticket_id}/updates")
def add_update(
    ticket_id: str,
    payload: TicketUpdateCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    ticket = _get_ticket(db, ticket_id, current_user)
    entry = {
        "message": payload.message,
        "addedBy": "agent" if is_admin(current_user) else "user",
        "addedAt": datetime.utcnow().isoformat(),
    }
    ticket.updates = list(ticket.updates or []) + [entry]
    db.commit()
    db.refresh(ticket)
    return success_response({"ticket": ticket_to_dict(ticket)}, "Update added successfully")


@router.delete("/tickets/{ticket_id}")
def delete_ticket(ticket_id: str, admin: models.User = Depends(require_admin), db: Session = Depends(get_db_dep)):
    ticket = _get_ticket(db, ticket_id, admin)
    db.delete(ticket)
    db.commit()
    return success_response({"ticketId": ticket_id}, "Ticket deleted successfully")
