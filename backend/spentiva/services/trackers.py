# spentiva/services/trackers.py
"""Tracker access rules and serialization shared by every tracker-scoped router."""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from spentiva.core.responses import bad_request
from spentiva.db import models
from spentiva.services.catalog import default_tracker_categories

logger = logging.getLogger(__name__)

TRACKER_NOT_FOUND = "Tracker not found"

OWNER = "owner"
EDITOR = "editor"
VIEWER = "viewer"


def tracker_role(tracker: models.Tracker, user: models.User) -> Optional[str]:
    """owner / editor / viewer for accepted shares, None when the user has no access."""
    if tracker.user_id == user.id:
        return OWNER
    for share in tracker.shares:
        if share.status != models.ShareStatus.accepted:
            continue
        if share.user_id == user.id or (share.user_id is None and share.email == user.email):
            return share.role.value
    return None


def get_tracker_for(
    db: Session,
    tracker_id: int,
    user: models.User,
    write: bool = False,
    owner_only: bool = False,
) -> models.Tracker:
    tracker = db.query(models.Tracker).filter(models.Tracker.id == tracker_id).first()
    role = tracker_role(tracker, user) if tracker else None
    if role is None:
        raise bad_request(TRACKER_NOT_FOUND)
    if owner_only and role != OWNER:
        raise bad_request(TRACKER_NOT_FOUND)
    if write and role == VIEWER:
        raise bad_request("You have view-only access to this tracker")
    return tracker


def readable_tracker_ids(db: Session, user: models.User) -> List[int]:
    owned = db.query(models.Tracker.id).filter(models.Tracker.user_id == user.id)
    shared = db.query(models.TrackerShare.tracker_id).filter(
        models.TrackerShare.status == models.ShareStatus.accepted,
        or_(models.TrackerShare.user_id == user.id, models.TrackerShare.email == user.email),
    )
    return sorted({r[0] for r in owned.all()} | {r[0] for r in shared.all()})


def seed_default_categories(db: Session, tracker: models.Tracker) -> List[models.Category]:
    cats = [
        models.Category(tracker_id=tracker.id, name=c["name"], subcategories=c["subcategories"])
        for c in default_tracker_categories()
    ]
    db.add_all(cats)
    return cats


def share_to_dict(share: models.TrackerShare) -> Dict[str, Any]:
    return {
        "userId": share.user_id,
        "email": share.email,
        "name": share.name,
        "role": share.role.value,
        "status": share.status.value,
        "invitedAt": share.invited_at.isoformat() if share.invited_at else None,
    }


def tracker_to_dict(tracker: models.Tracker, role: Optional[str] = None, include_shares: bool = False) -> Dict[str, Any]:
    out = {
        "id": tracker.id,
        "name": tracker.name,
        "type": tracker.type.value,
        "description": tracker.description,
        "currency": tracker.currency.value,
        "botImage": tracker.bot_image,
        "userId": tracker.user_id,
        "createdAt": tracker.created_at.isoformat() if tracker.created_at else None,
        "updatedAt": tracker.updated_at.isoformat() if tracker.updated_at else None,
    }
    if role is not None:
        out["role"] = role
    if include_shares:
        out["sharedWith"] = [share_to_dict(s) for s in tracker.shares]
    return out
