# spentiva/services/otp.py
"""One-time codes for email verification, password reset and tracker deletion."""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from spentiva.core.config import settings
from spentiva.db import models
from spentiva.services.security import generate_otp

logger = logging.getLogger(__name__)

INVALID_OTP = "Invalid or expired OTP"


def _scope(db: Session, identifier: str, purpose: models.OtpPurpose, tracker_id: Optional[int]):
    q = db.query(models.Otp).filter(models.Otp.identifier == identifier.lower(), models.Otp.purpose == purpose)
    if tracker_id is not None:
        q = q.filter(models.Otp.tracker_id == tracker_id)
    return q


def issue_otp(
    db: Session,
    identifier: str,
    purpose: models.OtpPurpose,
    tracker_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> models.Otp:
    """Replace any pending code for the same scope with a fresh one. Caller commits."""
    now = now or datetime.utcnow()
    _scope(db, identifier, purpose, tracker_id).filter(models.Otp.verified.is_(False)).delete(
        synchronize_session="fetch"
    )
    otp = models.Otp(
        identifier=identifier.lower(),
        otp=generate_otp(),
        purpose=purpose,
        tracker_id=tracker_id,
        expires_at=now + timedelta(minutes=settings.OTP_EXPIRE_MINUTES),
        verified=False,
    )
    db.add(otp)
    logger.info("Issued %s OTP for %s", purpose.value, identifier)
    return otp


def find_valid_otp(
    db: Session,
    identifier: str,
    purpose: models.OtpPurpose,
    code: str,
    tracker_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Optional[models.Otp]:
    now = now or datetime.utcnow()
    return (
        _scope(db, identifier, purpose, tracker_id)
        .filter(
            models.Otp.otp == code,
            models.Otp.verified.is_(False),
            models.Otp.expires_at > now,
        )
        .order_by(models.Otp.created_at.desc())
        .first()
    )
