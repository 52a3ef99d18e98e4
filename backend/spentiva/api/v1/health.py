# spentiva/api/v1/health.py
import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from spentiva.api.v1.deps import get_db_dep
from spentiva.core.config import settings
from spentiva.core.responses import success_response
from spentiva.schemas.simple import Health

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])

STARTED_AT = time.monotonic()


@router.get("/health")
def health(db: Session = Depends(get_db_dep)):
    try:
        db.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        database = "disconnected"

    ok = database == "connected"
    report = Health(
        status="healthy" if ok else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime=round(time.monotonic() - STARTED_AT, 3),
        environment=settings.ENVIRONMENT,
        version=settings.VERSION,
        checks={"database": database},
    )
    message = "Service is healthy" if ok else "Service degraded - database not connected"
    return success_response(report.model_dump(), message)


@router.get("/ping")
def ping():
    return success_response({"message": "pong"}, "pong")
