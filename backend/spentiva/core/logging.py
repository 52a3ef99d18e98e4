# spentiva/core/logging.py
import logging

from spentiva.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = None) -> None:
    """Configure root logging once; uvicorn's own handlers are left alone."""
    logging.basicConfig(level=(level or settings.LOG_LEVEL).upper(), format=LOG_FORMAT)
    # passlib logs a noisy warning about bcrypt version probing
    logging.getLogger("passlib").setLevel(logging.ERROR)
