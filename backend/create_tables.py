# create_tables.py: run once to create missing tables (development helper)
import logging
import sys

from spentiva.db.base import Base
from spentiva.db.session import engine
import spentiva.db.models  # noqa: F401

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

logger.info("Creating Spentiva tables in the database (if not exist)...")
try:
    Base.metadata.create_all(bind=engine)
    logger.info("Done.")
except Exception:
    logger.exception("Error creating tables:")
    sys.exit(1)
