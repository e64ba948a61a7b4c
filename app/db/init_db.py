"""
Create all tables directly from model metadata (local development and tests).

Production schemas are managed by Alembic, see app.db.migrate.
"""
import logging
from app.db.session import engine
from app.db.base import Base
import app.db.models  # noqa: F401  (registers every model on Base.metadata)

logger = logging.getLogger(__name__)


def init_db(bind=None):
    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables created")
