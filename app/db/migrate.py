"""
Database migration runner for Alembic migrations.
"""
import logging
import os
from alembic.config import Config
from alembic import command
from sqlalchemy import create_engine, text

logger = logging.getLogger(__name__)

ADVISORY_LOCK_ID = 918273645


def _alembic_config(database_url: str) -> Config:
    root = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))
    alembic_cfg = Config(os.path.join(root, "alembic.ini"))
    alembic_cfg.set_main_option("script_location", os.path.join(root, "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", database_url)
    return alembic_cfg


def run_migrations(database_url: str = None):
    """
    Run Alembic migrations to head revision.
    Uses a Postgres advisory lock so concurrent deploys do not migrate twice.
    """
    from app.core import config as app_config

    database_url = database_url or app_config.DATABASE_URL
    if not database_url:
        raise ValueError("DATABASE_URL is not set")

    logger.info("Running alembic upgrade head")
    alembic_cfg = _alembic_config(database_url)

    if not database_url.startswith("postgresql"):
        command.upgrade(alembic_cfg, "head")
        logger.info("Migrations complete")
        return

    engine = create_engine(database_url, pool_pre_ping=True)
    try:
        with engine.connect() as lock_conn:
            lock_conn.execute(text(f"SELECT pg_advisory_lock({ADVISORY_LOCK_ID})"))
            lock_conn.commit()
            logger.info("Migration lock acquired")
            try:
                command.upgrade(alembic_cfg, "head")
                logger.info("Migrations complete")
            except Exception:
                logger.exception("Migration failed")
                raise
            finally:
                lock_conn.execute(text(f"SELECT pg_advisory_unlock({ADVISORY_LOCK_ID})"))
                lock_conn.commit()
    finally:
        engine.dispose()
