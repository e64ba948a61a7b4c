"""
Schema creation through Alembic and through model metadata.
"""
from sqlalchemy import create_engine, inspect

from app.db.init_db import init_db
from app.db.migrate import run_migrations

EXPECTED_TABLES = {
    "users",
    "subscriptions",
    "billing_customers",
    "payments",
    "webhook_event_receipts",
    "usage_periods",
    "daily_usage",
}


def test_run_migrations_creates_billing_schema(tmp_path):
    database_url = f"sqlite:///{tmp_path}/migrations.db"

    run_migrations(database_url)
    # Re-running at head is a no-op
    run_migrations(database_url)

    engine = create_engine(database_url)
    try:
        inspector = inspect(engine)
        assert EXPECTED_TABLES <= set(inspector.get_table_names())
        unique_indexes = {
            index["name"] for index in inspector.get_indexes("webhook_event_receipts") if index["unique"]
        }
        assert "ix_webhook_event_receipts_external_event_id" in unique_indexes
    finally:
        engine.dispose()


def test_init_db_creates_tables(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path}/init.db")
    try:
        init_db(bind=engine)
        assert EXPECTED_TABLES <= set(inspect(engine).get_table_names())
    finally:
        engine.dispose()
