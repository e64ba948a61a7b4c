"""
Apply Alembic migrations to the configured database.
Run: python -m scripts.run_migrations [DATABASE_URL]
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.logging_config import setup_logging
from app.db.migrate import run_migrations


if __name__ == "__main__":
    setup_logging(log_level="INFO")
    run_migrations(sys.argv[1] if len(sys.argv) > 1 else None)
