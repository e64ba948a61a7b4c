"""
Logging configuration for the Apply subscriptions API.

Billing logs go to stdout and to a rotating file. Anything that may carry
provider credentials or signatures is passed through sanitize_log_data first.
"""
import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler

REDACTED = "***REDACTED***"

SENSITIVE_KEYS = (
    "password", "token", "secret", "key", "signature",
    "database_url", "authorization", "client_secret",
)


def setup_logging(log_level: str = "INFO", log_dir: str = "logs"):
    """
    Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for the rotating billing log file
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    ))

    file_handler = RotatingFileHandler(
        log_path / "apply-billing.log",
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    ))

    root.addHandler(console_handler)
    root.addHandler(file_handler)

    # Stripe logs request bodies at INFO
    for noisy in ("uvicorn", "uvicorn.access", "stripe", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    logging.getLogger("alembic").setLevel(logging.INFO)


def _is_sensitive(key) -> bool:
    return isinstance(key, str) and any(s in key.lower() for s in SENSITIVE_KEYS)


def sanitize_log_data(data):
    """
    Return a copy of data with sensitive values redacted.

    Nested dicts and lists (webhook metadata, provider responses) are walked
    recursively; keys are matched case-insensitively by substring.
    """
    if isinstance(data, dict):
        return {
            k: REDACTED if _is_sensitive(k) and v is not None else sanitize_log_data(v)
            for k, v in data.items()
        }
    if isinstance(data, (list, tuple)):
        return type(data)(sanitize_log_data(item) for item in data)
    return data
