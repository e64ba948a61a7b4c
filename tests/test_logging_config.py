"""
Tests for log sanitization and logging setup.
"""
import logging

from app.core.logging_config import REDACTED, sanitize_log_data, setup_logging


def test_sanitize_redacts_secrets():
    data = {
        "stripe_secret_key": "sk_live_abc",
        "Stripe-Signature": "t=1,v1=abc",
        "database_url": "postgresql://u:p@host/db",
        "frontend_url": "https://app.test",
        "trial_period_days": 14,
    }

    sanitized = sanitize_log_data(data)

    assert sanitized["stripe_secret_key"] == REDACTED
    assert sanitized["Stripe-Signature"] == REDACTED
    assert sanitized["database_url"] == REDACTED
    assert sanitized["frontend_url"] == "https://app.test"
    assert sanitized["trial_period_days"] == 14
    assert data["stripe_secret_key"] == "sk_live_abc"


def test_sanitize_walks_nested_payloads():
    data = {
        "metadata": {"user_id": "1", "access_token": "abc"},
        "items": [{"client_secret": "pi_secret"}, {"price": "price_1"}],
        "webhook_secret": None,
    }

    sanitized = sanitize_log_data(data)

    assert sanitized["metadata"] == {"user_id": "1", "access_token": REDACTED}
    assert sanitized["items"] == [{"client_secret": REDACTED}, {"price": "price_1"}]
    # Unset values stay visible so missing configuration shows up in logs
    assert sanitized["webhook_secret"] is None


def test_setup_logging_writes_billing_log(tmp_path):
    root = logging.getLogger()
    previous_handlers = root.handlers[:]
    previous_level = root.level
    try:
        setup_logging(log_level="debug", log_dir=str(tmp_path / "logs"))

        assert root.level == logging.DEBUG
        assert logging.getLogger("stripe").level == logging.WARNING

        logging.getLogger("app.test").info("checkout completed")
        for handler in root.handlers:
            handler.flush()

        log_file = tmp_path / "logs" / "apply-billing.log"
        assert "checkout completed" in log_file.read_text()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = previous_handlers
        root.setLevel(previous_level)
