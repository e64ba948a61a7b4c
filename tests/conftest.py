"""
Shared fixtures: in-memory SQLite database, a fake payment provider and
webhook payload builders.
"""
import json
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.errors import ProviderUnavailable
from app.db.base import Base
from app.db.models.user import User
from app.services.payment_provider import PaymentProviderClient, ProviderCustomer, ProviderSession

import app.db.models  # noqa: F401


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

VALID_SIGNATURE = "t=1,v1=valid"

PRICE_IDS = {
    ("PRO", "MONTHLY"): "price_pro_monthly",
    ("PRO", "YEARLY"): "price_pro_yearly",
    ("PREMIUM", "MONTHLY"): "price_premium_monthly",
    ("PREMIUM", "YEARLY"): "price_premium_yearly",
}


class FakePaymentProvider(PaymentProviderClient):
    """Records calls; fails every call with ProviderUnavailable when fail=True."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    def _call(self, method, **kwargs):
        self.calls.append((method, kwargs))
        if self.fail:
            raise ProviderUnavailable(f"{method} failed: provider down")

    def call_names(self):
        return [name for name, _ in self.calls]

    def create_customer(self, email, name, user_id):
        self._call("create_customer", email=email, name=name, user_id=user_id)
        return ProviderCustomer(id=f"cus_test_{user_id}", email=email, name=name)

    def create_checkout_session(self, customer_id, price_id, success_url, cancel_url, trial_days=None, metadata=None):
        self._call(
            "create_checkout_session",
            customer_id=customer_id,
            price_id=price_id,
            success_url=success_url,
            cancel_url=cancel_url,
            trial_days=trial_days,
            metadata=metadata,
        )
        return ProviderSession(id="cs_test_1", url="https://checkout.test/cs_test_1")

    def create_portal_session(self, customer_id, return_url):
        self._call("create_portal_session", customer_id=customer_id, return_url=return_url)
        return ProviderSession(id="bps_test_1", url="https://billing.test/bps_test_1")

    def cancel_at_period_end(self, external_subscription_id):
        self._call("cancel_at_period_end", external_subscription_id=external_subscription_id)

    def reactivate(self, external_subscription_id):
        self._call("reactivate", external_subscription_id=external_subscription_id)

    def verify_webhook_signature(self, payload, signature_header):
        return signature_header == VALID_SIGNATURE


def build_event(event_id, event_type, obj, created=1_760_000_000) -> bytes:
    return json.dumps({
        "id": event_id,
        "type": event_type,
        "created": created,
        "data": {"object": obj},
    }).encode("utf-8")


def checkout_object(user_id, subscription_id="sub_123", customer_id="cus_123", tier="PRO", billing_period="MONTHLY", email=None):
    return {
        "id": "cs_test_1",
        "object": "checkout.session",
        "customer": customer_id,
        "subscription": subscription_id,
        "customer_email": email,
        "metadata": {"user_id": str(user_id), "tier": tier, "billing_period": billing_period},
    }


def subscription_object(
    subscription_id="sub_123",
    status="active",
    price_id="price_pro_monthly",
    cancel_at_period_end=False,
    period_start=1_760_000_000,
    period_end=1_762_592_000,
    customer_id="cus_123",
):
    return {
        "id": subscription_id,
        "object": "subscription",
        "customer": customer_id,
        "status": status,
        "cancel_at_period_end": cancel_at_period_end,
        "items": {"data": [{
            "price": {"id": price_id},
            "current_period_start": period_start,
            "current_period_end": period_end,
        }]},
    }


def invoice_object(invoice_id="in_123", subscription_id="sub_123", customer_id="cus_123", amount=1499, currency="cad"):
    return {
        "id": invoice_id,
        "object": "invoice",
        "customer": customer_id,
        "subscription": subscription_id,
        "amount_paid": amount,
        "amount_due": amount,
        "currency": currency,
        "hosted_invoice_url": f"https://invoice.test/{invoice_id}",
    }


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def test_user(db):
    """Create a test user."""
    user = User(full_name="Test User", email="test@example.com")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def provider():
    return FakePaymentProvider()


@pytest.fixture
def price_ids():
    return dict(PRICE_IDS)
