"""
Unit tests for webhook payload parsing.
"""
import json
import pytest
from datetime import datetime
from decimal import Decimal

from app.core.errors import UnparseableEvent
from app.db.models.subscription import SubscriptionStatus
from app.schemas.webhook_events import (
    CheckoutCompleted,
    PaymentFailed,
    PaymentSucceeded,
    SubscriptionChanged,
    SubscriptionDeleted,
    UnhandledEvent,
    parse_event,
)

from conftest import build_event, checkout_object, invoice_object, subscription_object


def test_checkout_completed():
    event = parse_event(build_event("evt_1", "checkout.session.completed", checkout_object(42, tier="PREMIUM")))

    assert isinstance(event, CheckoutCompleted)
    assert event.event_id == "evt_1"
    assert event.user_id == 42
    assert event.tier == "PREMIUM"
    assert event.external_subscription_id == "sub_123"
    assert event.created == datetime(2025, 10, 9, 8, 53, 20)


def test_expanded_objects_collapse_to_ids():
    obj = checkout_object(1)
    obj["customer"] = {"id": "cus_expanded", "object": "customer"}

    event = parse_event(build_event("evt_1", "checkout.session.completed", obj))

    assert event.customer_id == "cus_expanded"


def test_non_numeric_user_reference_is_ignored():
    obj = checkout_object(1)
    obj["metadata"]["user_id"] = "abc"

    assert parse_event(build_event("evt_1", "checkout.session.completed", obj)).user_id is None


@pytest.mark.parametrize("provider_status,expected", [
    ("trialing", SubscriptionStatus.TRIALING),
    ("active", SubscriptionStatus.ACTIVE),
    ("past_due", SubscriptionStatus.PAST_DUE),
    ("unpaid", SubscriptionStatus.PAST_DUE),
    ("canceled", SubscriptionStatus.CANCELED),
    ("incomplete_expired", SubscriptionStatus.CANCELED),
])
def test_subscription_status_mapping(provider_status, expected):
    event = parse_event(build_event(
        "evt_1", "customer.subscription.updated", subscription_object(status=provider_status),
    ))

    assert isinstance(event, SubscriptionChanged)
    assert event.status == expected
    assert event.price_id == "price_pro_monthly"


def test_unknown_subscription_status_is_unparseable():
    with pytest.raises(UnparseableEvent):
        parse_event(build_event("evt_1", "customer.subscription.updated", subscription_object(status="frozen")))


def test_top_level_period_wins_over_item_period():
    obj = subscription_object(period_start=1_700_000_000, period_end=1_702_592_000)
    obj["current_period_start"] = 1_760_000_000
    obj["current_period_end"] = 1_762_592_000

    event = parse_event(build_event("evt_1", "customer.subscription.updated", obj))

    assert event.period_start == datetime(2025, 10, 9, 8, 53, 20)


def test_subscription_deleted():
    event = parse_event(build_event("evt_1", "customer.subscription.deleted", {"id": "sub_9"}))

    assert isinstance(event, SubscriptionDeleted)
    assert event.external_subscription_id == "sub_9"


def test_invoice_amounts_in_major_units():
    succeeded = parse_event(build_event("evt_1", "invoice.payment_succeeded", invoice_object(amount=2999)))
    failed = parse_event(build_event("evt_2", "invoice.payment_failed", invoice_object(amount=1499, currency="usd")))
    yen = parse_event(build_event("evt_3", "invoice.payment_succeeded", invoice_object(amount=1500, currency="jpy")))

    assert isinstance(succeeded, PaymentSucceeded)
    assert succeeded.amount == Decimal("29.99")
    assert succeeded.currency == "CAD"
    assert isinstance(failed, PaymentFailed)
    assert failed.amount == Decimal("14.99")
    assert yen.amount == Decimal("1500")


def test_invoice_subscription_from_parent_details():
    obj = invoice_object(subscription_id=None)
    obj["parent"] = {"subscription_details": {"subscription": "sub_nested"}}

    event = parse_event(build_event("evt_1", "invoice.payment_failed", obj))

    assert event.external_subscription_id == "sub_nested"


def test_unhandled_type():
    event = parse_event(build_event("evt_1", "payout.paid", {"id": "po_1"}))

    assert isinstance(event, UnhandledEvent)
    assert event.event_type == "payout.paid"


@pytest.mark.parametrize("payload", [
    b"",
    b"[]",
    json.dumps({"id": "", "type": "payout.paid", "data": {"object": {}}}).encode(),
    json.dumps({"id": "evt_1", "type": "payout.paid"}).encode(),
])
def test_malformed_envelopes(payload):
    with pytest.raises(UnparseableEvent):
        parse_event(payload)
