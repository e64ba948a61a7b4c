"""
Unit tests for the subscription store and lifecycle transitions.
"""
import pytest
from datetime import datetime

from app.core.errors import NoActiveSubscription
from app.db.models.subscription import (
    Subscription,
    SubscriptionTier,
    SubscriptionStatus,
    BillingPeriod,
)
from app.services.subscription_store import SubscriptionStore, can_transition

from conftest import TestSessionLocal


@pytest.fixture
def store(db):
    return SubscriptionStore(db)


@pytest.fixture
def pro_subscription(db, store, test_user):
    row = store.upsert_on_checkout_completed(
        user_id=test_user.id,
        customer_id="cus_123",
        external_subscription_id="sub_123",
        event_at=datetime(2026, 1, 1, 12, 0, 0),
    )
    db.commit()
    return row


def test_default_is_free_and_never_inserted(db, store, test_user):
    view = store.get_or_create_default(test_user.id)

    assert view.is_default
    assert view.tier == SubscriptionTier.FREE
    assert view.status == SubscriptionStatus.ACTIVE
    assert view.external_subscription_id is None
    assert db.query(Subscription).count() == 0


def test_checkout_creates_pro_active_row(pro_subscription, store, test_user):
    view = store.get_or_create_default(test_user.id)

    assert not view.is_default
    assert view.tier == SubscriptionTier.PRO
    assert view.status == SubscriptionStatus.ACTIVE
    assert view.external_subscription_id == "sub_123"
    assert view.customer_id == "cus_123"


def test_checkout_uses_metadata_tier(db, store, test_user):
    store.upsert_on_checkout_completed(
        user_id=test_user.id,
        customer_id="cus_123",
        external_subscription_id="sub_123",
        tier=SubscriptionTier.PREMIUM,
        billing_period=BillingPeriod.YEARLY,
    )
    db.commit()

    row = store.get(test_user.id)
    assert row.tier == SubscriptionTier.PREMIUM
    assert row.billing_period == BillingPeriod.YEARLY


def test_checkout_on_existing_row_updates_identifiers(db, store, pro_subscription, test_user):
    store.apply_provider_deletion("sub_123", event_at=datetime(2026, 1, 2))
    store.upsert_on_checkout_completed(
        user_id=test_user.id,
        customer_id="cus_123",
        external_subscription_id="sub_456",
        event_at=datetime(2026, 2, 1),
    )
    db.commit()

    rows = db.query(Subscription).all()
    assert len(rows) == 1
    assert rows[0].external_subscription_id == "sub_456"
    assert rows[0].status == SubscriptionStatus.ACTIVE
    assert rows[0].canceled_at is None


def test_provider_update_sets_absolute_state(db, store, pro_subscription):
    store.apply_provider_update(
        "sub_123",
        status=SubscriptionStatus.TRIALING,
        cancel_at_period_end=True,
        period_start=datetime(2026, 1, 1),
        period_end=datetime(2026, 2, 1),
        tier=SubscriptionTier.PREMIUM,
        billing_period=BillingPeriod.YEARLY,
        trial_end=datetime(2026, 1, 15),
        event_at=datetime(2026, 1, 1, 13, 0, 0),
    )
    db.commit()

    row = store.get_by_external_id("sub_123")
    assert row.status == SubscriptionStatus.TRIALING
    assert row.cancel_at_period_end is True
    assert row.tier == SubscriptionTier.PREMIUM
    assert row.billing_period == BillingPeriod.YEARLY
    assert row.current_period_end == datetime(2026, 2, 1)
    assert row.trial_end == datetime(2026, 1, 15)
    assert row.provider_event_at == datetime(2026, 1, 1, 13, 0, 0)


def test_stale_provider_update_is_ignored(db, store, pro_subscription):
    store.apply_provider_update(
        "sub_123", SubscriptionStatus.ACTIVE, cancel_at_period_end=True,
        event_at=datetime(2026, 1, 3),
    )
    store.apply_provider_update(
        "sub_123", SubscriptionStatus.ACTIVE, cancel_at_period_end=False,
        event_at=datetime(2026, 1, 2),
    )
    db.commit()

    row = store.get_by_external_id("sub_123")
    assert row.cancel_at_period_end is True
    assert row.provider_event_at == datetime(2026, 1, 3)


def test_update_with_equal_timestamp_is_applied(db, store, pro_subscription):
    at = datetime(2026, 1, 3)
    store.apply_provider_update("sub_123", SubscriptionStatus.ACTIVE, cancel_at_period_end=True, event_at=at)
    store.apply_provider_update("sub_123", SubscriptionStatus.ACTIVE, cancel_at_period_end=False, event_at=at)
    db.commit()

    assert store.get_by_external_id("sub_123").cancel_at_period_end is False


def test_update_for_unknown_subscription_is_dropped(db, store):
    assert store.apply_provider_update("sub_missing", SubscriptionStatus.ACTIVE, False) is None
    assert db.query(Subscription).count() == 0


def test_deletion_cancels_and_keeps_tier(db, store, pro_subscription, test_user):
    store.apply_provider_deletion("sub_123")
    db.commit()

    view = store.get_or_create_default(test_user.id)
    assert view.status == SubscriptionStatus.CANCELED
    assert view.tier == SubscriptionTier.PRO
    assert view.effective_tier == SubscriptionTier.FREE
    assert view.canceled_at is not None
    assert view.external_subscription_id == "sub_123"


def test_past_due_and_recovery(db, store, pro_subscription):
    store.mark_past_due("sub_123")
    assert store.get_by_external_id("sub_123").status == SubscriptionStatus.PAST_DUE

    store.mark_payment_recovered("sub_123")
    assert store.get_by_external_id("sub_123").status == SubscriptionStatus.ACTIVE


def test_past_due_does_not_resurrect_canceled(db, store, pro_subscription):
    store.apply_provider_deletion("sub_123")
    store.mark_past_due("sub_123")

    assert store.get_by_external_id("sub_123").status == SubscriptionStatus.CANCELED


def test_cancel_flag_requires_paid_subscription(store, test_user):
    with pytest.raises(NoActiveSubscription):
        store.set_cancel_at_period_end(test_user.id, True)


def test_cancel_flag_and_clear(db, store, pro_subscription, test_user):
    row = store.set_cancel_at_period_end(test_user.id, True)
    assert row.cancel_at_period_end is True
    assert row.canceled_at is not None

    row = store.clear_cancellation(test_user.id)
    assert row.cancel_at_period_end is False
    assert row.canceled_at is None


def test_transition_table():
    assert can_transition(SubscriptionStatus.TRIALING, SubscriptionStatus.ACTIVE)
    assert can_transition(SubscriptionStatus.ACTIVE, SubscriptionStatus.PAST_DUE)
    assert can_transition(SubscriptionStatus.PAST_DUE, SubscriptionStatus.ACTIVE)
    assert can_transition(SubscriptionStatus.ACTIVE, SubscriptionStatus.ACTIVE)
    assert not can_transition(SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING)
    assert not can_transition(SubscriptionStatus.CANCELED, SubscriptionStatus.PAST_DUE)


def test_checkout_does_not_fence_earlier_subscription_events(db, store, pro_subscription):
    # Emitted just before checkout completed, delivered after it
    store.apply_provider_update(
        "sub_123",
        status=SubscriptionStatus.TRIALING,
        cancel_at_period_end=False,
        period_start=datetime(2026, 1, 1, 11, 59, 59),
        period_end=datetime(2026, 1, 15, 11, 59, 59),
        event_at=datetime(2026, 1, 1, 11, 59, 59),
    )
    db.commit()

    row = store.get_by_external_id("sub_123")
    assert row.status == SubscriptionStatus.TRIALING
    assert row.current_period_end == datetime(2026, 1, 15, 11, 59, 59)


def test_redelivered_checkout_keeps_state_set_by_subscription_events(db, store, pro_subscription, test_user):
    store.apply_provider_update(
        "sub_123", SubscriptionStatus.TRIALING, cancel_at_period_end=False,
        event_at=datetime(2026, 1, 1, 12, 0, 1),
    )
    store.upsert_on_checkout_completed(
        user_id=test_user.id,
        customer_id="cus_123",
        external_subscription_id="sub_123",
        event_at=datetime(2026, 1, 1, 12, 0, 0),
    )
    db.commit()

    assert store.get(test_user.id).status == SubscriptionStatus.TRIALING


def test_new_checkout_clears_pending_cancellation(db, store, pro_subscription, test_user):
    store.set_cancel_at_period_end(test_user.id, True)
    db.commit()

    store.upsert_on_checkout_completed(
        user_id=test_user.id,
        customer_id="cus_123",
        external_subscription_id="sub_456",
    )
    db.commit()

    row = store.get(test_user.id)
    assert row.external_subscription_id == "sub_456"
    assert row.status == SubscriptionStatus.ACTIVE
    assert row.cancel_at_period_end is False
    assert row.canceled_at is None


def test_concurrent_checkout_creates_one_row(db, store, test_user, monkeypatch):
    real_get = store.get
    calls = []

    def get_losing_the_race(user_id):
        if not calls:
            calls.append(user_id)
            # A concurrent delivery inserts the row between our lookup and our insert
            other = TestSessionLocal()
            try:
                other.add(Subscription(
                    user_id=user_id,
                    tier=SubscriptionTier.PRO,
                    status=SubscriptionStatus.ACTIVE,
                    external_subscription_id="sub_123",
                    customer_id="cus_123",
                ))
                other.commit()
            finally:
                other.close()
            return None
        return real_get(user_id)

    monkeypatch.setattr(store, "get", get_losing_the_race)

    row = store.upsert_on_checkout_completed(
        user_id=test_user.id,
        customer_id="cus_123",
        external_subscription_id="sub_123",
        tier=SubscriptionTier.PREMIUM,
    )
    db.commit()

    assert calls == [test_user.id]
    assert db.query(Subscription).count() == 1
    assert row.tier == SubscriptionTier.PREMIUM
    assert row.status == SubscriptionStatus.ACTIVE
