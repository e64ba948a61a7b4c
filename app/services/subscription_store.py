"""
Subscription store and lifecycle state machine.

One subscription row per user. Users without a row are implicitly FREE/ACTIVE and
no row is ever written for them. Rows are created on checkout completion and then
mutated by provider webhooks, except for the optimistic cancel_at_period_end flips
made on direct user action.

Store methods flush but never commit: the caller owns the transaction so a
webhook's state change and its receipt land in the same commit.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import NoActiveSubscription
from app.db.base import utcnow
from app.db.models.subscription import (
    Subscription,
    SubscriptionTier,
    SubscriptionStatus,
    BillingPeriod,
    PaymentProvider,
)

logger = logging.getLogger(__name__)

# Legal lifecycle moves. The provider is the source of truth, so an
# unexpected move is still applied, only logged.
ALLOWED_TRANSITIONS = {
    SubscriptionStatus.TRIALING: {SubscriptionStatus.ACTIVE, SubscriptionStatus.PAST_DUE, SubscriptionStatus.CANCELED},
    SubscriptionStatus.ACTIVE: {SubscriptionStatus.PAST_DUE, SubscriptionStatus.CANCELED},
    SubscriptionStatus.PAST_DUE: {SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELED},
    SubscriptionStatus.CANCELED: {SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING},
}


def can_transition(old: SubscriptionStatus, new: SubscriptionStatus) -> bool:
    """Check whether moving from old to new status is a normal lifecycle step."""
    if old == new:
        return True
    return new in ALLOWED_TRANSITIONS.get(old, set())


@dataclass
class SubscriptionView:
    """Read model of a user's subscription, including the implicit FREE one."""
    user_id: int
    tier: SubscriptionTier
    status: SubscriptionStatus
    billing_period: BillingPeriod
    payment_provider: Optional[PaymentProvider]
    external_subscription_id: Optional[str]
    customer_id: Optional[str]
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool = False
    canceled_at: Optional[datetime] = None
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    id: Optional[int] = None

    @property
    def is_default(self) -> bool:
        return self.id is None

    @property
    def effective_tier(self) -> SubscriptionTier:
        """Tier whose limits apply: a canceled subscription falls back to FREE."""
        if self.status == SubscriptionStatus.CANCELED:
            return SubscriptionTier.FREE
        return self.tier

    @classmethod
    def free(cls, user_id: int, now: Optional[datetime] = None) -> "SubscriptionView":
        now = now or utcnow()
        return cls(
            user_id=user_id,
            tier=SubscriptionTier.FREE,
            status=SubscriptionStatus.ACTIVE,
            billing_period=BillingPeriod.MONTHLY,
            payment_provider=None,
            external_subscription_id=None,
            customer_id=None,
            current_period_start=now,
            current_period_end=now,
        )

    @classmethod
    def from_row(cls, row: Subscription) -> "SubscriptionView":
        return cls(
            id=row.id,
            user_id=row.user_id,
            tier=row.tier,
            status=row.status,
            billing_period=row.billing_period,
            payment_provider=row.payment_provider,
            external_subscription_id=row.external_subscription_id,
            customer_id=row.customer_id,
            current_period_start=row.current_period_start,
            current_period_end=row.current_period_end,
            cancel_at_period_end=bool(row.cancel_at_period_end),
            canceled_at=row.canceled_at,
            trial_start=row.trial_start,
            trial_end=row.trial_end,
            updated_at=row.updated_at,
        )


class SubscriptionStore:
    def __init__(self, db: Session):
        self.db = db

    # ---- queries -----------------------------------------------------

    def get(self, user_id: int) -> Optional[Subscription]:
        return self.db.query(Subscription).filter(Subscription.user_id == user_id).first()

    def get_by_external_id(self, external_subscription_id: str) -> Optional[Subscription]:
        if not external_subscription_id:
            return None
        return self.db.query(Subscription).filter(
            Subscription.external_subscription_id == external_subscription_id
        ).first()

    def get_or_create_default(self, user_id: int) -> SubscriptionView:
        """Current subscription view; the FREE view when the user has no row. Never inserts."""
        row = self.get(user_id)
        if not row:
            return SubscriptionView.free(user_id)
        return SubscriptionView.from_row(row)

    # ---- provider-driven mutations -----------------------------------

    def upsert_on_checkout_completed(
        self,
        user_id: int,
        customer_id: str,
        external_subscription_id: str,
        tier: Optional[SubscriptionTier] = None,
        billing_period: Optional[BillingPeriod] = None,
        event_at: Optional[datetime] = None,
    ) -> Subscription:
        """
        Record a completed checkout.

        Creates the row when absent. The tier defaults to PRO until the next
        subscription update carries the real price; checkout metadata, when
        present, gives the tier up front. An existing row gets the new
        identifiers and is marked ACTIVE unless a subscription event already
        set its state.

        Checkout carries no status, period or trial data, so event_at is only
        logged and never becomes the provider_event_at fence.
        """
        if not external_subscription_id:
            raise ValueError("Checkout completion without a subscription id")

        row = self.get(user_id)
        if not row:
            now = utcnow()
            row = Subscription(
                user_id=user_id,
                tier=tier or SubscriptionTier.PRO,
                status=SubscriptionStatus.ACTIVE,
                billing_period=billing_period or BillingPeriod.MONTHLY,
                payment_provider=PaymentProvider.STRIPE,
                external_subscription_id=external_subscription_id,
                customer_id=customer_id,
                current_period_start=now,
                current_period_end=now,
                cancel_at_period_end=False,
            )
            try:
                with self.db.begin_nested():
                    self.db.add(row)
            except IntegrityError:
                # A concurrent delivery created the row first
                logger.info(f"Subscription row already created concurrently: user_id={user_id}")
                row = self.get(user_id)
            else:
                logger.info(
                    f"Subscription created: user_id={user_id}, tier={row.tier.value}, "
                    f"subscription_id={external_subscription_id}"
                )
                return row

        new_subscription = row.external_subscription_id != external_subscription_id
        if new_subscription:
            # A new provider subscription starts a fresh event history
            row.provider_event_at = None
        row.external_subscription_id = external_subscription_id
        row.customer_id = customer_id
        if tier and tier != SubscriptionTier.FREE:
            row.tier = tier
        if billing_period:
            row.billing_period = billing_period
        # Once a subscription event has set the state, checkout has nothing newer to say
        if row.provider_event_at is None:
            if new_subscription or row.status == SubscriptionStatus.CANCELED:
                row.canceled_at = None
                row.cancel_at_period_end = False
            self._set_status(row, SubscriptionStatus.ACTIVE)
        row.updated_at = utcnow()
        self.db.flush()

        logger.info(
            f"Checkout completed on existing subscription: user_id={user_id}, "
            f"subscription_id={external_subscription_id}, event_at={event_at}"
        )
        return row

    def apply_provider_update(
        self,
        external_subscription_id: str,
        status: SubscriptionStatus,
        cancel_at_period_end: bool,
        period_start: Optional[datetime] = None,
        period_end: Optional[datetime] = None,
        tier: Optional[SubscriptionTier] = None,
        billing_period: Optional[BillingPeriod] = None,
        trial_start: Optional[datetime] = None,
        trial_end: Optional[datetime] = None,
        canceled_at: Optional[datetime] = None,
        event_at: Optional[datetime] = None,
    ) -> Optional[Subscription]:
        """
        Set the subscription to the provider's absolute state from one event.

        Unknown subscriptions are logged and dropped; a later event reconciles.
        Events older than the last applied provider event are ignored.
        """
        row = self.get_by_external_id(external_subscription_id)
        if not row:
            logger.warning(f"Subscription update for unknown subscription_id={external_subscription_id} - dropped")
            return None
        if self._is_stale(row, event_at):
            logger.info(f"Stale subscription update ignored: subscription_id={external_subscription_id}, event_at={event_at}")
            return row

        self._set_status(row, status)
        row.cancel_at_period_end = cancel_at_period_end
        if period_start:
            row.current_period_start = period_start
        if period_end:
            row.current_period_end = period_end
        if tier and tier != SubscriptionTier.FREE:
            row.tier = tier
        if billing_period:
            row.billing_period = billing_period
        if trial_start:
            row.trial_start = trial_start
        if trial_end:
            row.trial_end = trial_end
        if status == SubscriptionStatus.CANCELED:
            row.canceled_at = canceled_at or row.canceled_at or utcnow()
        elif not cancel_at_period_end:
            row.canceled_at = None
        self._touch_event(row, event_at)
        row.updated_at = utcnow()
        self.db.flush()

        logger.info(
            f"Subscription updated: user_id={row.user_id}, status={row.status.value}, tier={row.tier.value}, "
            f"cancel_at_period_end={row.cancel_at_period_end}, subscription_id={external_subscription_id}"
        )
        return row

    def apply_provider_deletion(
        self,
        external_subscription_id: str,
        event_at: Optional[datetime] = None,
    ) -> Optional[Subscription]:
        """Mark the subscription CANCELED. Tier and identifiers are kept for reactivation."""
        row = self.get_by_external_id(external_subscription_id)
        if not row:
            logger.warning(f"Subscription deletion for unknown subscription_id={external_subscription_id} - dropped")
            return None
        if self._is_stale(row, event_at):
            logger.info(f"Stale subscription deletion ignored: subscription_id={external_subscription_id}")
            return row

        self._set_status(row, SubscriptionStatus.CANCELED)
        row.canceled_at = row.canceled_at or utcnow()
        row.cancel_at_period_end = False
        self._touch_event(row, event_at)
        row.updated_at = utcnow()
        self.db.flush()

        logger.info(f"Subscription deleted: user_id={row.user_id}, subscription_id={external_subscription_id}")
        return row

    def mark_past_due(
        self,
        external_subscription_id: str,
        event_at: Optional[datetime] = None,
    ) -> Optional[Subscription]:
        row = self.get_by_external_id(external_subscription_id)
        if not row:
            logger.warning(f"Payment failure for unknown subscription_id={external_subscription_id} - dropped")
            return None
        if self._is_stale(row, event_at):
            return row
        if row.status == SubscriptionStatus.CANCELED:
            logger.info(f"Payment failure on canceled subscription ignored: subscription_id={external_subscription_id}")
            return row

        self._set_status(row, SubscriptionStatus.PAST_DUE)
        self._touch_event(row, event_at)
        row.updated_at = utcnow()
        self.db.flush()

        logger.warning(f"Subscription past due: user_id={row.user_id}, subscription_id={external_subscription_id}")
        return row

    def mark_payment_recovered(
        self,
        external_subscription_id: str,
        event_at: Optional[datetime] = None,
    ) -> Optional[Subscription]:
        """PAST_DUE -> ACTIVE after a successful payment. Other states are left alone."""
        row = self.get_by_external_id(external_subscription_id)
        if not row:
            return None
        if self._is_stale(row, event_at) or row.status != SubscriptionStatus.PAST_DUE:
            return row

        self._set_status(row, SubscriptionStatus.ACTIVE)
        self._touch_event(row, event_at)
        row.updated_at = utcnow()
        self.db.flush()

        logger.info(f"Subscription recovered from past due: user_id={row.user_id}, subscription_id={external_subscription_id}")
        return row

    # ---- user-driven mutations ---------------------------------------

    def set_cancel_at_period_end(self, user_id: int, value: bool) -> Subscription:
        row = self._require_paid(user_id)
        row.cancel_at_period_end = value
        row.canceled_at = utcnow() if value else None
        row.updated_at = utcnow()
        self.db.flush()
        return row

    def clear_cancellation(self, user_id: int) -> Subscription:
        return self.set_cancel_at_period_end(user_id, False)

    # ---- helpers -----------------------------------------------------

    def _require_paid(self, user_id: int) -> Subscription:
        row = self.get(user_id)
        if not row or not row.external_subscription_id:
            raise NoActiveSubscription("No active paid subscription for this user")
        return row

    @staticmethod
    def _is_stale(row: Subscription, event_at: Optional[datetime]) -> bool:
        return (
            event_at is not None
            and row.provider_event_at is not None
            and event_at < row.provider_event_at
        )

    @staticmethod
    def _touch_event(row: Subscription, event_at: Optional[datetime]) -> None:
        if event_at is not None and (row.provider_event_at is None or event_at > row.provider_event_at):
            row.provider_event_at = event_at

    @staticmethod
    def _set_status(row: Subscription, status: SubscriptionStatus) -> None:
        status = SubscriptionStatus(status)
        if row.status is not None and not can_transition(row.status, status):
            logger.warning(
                f"Unexpected subscription transition {row.status.value} -> {status.value}: "
                f"user_id={row.user_id}"
            )
        row.status = status
