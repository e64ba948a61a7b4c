"""
Subscription service: the entry point for everything a signed-in user does
with their plan, and for feature-gated operations elsewhere in the product.

Handles entitlement reads, checkout, billing portal, cancellation and quota
checked usage. Provider calls always happen before local writes, so a failed
provider call leaves no local trace.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core import config
from app.core.errors import (
    InvalidTier,
    NoActiveSubscription,
    NoSubscription,
    PricingNotConfigured,
    UnknownFeature,
)
from app.core.tier_catalog import (
    FeatureLimits,
    TierPricing,
    all_pricing,
    feature_available,
    limits_for,
    parse_feature,
    pricing_for,
    required_tier_for,
    resolve_price_id,
)
from app.db.models.billing_customer import BillingCustomer
from app.db.models.subscription import SubscriptionTier, SubscriptionStatus, BillingPeriod
from app.db.models.usage import UsageKind
from app.db.models.user import User
from app.services.payment_provider import PaymentProviderClient
from app.services.subscription_store import SubscriptionStore, SubscriptionView
from app.services.usage_ledger import UsageLedger, UsageSnapshot

logger = logging.getLogger(__name__)


@dataclass
class Entitlement:
    subscription: SubscriptionView
    limits: FeatureLimits
    usage: UsageSnapshot
    pricing: Optional[TierPricing]
    remaining: Dict[UsageKind, Optional[int]]

    @property
    def tier(self) -> SubscriptionTier:
        return self.subscription.effective_tier


@dataclass
class FeatureCheck:
    feature: str
    available: bool
    required_tier: SubscriptionTier
    current_tier: SubscriptionTier


@dataclass
class CheckoutSession:
    session_id: str
    checkout_url: str


@dataclass
class PortalSession:
    session_id: str
    portal_url: str


class SubscriptionService:
    def __init__(
        self,
        db: Session,
        provider: PaymentProviderClient,
        price_ids: Optional[Dict[Tuple[str, str], Optional[str]]] = None,
        trial_days: Optional[int] = None,
        ledger: Optional[UsageLedger] = None,
    ):
        self.db = db
        self.provider = provider
        self.price_ids = price_ids if price_ids is not None else config.STRIPE_PRICE_IDS
        self.trial_days = trial_days if trial_days is not None else config.TRIAL_PERIOD_DAYS
        self.store = SubscriptionStore(db)
        self.ledger = ledger or UsageLedger(db)

    # ---- reads -------------------------------------------------------

    def get_entitlement(self, user_id: int) -> Entitlement:
        """Subscription, effective limits, current usage and pricing of the user's tier."""
        subscription = self.store.get_or_create_default(user_id)
        tier = subscription.effective_tier
        return Entitlement(
            subscription=subscription,
            limits=limits_for(tier),
            usage=self.ledger.get_current_usage(user_id),
            pricing=pricing_for(subscription.tier),
            remaining=self.ledger.remaining_all(user_id, tier),
        )

    def check_feature(self, user_id: int, feature_name: str) -> FeatureCheck:
        """
        Check whether the user's effective tier grants a premium feature.

        Raises:
            UnknownFeature: If feature_name is not a known feature
        """
        feature = parse_feature(feature_name)
        if feature is None:
            raise UnknownFeature(f"Unknown feature: {feature_name}", feature=feature_name)

        tier = self.store.get_or_create_default(user_id).effective_tier
        return FeatureCheck(
            feature=feature.value,
            available=feature_available(limits_for(tier), feature),
            required_tier=required_tier_for(feature),
            current_tier=tier,
        )

    def consume(self, user_id: int, kind: UsageKind) -> UsageSnapshot:
        """Record one unit of usage against the user's effective tier; QuotaExceeded when used up."""
        tier = self.store.get_or_create_default(user_id).effective_tier
        return self.ledger.record_usage(user_id, kind, tier=tier)

    # ---- checkout & portal -------------------------------------------

    def start_checkout(
        self,
        user: User,
        tier: SubscriptionTier,
        billing_period: BillingPeriod,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
    ) -> CheckoutSession:
        """
        Create a hosted checkout for a paid tier.

        Args:
            user: Signed-in user
            tier: PRO or PREMIUM
            billing_period: MONTHLY or YEARLY
            success_url: Redirect after payment (defaults to the frontend)
            cancel_url: Redirect on abandon (defaults to the pricing page)

        Returns:
            CheckoutSession with the provider URL

        Raises:
            InvalidTier: For FREE; the provider is never called
            PricingNotConfigured: No price id for tier x period
            ProviderUnavailable: Provider call failed
        """
        tier = SubscriptionTier(tier)
        billing_period = BillingPeriod(billing_period)
        if tier == SubscriptionTier.FREE:
            raise InvalidTier("Cannot checkout for free tier", tier=tier.value)

        price_id = resolve_price_id(tier, billing_period, self.price_ids)
        if not price_id:
            raise PricingNotConfigured(
                f"No price configured for {tier.value} {billing_period.value}",
                tier=tier.value,
                billing_period=billing_period.value,
            )

        customer_id = self._get_or_create_customer(user)
        session = self.provider.create_checkout_session(
            customer_id=customer_id,
            price_id=price_id,
            success_url=success_url or f"{config.FRONTEND_URL}/subscription/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=cancel_url or f"{config.FRONTEND_URL}/pricing?canceled=true",
            trial_days=self.trial_days or None,
            metadata={
                "user_id": str(user.id),
                "tier": tier.value,
                "billing_period": billing_period.value,
            },
        )

        logger.info(
            f"Checkout started: user_id={user.id}, tier={tier.value}, "
            f"billing_period={billing_period.value}, session_id={session.id}"
        )
        return CheckoutSession(session_id=session.id, checkout_url=session.url)

    def open_billing_portal(self, user_id: int, return_url: Optional[str] = None) -> PortalSession:
        """
        Raises:
            NoSubscription: The user never reached checkout, so has no provider customer
        """
        customer_id = self._find_customer_id(user_id)
        if not customer_id:
            raise NoSubscription("No subscription found")

        session = self.provider.create_portal_session(
            customer_id=customer_id,
            return_url=return_url or f"{config.FRONTEND_URL}/settings/subscription",
        )
        logger.info(f"Billing portal opened: user_id={user_id}")
        return PortalSession(session_id=session.id, portal_url=session.url)

    # ---- cancellation ------------------------------------------------

    def cancel_at_period_end(self, user_id: int) -> SubscriptionView:
        """Ask the provider to cancel at period end, then flip the local flag."""
        row = self.store.get(user_id)
        if not row:
            raise NoSubscription("No subscription found")
        if not row.external_subscription_id or row.status == SubscriptionStatus.CANCELED:
            raise NoActiveSubscription("Cannot cancel this subscription")

        self.provider.cancel_at_period_end(row.external_subscription_id)
        row = self.store.set_cancel_at_period_end(user_id, True)
        self.db.commit()

        logger.info(f"Subscription set to cancel at period end: user_id={user_id}")
        return SubscriptionView.from_row(row)

    def reactivate(self, user_id: int) -> SubscriptionView:
        """Undo a pending cancel-at-period-end."""
        row = self.store.get(user_id)
        if not row or not row.cancel_at_period_end:
            raise NoSubscription("No canceled subscription found")
        if not row.external_subscription_id:
            raise NoActiveSubscription("Cannot reactivate this subscription")

        self.provider.reactivate(row.external_subscription_id)
        row = self.store.clear_cancellation(user_id)
        self.db.commit()

        logger.info(f"Subscription reactivated: user_id={user_id}")
        return SubscriptionView.from_row(row)

    # ---- helpers -----------------------------------------------------

    def _find_customer_id(self, user_id: int) -> Optional[str]:
        mapping = self.db.query(BillingCustomer).filter(BillingCustomer.user_id == user_id).first()
        if mapping:
            return mapping.customer_id
        row = self.store.get(user_id)
        if row and row.customer_id:
            return row.customer_id
        return None

    def _get_or_create_customer(self, user: User) -> str:
        customer_id = self._find_customer_id(user.id)
        if customer_id:
            return customer_id

        customer = self.provider.create_customer(email=user.email, name=user.full_name, user_id=user.id)
        # Stored right away so an abandoned checkout does not create a second customer
        self.db.add(BillingCustomer(user_id=user.id, customer_id=customer.id, email=user.email))
        self.db.commit()
        logger.info(f"Billing customer stored: user_id={user.id}, customer_id={customer.id}")
        return customer.id


def pricing_table() -> List[Tuple[TierPricing, FeatureLimits]]:
    """Display pricing for every tier with its limits."""
    return [(pricing, limits_for(pricing.tier)) for pricing in all_pricing()]
