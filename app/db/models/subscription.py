"""
Subscription model: one row per paying user.

Users without a row are implicitly on the FREE tier with ACTIVE status.
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Index, Enum
from app.db.base import Base, utcnow


class SubscriptionTier(str, enum.Enum):
    FREE = "FREE"
    PRO = "PRO"
    PREMIUM = "PREMIUM"


class SubscriptionStatus(str, enum.Enum):
    TRIALING = "TRIALING"
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELED = "CANCELED"


class BillingPeriod(str, enum.Enum):
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class PaymentProvider(str, enum.Enum):
    STRIPE = "STRIPE"
    APPLE_IAP = "APPLE_IAP"
    GOOGLE_PLAY = "GOOGLE_PLAY"


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)

    tier = Column(Enum(SubscriptionTier, native_enum=False, length=20), nullable=False, default=SubscriptionTier.PRO)
    status = Column(Enum(SubscriptionStatus, native_enum=False, length=30), nullable=False, default=SubscriptionStatus.ACTIVE)
    billing_period = Column(Enum(BillingPeriod, native_enum=False, length=20), nullable=False, default=BillingPeriod.MONTHLY)
    payment_provider = Column(Enum(PaymentProvider, native_enum=False, length=20), nullable=False, default=PaymentProvider.STRIPE)

    # Provider identifiers (external_subscription_id is null only for FREE)
    external_subscription_id = Column(String(255), nullable=True)
    customer_id = Column(String(255), nullable=True)

    current_period_start = Column(DateTime, nullable=False, default=utcnow)
    current_period_end = Column(DateTime, nullable=False, default=utcnow)
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)
    canceled_at = Column(DateTime, nullable=True)
    trial_start = Column(DateTime, nullable=True)
    trial_end = Column(DateTime, nullable=True)

    # Creation time of the newest provider event applied to this row
    provider_event_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_subscriptions_status", "status"),
        Index("idx_subscriptions_external_id", "external_subscription_id"),
    )

    def __repr__(self):
        return (
            f"<Subscription(id={self.id}, user_id={self.user_id}, tier='{self.tier}', "
            f"status='{self.status}')>"
        )
