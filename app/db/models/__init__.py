"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.

All models must be imported here to be included in database migrations and table creation.
"""
from app.db.models.user import User
from app.db.models.subscription import (
    Subscription,
    SubscriptionTier,
    SubscriptionStatus,
    BillingPeriod,
    PaymentProvider,
)
from app.db.models.billing_customer import BillingCustomer
from app.db.models.payment import Payment, PaymentStatus
from app.db.models.webhook_event import WebhookEventReceipt
from app.db.models.usage import UsagePeriod, DailyUsage, UsageKind

__all__ = [
    "User",
    "Subscription",
    "SubscriptionTier",
    "SubscriptionStatus",
    "BillingPeriod",
    "PaymentProvider",
    "BillingCustomer",
    "Payment",
    "PaymentStatus",
    "WebhookEventReceipt",
    "UsagePeriod",
    "DailyUsage",
    "UsageKind",
]
