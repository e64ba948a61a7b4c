"""
FastAPI dependencies wiring the billing services to a request.

Tests swap the provider through app.dependency_overrides[get_payment_provider].
"""
from fastapi import Depends
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.services.payment_provider import PaymentProviderClient
from app.services.stripe_service import StripePaymentProvider
from app.services.subscription_service import SubscriptionService
from app.services.webhook_processor import WebhookProcessor


def get_payment_provider() -> PaymentProviderClient:
    return StripePaymentProvider()


def get_subscription_service(
    db: Session = Depends(get_db),
    provider: PaymentProviderClient = Depends(get_payment_provider),
) -> SubscriptionService:
    return SubscriptionService(db, provider)


def get_webhook_processor(
    db: Session = Depends(get_db),
    provider: PaymentProviderClient = Depends(get_payment_provider),
) -> WebhookProcessor:
    return WebhookProcessor(db, provider)
