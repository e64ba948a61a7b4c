"""
Stripe-backed payment provider client: customers, checkout, billing portal,
cancellation and webhook signature verification.
"""
import logging
from typing import Dict, Optional
import stripe

from app.core import config
from app.core.errors import ProviderUnavailable
from app.services.payment_provider import PaymentProviderClient, ProviderCustomer, ProviderSession

logger = logging.getLogger(__name__)


class StripePaymentProvider(PaymentProviderClient):
    """PaymentProviderClient implemented with the Stripe SDK."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        tolerance_seconds: Optional[int] = None,
    ):
        self.api_key = api_key if api_key is not None else config.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret if webhook_secret is not None else config.STRIPE_WEBHOOK_SECRET
        self.tolerance_seconds = (
            tolerance_seconds if tolerance_seconds is not None else config.WEBHOOK_TOLERANCE_SECONDS
        )
        if not self.api_key:
            logger.warning("STRIPE_SECRET_KEY not configured - Stripe features disabled")

    def _require_key(self):
        if not self.api_key:
            raise ProviderUnavailable("Stripe not configured - STRIPE_SECRET_KEY required")

    def create_customer(self, email: str, name: str, user_id: int) -> ProviderCustomer:
        self._require_key()
        try:
            customer = stripe.Customer.create(
                api_key=self.api_key,
                email=email,
                name=name,
                metadata={"user_id": str(user_id)},
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error creating customer for user_id={user_id}: {e}")
            raise ProviderUnavailable(f"Failed to create customer: {e.user_message or e}") from e

        logger.info(f"Created Stripe customer: customer_id={customer.id}, user_id={user_id}")
        return ProviderCustomer(id=customer.id, email=email, name=name)

    def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        trial_days: Optional[int] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> ProviderSession:
        self._require_key()
        subscription_data = {"metadata": dict(metadata or {})}
        if trial_days:
            subscription_data["trial_period_days"] = trial_days

        try:
            session = stripe.checkout.Session.create(
                api_key=self.api_key,
                customer=customer_id,
                payment_method_types=["card"],
                mode="subscription",
                line_items=[{
                    "price": price_id,
                    "quantity": 1,
                }],
                success_url=success_url,
                cancel_url=cancel_url,
                allow_promotion_codes=True,
                billing_address_collection="required",
                metadata=dict(metadata or {}),
                subscription_data=subscription_data,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error creating checkout session: {e}")
            raise ProviderUnavailable(f"Failed to create checkout session: {e.user_message or e}") from e

        logger.info(f"Created checkout session: session_id={session.id}, customer_id={customer_id}")
        return ProviderSession(id=session.id, url=session.url)

    def create_portal_session(self, customer_id: str, return_url: str) -> ProviderSession:
        self._require_key()
        try:
            session = stripe.billing_portal.Session.create(
                api_key=self.api_key,
                customer=customer_id,
                return_url=return_url,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error creating portal session: {e}")
            raise ProviderUnavailable(f"Failed to create portal session: {e.user_message or e}") from e

        logger.info(f"Created billing portal session for customer_id={customer_id}")
        return ProviderSession(id=session.id, url=session.url)

    def _set_cancel_at_period_end(self, external_subscription_id: str, value: bool) -> None:
        self._require_key()
        try:
            stripe.Subscription.modify(
                external_subscription_id,
                api_key=self.api_key,
                cancel_at_period_end=value,
            )
        except stripe.StripeError as e:
            logger.error(
                f"Stripe error setting cancel_at_period_end={value} "
                f"for subscription_id={external_subscription_id}: {e}"
            )
            raise ProviderUnavailable(f"Failed to update subscription: {e.user_message or e}") from e

    def cancel_at_period_end(self, external_subscription_id: str) -> None:
        self._set_cancel_at_period_end(external_subscription_id, True)
        logger.info(f"Scheduled cancellation at period end: subscription_id={external_subscription_id}")

    def reactivate(self, external_subscription_id: str) -> None:
        self._set_cancel_at_period_end(external_subscription_id, False)
        logger.info(f"Reactivated subscription: subscription_id={external_subscription_id}")

    def verify_webhook_signature(self, payload: bytes, signature_header: Optional[str]) -> bool:
        if not self.webhook_secret:
            logger.error("STRIPE_WEBHOOK_SECRET not configured - rejecting webhook")
            return False
        if not signature_header:
            return False

        if isinstance(payload, bytes):
            payload = payload.decode("utf-8", errors="replace")
        try:
            stripe.WebhookSignature.verify_header(
                payload, signature_header, self.webhook_secret, tolerance=self.tolerance_seconds
            )
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Webhook signature verification failed: {e}")
            return False
        return True
