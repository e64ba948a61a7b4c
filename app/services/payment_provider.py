"""
Payment provider interface for abstracting the billing backend.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass
class ProviderCustomer:
    """Customer record at the payment provider."""
    id: str
    email: Optional[str] = None
    name: Optional[str] = None


@dataclass
class ProviderSession:
    """Hosted checkout or billing-portal session."""
    id: str
    url: str


class PaymentProviderClient(ABC):
    """
    Abstract base class for payment providers.

    Implementations raise app.core.errors.ProviderUnavailable when the provider
    cannot be reached or rejects a call.
    """

    @abstractmethod
    def create_customer(self, email: str, name: str, user_id: int) -> ProviderCustomer:
        pass

    @abstractmethod
    def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        trial_days: Optional[int] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> ProviderSession:
        """
        Create a hosted subscription checkout.

        Args:
            customer_id: Provider customer id
            price_id: Provider price id for the tier and billing period
            success_url: Redirect after successful payment
            cancel_url: Redirect if the user abandons checkout
            trial_days: Free trial length, None for no trial
            metadata: Copied onto the checkout session and the subscription

        Returns:
            ProviderSession with the checkout URL
        """
        pass

    @abstractmethod
    def create_portal_session(self, customer_id: str, return_url: str) -> ProviderSession:
        pass

    @abstractmethod
    def cancel_at_period_end(self, external_subscription_id: str) -> None:
        pass

    @abstractmethod
    def reactivate(self, external_subscription_id: str) -> None:
        pass

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes, signature_header: Optional[str]) -> bool:
        """Return True only when the header is a valid signature of payload."""
        pass
