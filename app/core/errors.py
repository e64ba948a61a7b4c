"""
Typed errors for the subscription and quota core.

Services raise these; app.main renders them as JSON with the matching status code.
"""
from typing import Any, Dict, Optional


class BillingError(Exception):
    """Base class for subscription/billing errors."""
    code = "billing_error"
    status_code = 400

    def __init__(self, message: str = "", **details: Any):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        payload = {"error": self.code, "detail": self.message}
        payload.update(self.details)
        return payload


class InvalidSignature(BillingError):
    code = "invalid_signature"
    status_code = 400


class UnparseableEvent(BillingError):
    code = "unparseable_event"
    status_code = 400


class DuplicateEvent(BillingError):
    """Already-processed webhook delivery. WebhookProcessor turns it into a duplicate result."""
    code = "duplicate_event"
    status_code = 200


class NoSubscription(BillingError):
    code = "no_subscription"
    status_code = 404


class NoActiveSubscription(BillingError):
    code = "no_active_subscription"
    status_code = 400


class InvalidTier(BillingError):
    code = "invalid_tier"
    status_code = 400


class PricingNotConfigured(BillingError):
    code = "pricing_not_configured"
    status_code = 400


class UnknownFeature(BillingError):
    code = "unknown_feature"
    status_code = 400


class ProviderUnavailable(BillingError):
    """Payment provider call failed. Transient; the user-facing action may be retried."""
    code = "provider_unavailable"
    status_code = 503


class QuotaExceeded(BillingError):
    code = "quota_exceeded"
    status_code = 429

    def __init__(
        self,
        feature: str,
        tier: str,
        limit: int,
        used: int,
        required_tier: Optional[str] = None,
    ):
        message = (
            f"You have reached your limit of {limit} {feature.lower().replace('_', ' ')} "
            f"on the {tier.title()} plan."
        )
        if required_tier:
            message += f" Upgrade to {required_tier.title()} for more."
        super().__init__(
            message,
            feature=feature,
            tier=tier,
            limit=limit,
            used=used,
            remaining=max(0, limit - used),
            required_tier=required_tier,
        )
        self.feature = feature
        self.tier = tier
        self.limit = limit
        self.used = used
        self.remaining = max(0, limit - used)
        self.required_tier = required_tier
