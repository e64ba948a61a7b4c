"""
Subscription endpoints: entitlement, pricing, checkout, portal, cancellation,
usage, feature checks and the payment provider webhook.
"""
import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, status
from starlette.concurrency import run_in_threadpool

from app.core.auth_dependency import get_current_user_id, get_current_user_obj
from app.core.billing_dependency import get_subscription_service, get_webhook_processor
from app.core.errors import InvalidTier
from app.core.tier_catalog import FeatureLimits, TierPricing, is_unlimited, limit_for_kind, limits_for
from app.db.models.subscription import SubscriptionTier, BillingPeriod
from app.db.models.usage import UsageKind
from app.db.models.user import User
from app.schemas.billing import (
    CreateCheckoutSessionRequest,
    CreateCheckoutSessionResponse,
    CreatePortalSessionRequest,
    CreatePortalSessionResponse,
    FeatureCheckResponse,
    FeatureLimitsOut,
    MessageResponse,
    PricingResponse,
    SubscriptionOut,
    SubscriptionResponse,
    TierPricingOut,
    WebhookResponse,
)
from app.schemas.usage import UsageKindDetail, UsageResponse
from app.services.subscription_service import SubscriptionService, pricing_table
from app.services.subscription_store import SubscriptionView
from app.services.webhook_processor import WebhookProcessor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])


def _subscription_out(view: SubscriptionView) -> SubscriptionOut:
    return SubscriptionOut(
        id=view.id,
        user_id=view.user_id,
        tier=view.tier.value,
        effective_tier=view.effective_tier.value,
        status=view.status.value,
        billing_period=view.billing_period.value,
        payment_provider=view.payment_provider.value if view.payment_provider else None,
        current_period_start=view.current_period_start,
        current_period_end=view.current_period_end,
        cancel_at_period_end=view.cancel_at_period_end,
        canceled_at=view.canceled_at,
        trial_start=view.trial_start,
        trial_end=view.trial_end,
    )


def _limits_out(limits: FeatureLimits) -> FeatureLimitsOut:
    return FeatureLimitsOut(**asdict(limits))


def _pricing_out(pricing: TierPricing, limits: FeatureLimits) -> TierPricingOut:
    return TierPricingOut(
        tier=pricing.tier.value,
        name=pricing.name,
        description=pricing.description,
        monthly_price_cad=pricing.monthly_price_cad,
        yearly_price_cad=pricing.yearly_price_cad,
        monthly_price_usd=pricing.monthly_price_usd,
        yearly_price_usd=pricing.yearly_price_usd,
        features=list(pricing.features),
        limits=_limits_out(limits),
    )


def _parse_plan(tier: str, billing_period: str):
    try:
        return SubscriptionTier(tier.strip().upper()), BillingPeriod(billing_period.strip().upper())
    except ValueError:
        raise InvalidTier(f"Invalid subscription tier or billing period: {tier} {billing_period}")


@router.get("", response_model=SubscriptionResponse)
def get_subscription(
    user_id: int = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Current subscription with the limits that apply to it."""
    entitlement = service.get_entitlement(user_id)
    pricing = entitlement.pricing
    return SubscriptionResponse(
        subscription=_subscription_out(entitlement.subscription),
        limits=_limits_out(entitlement.limits),
        pricing=_pricing_out(pricing, limits_for(pricing.tier)) if pricing else None,
    )


@router.get("/pricing", response_model=PricingResponse)
def get_pricing():
    return PricingResponse(pricing=[_pricing_out(p, limits) for p, limits in pricing_table()])


@router.post("/checkout", response_model=CreateCheckoutSessionResponse)
def create_checkout_session(
    payload: CreateCheckoutSessionRequest,
    user: User = Depends(get_current_user_obj),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Create a hosted checkout for PRO or PREMIUM.

    Returns 400 for FREE or unknown tiers and when no price is configured,
    503 when the provider can't be reached.
    """
    tier, billing_period = _parse_plan(payload.tier, payload.billing_period)
    session = service.start_checkout(
        user,
        tier,
        billing_period,
        success_url=payload.success_url,
        cancel_url=payload.cancel_url,
    )
    return CreateCheckoutSessionResponse(session_id=session.session_id, checkout_url=session.checkout_url)


@router.post("/portal", response_model=CreatePortalSessionResponse)
def create_portal_session(
    payload: Optional[CreatePortalSessionRequest] = None,
    user_id: int = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service),
):
    session = service.open_billing_portal(user_id, return_url=payload.return_url if payload else None)
    return CreatePortalSessionResponse(session_id=session.session_id, portal_url=session.portal_url)


@router.post("/cancel", response_model=MessageResponse)
def cancel_subscription(
    user_id: int = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service),
):
    view = service.cancel_at_period_end(user_id)
    return MessageResponse(
        message="Subscription will be canceled at period end",
        subscription=_subscription_out(view),
    )


@router.post("/reactivate", response_model=MessageResponse)
def reactivate_subscription(
    user_id: int = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service),
):
    view = service.reactivate(user_id)
    return MessageResponse(message="Subscription reactivated", subscription=_subscription_out(view))


@router.get("/usage", response_model=UsageResponse)
def get_usage(
    user_id: int = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Current usage against the effective tier's limits.

    AI enhancements are counted per UTC day; everything else per billing
    period (or calendar month on the free tier).
    """
    entitlement = service.get_entitlement(user_id)
    details = []
    for kind in UsageKind:
        limit = limit_for_kind(entitlement.limits, kind)
        details.append(UsageKindDetail(
            kind=kind.value,
            window="day" if kind == UsageKind.AI_ENHANCEMENT else "period",
            limit=limit,
            used=entitlement.usage.used(kind),
            remaining=entitlement.remaining[kind],
            unlimited=is_unlimited(limit),
        ))

    logger.debug(f"Usage summary requested: user_id={user_id}, tier={entitlement.tier.value}")
    return UsageResponse(
        tier=entitlement.tier.value,
        period_start=entitlement.usage.period_start,
        period_end=entitlement.usage.period_end,
        usage=details,
    )


@router.get("/feature/{feature}", response_model=FeatureCheckResponse)
def check_feature(
    feature: str,
    user_id: int = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service),
):
    check = service.check_feature(user_id, feature)
    return FeatureCheckResponse(
        feature=check.feature,
        available=check.available,
        required_tier=check.required_tier.value,
        current_tier=check.current_tier.value,
    )


@router.post("/webhook", response_model=WebhookResponse, status_code=status.HTTP_200_OK)
async def provider_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    processor: WebhookProcessor = Depends(get_webhook_processor),
):
    """
    Payment provider webhook.

    200 once the event is committed or recognised as a duplicate; 400 on a bad
    signature or payload. Handler failures surface as 500 so the provider retries.
    """
    payload = await request.body()
    result = await run_in_threadpool(processor.process, payload, stripe_signature)
    return WebhookResponse(received=True, duplicate=result.duplicate)
