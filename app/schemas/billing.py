"""
Pydantic schemas for subscription endpoints.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class CreateCheckoutSessionRequest(BaseModel):
    """Request schema for creating checkout session."""
    tier: str = Field(..., description="Tier to subscribe to: 'PRO' or 'PREMIUM'")
    billing_period: str = Field("MONTHLY", description="'MONTHLY' or 'YEARLY'")
    success_url: Optional[str] = Field(None, description="URL to redirect after successful payment")
    cancel_url: Optional[str] = Field(None, description="URL to redirect if payment is canceled")

    class Config:
        json_schema_extra = {
            "example": {
                "tier": "PRO",
                "billing_period": "MONTHLY",
                "success_url": "https://apply.example.com/subscription/success",
                "cancel_url": "https://apply.example.com/pricing?canceled=true"
            }
        }


class CreateCheckoutSessionResponse(BaseModel):
    """Response schema for checkout session creation."""
    session_id: str = Field(..., description="Checkout session ID")
    checkout_url: str = Field(..., description="Hosted checkout URL")

    class Config:
        json_schema_extra = {
            "example": {
                "session_id": "cs_test_...",
                "checkout_url": "https://checkout.stripe.com/pay/cs_test_..."
            }
        }


class CreatePortalSessionRequest(BaseModel):
    """Request schema for creating portal session."""
    return_url: Optional[str] = Field(None, description="URL to return to after portal session")


class CreatePortalSessionResponse(BaseModel):
    """Response schema for portal session creation."""
    session_id: str = Field(..., description="Portal session ID")
    portal_url: str = Field(..., description="Customer portal URL")


class SubscriptionOut(BaseModel):
    id: Optional[int] = None
    user_id: int
    tier: str
    effective_tier: str
    status: str
    billing_period: str
    payment_provider: Optional[str] = None
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool
    canceled_at: Optional[datetime] = None
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None


class FeatureLimitsOut(BaseModel):
    """Limits of a tier. null quantities are unlimited."""
    resume_versions_per_month: Optional[int] = None
    ai_enhancements_per_day: Optional[int] = None
    cover_letters_per_month: Optional[int] = None
    interview_sessions_per_month: Optional[int] = None
    salary_insights_access: bool
    negotiation_coach_access: bool
    linkedin_optimizer_access: bool
    unlimited_application_tracking: bool
    priority_support: bool
    job_bank_integration: bool
    noc_code_lookup: bool


class TierPricingOut(BaseModel):
    tier: str
    name: str
    description: str
    monthly_price_cad: float
    yearly_price_cad: float
    monthly_price_usd: float
    yearly_price_usd: float
    features: List[str]
    limits: FeatureLimitsOut


class PricingResponse(BaseModel):
    pricing: List[TierPricingOut]


class SubscriptionResponse(BaseModel):
    """Response schema for GET /subscriptions."""
    subscription: SubscriptionOut
    limits: FeatureLimitsOut
    pricing: Optional[TierPricingOut] = None


class MessageResponse(BaseModel):
    message: str
    subscription: Optional[SubscriptionOut] = None


class FeatureCheckResponse(BaseModel):
    feature: str
    available: bool
    required_tier: str
    current_tier: str


class WebhookResponse(BaseModel):
    received: bool = True
    duplicate: bool = False


class BillingErrorResponse(BaseModel):
    """Error response schema for billing operations."""
    error: str = Field(..., description="Error code")
    detail: Optional[str] = Field(None, description="Human-readable message")

    class Config:
        json_schema_extra = {
            "example": {
                "error": "invalid_tier",
                "detail": "Cannot checkout for free tier"
            }
        }
