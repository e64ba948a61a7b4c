"""
Tier-based limits and pricing catalog.

Single source of truth for quotas, feature flags and display pricing per tier.
UNLIMITED (None) means the quantity has no cap for that tier.
"""
import enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from app.db.models.subscription import SubscriptionTier, BillingPeriod
from app.db.models.usage import UsageKind

# Sentinel for an uncapped quota (never a large integer)
UNLIMITED: Optional[int] = None

# Tiers from lowest to highest entitlement
TIER_ORDER: List[SubscriptionTier] = [
    SubscriptionTier.FREE,
    SubscriptionTier.PRO,
    SubscriptionTier.PREMIUM,
]


class PremiumFeature(str, enum.Enum):
    """Features other subsystems gate on."""
    SALARY_INSIGHTS = "SALARY_INSIGHTS"
    NEGOTIATION_COACH = "NEGOTIATION_COACH"
    LINKEDIN_OPTIMIZER = "LINKEDIN_OPTIMIZER"
    UNLIMITED_APPLICATIONS = "UNLIMITED_APPLICATIONS"
    PRIORITY_SUPPORT = "PRIORITY_SUPPORT"
    UNLIMITED_AI_ENHANCEMENTS = "UNLIMITED_AI_ENHANCEMENTS"
    UNLIMITED_RESUMES = "UNLIMITED_RESUMES"
    UNLIMITED_COVER_LETTERS = "UNLIMITED_COVER_LETTERS"
    UNLIMITED_INTERVIEWS = "UNLIMITED_INTERVIEWS"


@dataclass(frozen=True)
class FeatureLimits:
    resume_versions_per_month: Optional[int]
    ai_enhancements_per_day: Optional[int]
    cover_letters_per_month: Optional[int]
    interview_sessions_per_month: Optional[int]
    salary_insights_access: bool
    negotiation_coach_access: bool
    linkedin_optimizer_access: bool
    unlimited_application_tracking: bool
    priority_support: bool
    job_bank_integration: bool = True
    noc_code_lookup: bool = True


@dataclass(frozen=True)
class TierPricing:
    tier: SubscriptionTier
    name: str
    description: str
    monthly_price_cad: float
    yearly_price_cad: float
    monthly_price_usd: float
    yearly_price_usd: float
    features: Tuple[str, ...] = field(default_factory=tuple)


TIER_LIMITS: Dict[SubscriptionTier, FeatureLimits] = {
    SubscriptionTier.FREE: FeatureLimits(
        resume_versions_per_month=3,
        ai_enhancements_per_day=5,
        cover_letters_per_month=5,
        interview_sessions_per_month=3,
        salary_insights_access=False,
        negotiation_coach_access=False,
        linkedin_optimizer_access=False,
        unlimited_application_tracking=False,
        priority_support=False,
    ),
    SubscriptionTier.PRO: FeatureLimits(
        resume_versions_per_month=15,
        ai_enhancements_per_day=10,
        cover_letters_per_month=20,
        interview_sessions_per_month=15,
        salary_insights_access=True,
        negotiation_coach_access=False,
        linkedin_optimizer_access=False,
        unlimited_application_tracking=True,
        priority_support=True,
    ),
    SubscriptionTier.PREMIUM: FeatureLimits(
        resume_versions_per_month=UNLIMITED,
        ai_enhancements_per_day=UNLIMITED,
        cover_letters_per_month=UNLIMITED,
        interview_sessions_per_month=UNLIMITED,
        salary_insights_access=True,
        negotiation_coach_access=True,
        linkedin_optimizer_access=True,
        unlimited_application_tracking=True,
        priority_support=True,
    ),
}

TIER_PRICING: Dict[SubscriptionTier, TierPricing] = {
    SubscriptionTier.FREE: TierPricing(
        tier=SubscriptionTier.FREE,
        name="Free",
        description="Get started with basic features",
        monthly_price_cad=0.0,
        yearly_price_cad=0.0,
        monthly_price_usd=0.0,
        yearly_price_usd=0.0,
        features=(
            "3 resume versions per month",
            "5 AI enhancements per day",
            "5 cover letters per month",
            "3 interview practice sessions",
            "Job Bank Canada integration",
            "NOC code lookup",
        ),
    ),
    SubscriptionTier.PRO: TierPricing(
        tier=SubscriptionTier.PRO,
        name="Pro",
        description="For serious job seekers",
        monthly_price_cad=14.99,
        yearly_price_cad=149.99,
        monthly_price_usd=11.99,
        yearly_price_usd=119.99,
        features=(
            "15 resume versions per month",
            "10 AI enhancements per day",
            "20 cover letters per month",
            "15 interview practice sessions",
            "Salary Intelligence insights",
            "Unlimited application tracking",
            "Job Bank & NOC integration",
            "Priority support",
        ),
    ),
    SubscriptionTier.PREMIUM: TierPricing(
        tier=SubscriptionTier.PREMIUM,
        name="Premium",
        description="Everything you need to land your dream job",
        monthly_price_cad=29.99,
        yearly_price_cad=299.99,
        monthly_price_usd=24.99,
        yearly_price_usd=249.99,
        features=(
            "Unlimited resume versions",
            "Unlimited AI enhancements",
            "Unlimited cover letters",
            "Unlimited interview practice",
            "Salary Intelligence & insights",
            "Negotiation Coach AI",
            "LinkedIn Profile Optimizer",
            "Unlimited application tracking",
            "All integrations",
            "Priority support",
        ),
    ),
}

_KIND_TO_LIMIT_FIELD = {
    UsageKind.RESUME_VERSION: "resume_versions_per_month",
    UsageKind.AI_ENHANCEMENT: "ai_enhancements_per_day",
    UsageKind.COVER_LETTER: "cover_letters_per_month",
    UsageKind.INTERVIEW_SESSION: "interview_sessions_per_month",
}

_FLAG_FEATURES = {
    PremiumFeature.SALARY_INSIGHTS: "salary_insights_access",
    PremiumFeature.NEGOTIATION_COACH: "negotiation_coach_access",
    PremiumFeature.LINKEDIN_OPTIMIZER: "linkedin_optimizer_access",
    PremiumFeature.UNLIMITED_APPLICATIONS: "unlimited_application_tracking",
    PremiumFeature.PRIORITY_SUPPORT: "priority_support",
}

_UNLIMITED_FEATURES = {
    PremiumFeature.UNLIMITED_AI_ENHANCEMENTS: UsageKind.AI_ENHANCEMENT,
    PremiumFeature.UNLIMITED_RESUMES: UsageKind.RESUME_VERSION,
    PremiumFeature.UNLIMITED_COVER_LETTERS: UsageKind.COVER_LETTER,
    PremiumFeature.UNLIMITED_INTERVIEWS: UsageKind.INTERVIEW_SESSION,
}


def is_unlimited(limit: Optional[int]) -> bool:
    return limit is UNLIMITED


def limits_for(tier: SubscriptionTier) -> FeatureLimits:
    """Get the feature limits for a tier."""
    return TIER_LIMITS[SubscriptionTier(tier)]


def pricing_for(tier: SubscriptionTier) -> Optional[TierPricing]:
    """Get display pricing for a paid tier, None for FREE."""
    tier = SubscriptionTier(tier)
    if tier == SubscriptionTier.FREE:
        return None
    return TIER_PRICING[tier]


def all_pricing() -> List[TierPricing]:
    """Pricing for every tier, FREE included, in display order."""
    return [TIER_PRICING[tier] for tier in TIER_ORDER]


def limit_for_kind(limits: FeatureLimits, kind: UsageKind) -> Optional[int]:
    """Quota for a usage kind; UNLIMITED when uncapped."""
    return getattr(limits, _KIND_TO_LIMIT_FIELD[UsageKind(kind)])


def feature_available(limits: FeatureLimits, feature: PremiumFeature) -> bool:
    feature = PremiumFeature(feature)
    if feature in _FLAG_FEATURES:
        return getattr(limits, _FLAG_FEATURES[feature])
    return is_unlimited(limit_for_kind(limits, _UNLIMITED_FEATURES[feature]))


def required_tier_for(feature: PremiumFeature) -> SubscriptionTier:
    """Lowest tier that grants a feature."""
    for tier in TIER_ORDER:
        if feature_available(TIER_LIMITS[tier], feature):
            return tier
    return SubscriptionTier.PREMIUM


def required_tier_for_quota(kind: UsageKind, current_tier: SubscriptionTier) -> Optional[SubscriptionTier]:
    """Next tier above current_tier with a higher quota for kind, None if already at the top."""
    current = limit_for_kind(limits_for(current_tier), kind)
    for tier in TIER_ORDER[TIER_ORDER.index(SubscriptionTier(current_tier)) + 1:]:
        limit = limit_for_kind(TIER_LIMITS[tier], kind)
        if is_unlimited(limit) or (current is not UNLIMITED and limit > current):
            return tier
    return None


def parse_feature(name: str) -> Optional[PremiumFeature]:
    """Look up a feature by name, case-insensitively. None when unknown."""
    try:
        return PremiumFeature((name or "").strip().upper())
    except ValueError:
        return None


def _usable_price_id(price_id: Optional[str]) -> Optional[str]:
    # Placeholder values from .env.example count as unconfigured
    if not price_id or price_id.startswith("price_your_"):
        return None
    return price_id


def resolve_price_id(
    tier: SubscriptionTier,
    billing_period: BillingPeriod,
    price_ids: Dict[Tuple[str, str], Optional[str]],
) -> Optional[str]:
    """Provider price id for tier x billing period, None when not configured."""
    key = (SubscriptionTier(tier).value, BillingPeriod(billing_period).value)
    return _usable_price_id(price_ids.get(key))


def plan_for_price_id(
    price_id: Optional[str],
    price_ids: Dict[Tuple[str, str], Optional[str]],
) -> Optional[Tuple[SubscriptionTier, BillingPeriod]]:
    """Reverse lookup of a provider price id to (tier, billing period)."""
    if not price_id:
        return None
    for (tier, period), configured in price_ids.items():
        if _usable_price_id(configured) == price_id:
            return SubscriptionTier(tier), BillingPeriod(period)
    return None
