"""
Unit tests for the tier/limit catalog.
"""
from app.core.tier_catalog import (
    UNLIMITED,
    PremiumFeature,
    all_pricing,
    feature_available,
    is_unlimited,
    limit_for_kind,
    limits_for,
    parse_feature,
    plan_for_price_id,
    pricing_for,
    required_tier_for,
    required_tier_for_quota,
    resolve_price_id,
)
from app.db.models.subscription import SubscriptionTier, BillingPeriod
from app.db.models.usage import UsageKind

from conftest import PRICE_IDS


def test_free_tier_limits():
    limits = limits_for(SubscriptionTier.FREE)
    assert limits.resume_versions_per_month == 3
    assert limits.ai_enhancements_per_day == 5
    assert limits.cover_letters_per_month == 5
    assert limits.interview_sessions_per_month == 3
    assert limits.job_bank_integration is True
    assert limits.noc_code_lookup is True
    assert limits.salary_insights_access is False


def test_pro_tier_limits():
    limits = limits_for(SubscriptionTier.PRO)
    assert limit_for_kind(limits, UsageKind.RESUME_VERSION) == 15
    assert limit_for_kind(limits, UsageKind.AI_ENHANCEMENT) == 10
    assert limit_for_kind(limits, UsageKind.COVER_LETTER) == 20
    assert limit_for_kind(limits, UsageKind.INTERVIEW_SESSION) == 15
    assert limits.salary_insights_access is True
    assert limits.negotiation_coach_access is False


def test_premium_quantities_are_unlimited_sentinel():
    limits = limits_for(SubscriptionTier.PREMIUM)
    for kind in UsageKind:
        limit = limit_for_kind(limits, kind)
        assert limit is UNLIMITED
        assert is_unlimited(limit)


def test_feature_availability_by_tier():
    assert not feature_available(limits_for(SubscriptionTier.FREE), PremiumFeature.SALARY_INSIGHTS)
    assert feature_available(limits_for(SubscriptionTier.PRO), PremiumFeature.SALARY_INSIGHTS)
    assert not feature_available(limits_for(SubscriptionTier.PRO), PremiumFeature.UNLIMITED_AI_ENHANCEMENTS)
    assert feature_available(limits_for(SubscriptionTier.PREMIUM), PremiumFeature.UNLIMITED_AI_ENHANCEMENTS)


def test_required_tier_is_lowest_granting_tier():
    assert required_tier_for(PremiumFeature.SALARY_INSIGHTS) == SubscriptionTier.PRO
    assert required_tier_for(PremiumFeature.PRIORITY_SUPPORT) == SubscriptionTier.PRO
    assert required_tier_for(PremiumFeature.NEGOTIATION_COACH) == SubscriptionTier.PREMIUM
    assert required_tier_for(PremiumFeature.UNLIMITED_RESUMES) == SubscriptionTier.PREMIUM


def test_required_tier_for_quota():
    assert required_tier_for_quota(UsageKind.AI_ENHANCEMENT, SubscriptionTier.FREE) == SubscriptionTier.PRO
    assert required_tier_for_quota(UsageKind.AI_ENHANCEMENT, SubscriptionTier.PRO) == SubscriptionTier.PREMIUM
    assert required_tier_for_quota(UsageKind.AI_ENHANCEMENT, SubscriptionTier.PREMIUM) is None


def test_parse_feature_is_case_insensitive():
    assert parse_feature("salary_insights") == PremiumFeature.SALARY_INSIGHTS
    assert parse_feature(" Negotiation_Coach ") == PremiumFeature.NEGOTIATION_COACH
    assert parse_feature("teleportation") is None
    assert parse_feature("") is None


def test_pricing():
    assert pricing_for(SubscriptionTier.FREE) is None
    pro = pricing_for(SubscriptionTier.PRO)
    assert pro.monthly_price_cad == 14.99
    assert pro.yearly_price_usd == 119.99
    premium = pricing_for(SubscriptionTier.PREMIUM)
    assert premium.monthly_price_cad == 29.99
    assert premium.yearly_price_cad == 299.99
    assert [p.tier for p in all_pricing()] == [
        SubscriptionTier.FREE, SubscriptionTier.PRO, SubscriptionTier.PREMIUM,
    ]


def test_resolve_price_id():
    assert resolve_price_id(SubscriptionTier.PRO, BillingPeriod.YEARLY, PRICE_IDS) == "price_pro_yearly"
    assert resolve_price_id("PREMIUM", "MONTHLY", PRICE_IDS) == "price_premium_monthly"


def test_placeholder_and_missing_price_ids_are_unconfigured():
    price_ids = {("PRO", "MONTHLY"): "price_your_pro_monthly_id", ("PRO", "YEARLY"): None}
    assert resolve_price_id(SubscriptionTier.PRO, BillingPeriod.MONTHLY, price_ids) is None
    assert resolve_price_id(SubscriptionTier.PRO, BillingPeriod.YEARLY, price_ids) is None
    assert resolve_price_id(SubscriptionTier.PREMIUM, BillingPeriod.YEARLY, price_ids) is None


def test_plan_for_price_id():
    assert plan_for_price_id("price_premium_yearly", PRICE_IDS) == (SubscriptionTier.PREMIUM, BillingPeriod.YEARLY)
    assert plan_for_price_id("price_unknown", PRICE_IDS) is None
    assert plan_for_price_id(None, PRICE_IDS) is None
