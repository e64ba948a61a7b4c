"""
Feature gating for premium features.

require_feature() lets endpoints outside the billing core refuse premium
features the user's effective tier does not grant.
"""
import logging
from fastapi import Depends, HTTPException, status

from app.core.config import FRONTEND_URL
from app.core.auth_dependency import get_current_user_id
from app.core.billing_dependency import get_subscription_service
from app.core.tier_catalog import PremiumFeature
from app.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)


def require_feature(feature: PremiumFeature):
    """
    Dependency enforcing feature access based on the user's tier.

    Raises HTTPException with 402 status and structured payload if the tier
    doesn't grant the feature.
    """
    feature = PremiumFeature(feature)

    def feature_checker(
        user_id: int = Depends(get_current_user_id),
        service: SubscriptionService = Depends(get_subscription_service),
    ) -> int:
        check = service.check_feature(user_id, feature.value)
        if check.available:
            return user_id

        logger.warning(
            f"Feature access denied: user_id={user_id}, tier={check.current_tier.value}, feature={feature.value}"
        )
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "detail": f"This feature requires {check.required_tier.value.title()} plan. Upgrade to unlock.",
                "code": "PAYWALL",
                "feature": feature.value,
                "upgrade_url": f"{FRONTEND_URL}/pricing",
                "required_tier": check.required_tier.value,
                "current_tier": check.current_tier.value,
            }
        )

    return feature_checker
