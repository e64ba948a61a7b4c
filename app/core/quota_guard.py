"""
Quota enforcement dependency for metered features.

This module provides require_quota() dependency that:
1. Authenticates the user
2. Records one unit of usage against the user's effective tier
3. Raises QuotaExceeded (rendered as 429) when the tier's limit is used up
"""
import logging
from fastapi import Depends

from app.db.models.usage import UsageKind
from app.db.models.user import User
from app.core.auth_dependency import get_current_user_obj
from app.core.billing_dependency import get_subscription_service
from app.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)


def require_quota(kind: UsageKind):
    """
    Dependency that consumes quota before allowing a metered action.

    Args:
        kind: Usage kind the endpoint consumes (e.g. UsageKind.COVER_LETTER)

    Returns:
        User object if quota allows

    Raises:
        QuotaExceeded: Limit reached; carries the tier that lifts it
        HTTPException 401: Unauthorized
        HTTPException 404: User not found
    """
    kind = UsageKind(kind)

    def quota_checker(
        user: User = Depends(get_current_user_obj),
        service: SubscriptionService = Depends(get_subscription_service),
    ) -> User:
        snapshot = service.consume(user.id, kind)
        logger.debug(f"Quota check passed: user_id={user.id}, kind={kind.value}, used={snapshot.used(kind)}")
        return user

    return quota_checker
