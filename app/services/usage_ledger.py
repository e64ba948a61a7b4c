"""
Usage ledger for per-tier quota accounting.

Monthly counters (resume versions, cover letters, interview sessions) live on one
row per user per billing period. The AI enhancement counter is daily and lives on
its own row per user per UTC day, so a billing period renewal never resets it.

Increments are single conditional UPDATE statements (compare-and-increment), so
two concurrent requests can never both pass a limit that only one should pass.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import QuotaExceeded
from app.core.tier_catalog import (
    is_unlimited,
    limit_for_kind,
    limits_for,
    required_tier_for_quota,
)
from app.db.base import utcnow
from app.db.models.subscription import SubscriptionTier, SubscriptionStatus
from app.db.models.usage import DailyUsage, UsagePeriod, UsageKind, MONTHLY_COUNTERS
from app.services.subscription_store import SubscriptionStore

logger = logging.getLogger(__name__)

# remaining() result for an uncapped quota
UNBOUNDED: Optional[int] = None


def day_start(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def calendar_month(now: datetime) -> Tuple[datetime, datetime]:
    start = day_start(now).replace(day=1)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


@dataclass
class UsageSnapshot:
    """Counters for the user's current period and day as of one point in time."""
    user_id: int
    period_start: datetime
    period_end: datetime
    resume_versions_used: int = 0
    ai_enhancements_used_today: int = 0
    cover_letters_used: int = 0
    interview_sessions_used: int = 0

    def used(self, kind: UsageKind) -> int:
        kind = UsageKind(kind)
        if kind == UsageKind.AI_ENHANCEMENT:
            return self.ai_enhancements_used_today
        return getattr(self, MONTHLY_COUNTERS[kind])


class UsageLedger:
    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock
        self.subscriptions = SubscriptionStore(db)

    def current_window(self, user_id: int, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
        """
        Monthly accounting window for a user.

        Live paid subscriptions count against their billing period; everyone
        else against the UTC calendar month.
        """
        now = now or self.clock()
        sub = self.subscriptions.get(user_id)
        if (
            sub
            and sub.tier != SubscriptionTier.FREE
            and sub.status != SubscriptionStatus.CANCELED
            and sub.current_period_start <= now < sub.current_period_end
        ):
            return sub.current_period_start, sub.current_period_end
        return calendar_month(now)

    def get_current_usage(self, user_id: int) -> UsageSnapshot:
        """Usage for the current period and UTC day; zeroed when nothing was recorded yet."""
        now = self.clock()
        start, end = self.current_window(user_id, now)
        return self._snapshot(user_id, start, end, now)

    def record_usage(
        self,
        user_id: int,
        kind: UsageKind,
        tier: Optional[SubscriptionTier] = None,
    ) -> UsageSnapshot:
        """
        Consume one unit of kind for the user's current period (or day, for AI).

        Args:
            user_id: User ID
            kind: Usage kind to increment
            tier: Tier whose limits apply (defaults to the user's effective tier)

        Returns:
            Snapshot after the increment

        Raises:
            QuotaExceeded: If the tier's limit is already used up; nothing is recorded
        """
        kind = UsageKind(kind)
        if tier is None:
            tier = self.subscriptions.get_or_create_default(user_id).effective_tier
        tier = SubscriptionTier(tier)
        limit = limit_for_kind(limits_for(tier), kind)
        now = self.clock()
        start, end = self.current_window(user_id, now)

        if kind == UsageKind.AI_ENHANCEMENT:
            row = self._ensure_daily_row(user_id, day_start(now))
            accepted = self._increment(DailyUsage, "ai_enhancements_used", row.id, now, limit)
        else:
            row = self._ensure_period_row(user_id, start, end)
            accepted = self._increment(UsagePeriod, MONTHLY_COUNTERS[kind], row.id, now, limit)
        self.db.commit()

        snapshot = self._snapshot(user_id, start, end, now)
        if not accepted:
            required = required_tier_for_quota(kind, tier)
            logger.warning(
                f"Quota exceeded: user_id={user_id}, kind={kind.value}, tier={tier.value}, "
                f"limit={limit}, used={snapshot.used(kind)}"
            )
            raise QuotaExceeded(
                feature=kind.value,
                tier=tier.value,
                limit=limit,
                used=snapshot.used(kind),
                required_tier=required.value if required else None,
            )

        logger.info(
            f"Usage recorded: user_id={user_id}, kind={kind.value}, tier={tier.value}, "
            f"used={snapshot.used(kind)}/{'unlimited' if is_unlimited(limit) else limit}"
        )
        return snapshot

    def remaining(self, user_id: int, tier: SubscriptionTier, kind: UsageKind) -> Optional[int]:
        """max(0, limit - used); UNBOUNDED when the tier has no cap for kind."""
        limit = limit_for_kind(limits_for(tier), kind)
        if is_unlimited(limit):
            return UNBOUNDED
        return max(0, limit - self.get_current_usage(user_id).used(kind))

    def remaining_all(self, user_id: int, tier: SubscriptionTier) -> Dict[UsageKind, Optional[int]]:
        usage = self.get_current_usage(user_id)
        limits = limits_for(tier)
        result = {}
        for kind in UsageKind:
            limit = limit_for_kind(limits, kind)
            result[kind] = UNBOUNDED if is_unlimited(limit) else max(0, limit - usage.used(kind))
        return result

    # ---- internals ---------------------------------------------------

    def _get_period_row(self, user_id: int, period_start: datetime) -> Optional[UsagePeriod]:
        return self.db.query(UsagePeriod).filter(
            UsagePeriod.user_id == user_id,
            UsagePeriod.period_start == period_start,
        ).populate_existing().first()

    def _get_daily_row(self, user_id: int, day: datetime) -> Optional[DailyUsage]:
        return self.db.query(DailyUsage).filter(
            DailyUsage.user_id == user_id,
            DailyUsage.day == day,
        ).populate_existing().first()

    def _insert_once(self, row, lookup):
        """Insert row unless a concurrent request already did; returns the stored row."""
        try:
            with self.db.begin_nested():
                self.db.add(row)
        except IntegrityError:
            logger.info(f"Usage row created concurrently, reusing it: user_id={row.user_id}")
            return lookup()
        return row

    def _ensure_period_row(self, user_id: int, start: datetime, end: datetime) -> UsagePeriod:
        row = self._get_period_row(user_id, start)
        if row:
            return row
        row = self._insert_once(
            UsagePeriod(user_id=user_id, period_start=start, period_end=end),
            lambda: self._get_period_row(user_id, start),
        )
        logger.info(f"Usage period started: user_id={user_id}, period_start={start.isoformat()}")
        return row

    def _ensure_daily_row(self, user_id: int, day: datetime) -> DailyUsage:
        row = self._get_daily_row(user_id, day)
        if row:
            return row
        return self._insert_once(
            DailyUsage(user_id=user_id, day=day),
            lambda: self._get_daily_row(user_id, day),
        )

    def _increment(self, model, column: str, row_id: int, now: datetime, limit: Optional[int]) -> bool:
        counter = getattr(model, column)
        stmt = update(model).where(model.id == row_id)
        if not is_unlimited(limit):
            stmt = stmt.where(counter < limit)
        stmt = stmt.values({column: counter + 1, "updated_at": now})
        result = self.db.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount == 1

    def _snapshot(self, user_id: int, start: datetime, end: datetime, now: datetime) -> UsageSnapshot:
        snapshot = UsageSnapshot(user_id=user_id, period_start=start, period_end=end)
        period = self._get_period_row(user_id, start)
        if period:
            snapshot.period_end = period.period_end
            snapshot.resume_versions_used = period.resume_versions_used
            snapshot.cover_letters_used = period.cover_letters_used
            snapshot.interview_sessions_used = period.interview_sessions_used
        daily = self._get_daily_row(user_id, day_start(now))
        if daily:
            snapshot.ai_enhancements_used_today = daily.ai_enhancements_used
        return snapshot
