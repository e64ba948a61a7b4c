import enum
from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint
from app.db.base import Base, utcnow


class UsageKind(str, enum.Enum):
    """Quota-consuming actions."""
    RESUME_VERSION = "RESUME_VERSION"
    AI_ENHANCEMENT = "AI_ENHANCEMENT"
    COVER_LETTER = "COVER_LETTER"
    INTERVIEW_SESSION = "INTERVIEW_SESSION"


class UsagePeriod(Base):
    """
    Per-user usage counters for one monthly period.

    Counters reset when a new period row is created.
    """
    __tablename__ = "usage_periods"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)

    resume_versions_used = Column(Integer, nullable=False, default=0)
    cover_letters_used = Column(Integer, nullable=False, default=0)
    interview_sessions_used = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # One record per user per period
    __table_args__ = (
        UniqueConstraint("user_id", "period_start", name="uq_usage_user_period"),
    )


class DailyUsage(Base):
    """Per-user AI enhancement counter for one UTC day, independent of billing periods."""
    __tablename__ = "daily_usage"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    day = Column(DateTime, nullable=False)
    ai_enhancements_used = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "day", name="uq_daily_usage_user_day"),
    )


# Counter column for each monthly kind
MONTHLY_COUNTERS = {
    UsageKind.RESUME_VERSION: "resume_versions_used",
    UsageKind.COVER_LETTER: "cover_letters_used",
    UsageKind.INTERVIEW_SESSION: "interview_sessions_used",
}
