"""
Pydantic schemas for usage endpoints.
"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field


class UsageKindDetail(BaseModel):
    """Usage details for a single usage kind."""
    kind: str = Field(..., description="Usage kind (RESUME_VERSION, AI_ENHANCEMENT, COVER_LETTER, INTERVIEW_SESSION)")
    window: str = Field(..., description="'day' for AI enhancements, 'period' otherwise")
    limit: Optional[int] = Field(None, description="Limit for the window (None for unlimited)")
    used: int = Field(..., description="Usage in the current window")
    remaining: Optional[int] = Field(None, description="Remaining quota (None for unlimited)")
    unlimited: bool = Field(..., description="Whether this kind has unlimited quota")


class UsageResponse(BaseModel):
    """Response schema for GET /subscriptions/usage."""
    tier: str = Field(..., description="Effective tier whose limits apply")
    period_start: datetime
    period_end: datetime
    usage: List[UsageKindDetail]

    class Config:
        json_schema_extra = {
            "example": {
                "tier": "FREE",
                "period_start": "2026-01-01T00:00:00",
                "period_end": "2026-02-01T00:00:00",
                "usage": [
                    {
                        "kind": "AI_ENHANCEMENT",
                        "window": "day",
                        "limit": 5,
                        "used": 2,
                        "remaining": 3,
                        "unlimited": False
                    }
                ]
            }
        }


class QuotaExceededResponse(BaseModel):
    """Error response schema for quota exceeded."""
    error: str = Field("quota_exceeded", description="Error code")
    detail: str = Field(..., description="Human-readable error message")
    feature: str = Field(..., description="Usage kind that exceeded quota")
    tier: str = Field(..., description="User's effective tier")
    limit: int = Field(..., description="Limit for this usage kind")
    used: int = Field(..., description="Current usage")
    remaining: int = Field(..., description="Remaining quota (0 if exceeded)")
    required_tier: Optional[str] = Field(None, description="Lowest tier with a higher limit")
