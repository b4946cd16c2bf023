from datetime import datetime, timezone
from enum import Enum
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field

from skillhub.core.constants import (
    REWRITE_CONFIDENCE,
    SENTIMENT_NEGATIVE_THRESHOLD,
    SENTIMENT_POSITIVE_THRESHOLD,
)
from skillhub.models.profile import ProfileKind

ContentType = Literal["bio", "social_post"]
SentimentLabel = Literal["positive", "neutral", "negative"]
SocialPlatform = Literal["instagram", "facebook", "twitter"]
SocialPostType = Literal["promotion", "testimonial", "tips", "showcase"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ViewMetric(BaseModel):
    profile_id: str
    profile_name: str = ""
    profile_kind: ProfileKind = "service"
    total_views: int = 1
    unique_views: int = 1
    views_today: int = 1
    views_this_week: int = 1
    views_this_month: int = 1
    last_viewed_at: datetime = Field(default_factory=_utcnow)
    bookings: int = 0
    conversion_rate: float = Field(default=0.0, description="Percentage of views that led to a booking")


class SentimentRecord(BaseModel):
    """
    Keyword sentiment of one piece of profile content.

    The label and rewrite hint are derived from score and confidence and cannot be set directly.
    """

    id: str = Field(default_factory=lambda: uuid4().hex)
    profile_id: str = ""
    content_type: ContentType = "bio"
    content: str = ""
    sentiment_score: float = Field(default=0.0, ge=-1.0, le=1.0)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    matched_keywords: list[str] = Field(default_factory=list)
    analyzed_at: datetime = Field(default_factory=_utcnow)

    @computed_field
    @property
    def sentiment_label(self) -> SentimentLabel:
        if self.sentiment_score > SENTIMENT_POSITIVE_THRESHOLD:
            return "positive"
        if self.sentiment_score < SENTIMENT_NEGATIVE_THRESHOLD:
            return "negative"
        return "neutral"

    @computed_field
    @property
    def needs_rewrite(self) -> bool:
        return self.sentiment_label == "negative" and self.confidence > REWRITE_CONFIDENCE


class SocialPost(BaseModel):
    post_id: str = Field(default_factory=lambda: uuid4().hex)
    profile_id: str
    platform: SocialPlatform = "instagram"
    post_type: SocialPostType = "promotion"
    content: str = ""
    hashtags: list[str] = Field(default_factory=list)
    image_prompt: str = ""
    likes: int = Field(default=0, ge=0)
    shares: int = Field(default=0, ge=0)
    comments: int = Field(default=0, ge=0)
    reach: int = Field(default=0, ge=0)
    sentiment_score: float = 0.0
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def interactions(self) -> int:
        return self.likes + self.shares + self.comments

    @computed_field
    @property
    def engagement_rate(self) -> float:
        if self.reach <= 0:
            return 0.0
        return round(self.interactions / self.reach * 100, 1)


class FlagReason(str, Enum):
    NEGATIVE_SENTIMENT = "negative_sentiment"
    LOW_ENGAGEMENT = "low_engagement"
    POOR_CONVERSION = "poor_conversion"
    MANUAL = "manual"


class Flag(BaseModel):
    id: str = Field(default_factory=lambda: uuid4().hex)
    profile_id: str
    profile_name: str = ""
    profile_kind: ProfileKind = "service"
    reason: FlagReason
    sentiment_score: float = 0.0
    flagged_at: datetime = Field(default_factory=_utcnow)
    is_resolved: bool = False
    resolved_at: datetime | None = None
    rewrite_count: int = 0


class RankingEntry(BaseModel):
    profile_id: str
    profile_name: str = ""
    profile_kind: ProfileKind = "service"
    total_views: int = 0
    total_engagement: int = 0
    average_sentiment: float = 0.0
    booking_conversions: int = 0
    overall_score: float = 0.0


class OverallStats(BaseModel):
    total_profiles: int = 0
    total_views: int = 0
    average_sentiment: float = 0.0
    flagged_profiles_count: int = 0
    top_service: str = ""
    top_location: str = ""
    engagement_trend: Literal["up", "down", "stable"] = "stable"
    sentiment_trend: Literal["improving", "declining", "stable"] = "stable"


class MetricsSnapshot(BaseModel):
    """Read-only aggregate handed to the dashboard layer."""

    model_config = ConfigDict(frozen=True)

    profile_views: list[ViewMetric] = Field(default_factory=list)
    social_engagement: list[SocialPost] = Field(default_factory=list)
    sentiment_analysis: list[SentimentRecord] = Field(default_factory=list)
    flagged_profiles: list[Flag] = Field(default_factory=list)
    top_performing_profiles: list[RankingEntry] = Field(default_factory=list)
    overall_stats: OverallStats = Field(default_factory=OverallStats)
    generated_at: datetime = Field(default_factory=_utcnow)
