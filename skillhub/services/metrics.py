from collections import Counter, defaultdict
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone

from loguru import logger

from skillhub.core.constants import ENGAGEMENT_TREND_TOLERANCE, SENTIMENT_TREND_TOLERANCE, TREND_WINDOW_DAYS
from skillhub.models.metrics import (
    ContentType,
    MetricsSnapshot,
    OverallStats,
    SentimentRecord,
    SocialPlatform,
    SocialPost,
    SocialPostType,
)
from skillhub.models.profile import Profile, ProfileKind
from skillhub.services.flagging import FlaggingEngine
from skillhub.services.ranking import RankingEngine
from skillhub.services.sentiment import SentimentAnalyzer
from skillhub.services.state import EngagementState


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MetricsService:
    """
    Content analysis pipeline and dashboard aggregates.
    """

    def __init__(
        self,
        state: EngagementState,
        analyzer: SentimentAnalyzer,
        flagging: FlaggingEngine,
        ranking: RankingEngine,
        clock: Callable[[], datetime] = _utcnow,
        top_limit: int = 10,
    ):
        self.state = state
        self.analyzer = analyzer
        self.flagging = flagging
        self.ranking = ranking
        self.clock = clock
        self.top_limit = top_limit

    def analyze_profile_content(
        self,
        profile_id: str,
        content: str,
        content_type: ContentType = "bio",
        profile_name: str = "",
        profile_kind: ProfileKind = "service",
    ) -> SentimentRecord:
        """Score content, keep it as the latest record for its type and run auto-flagging."""
        record = self.analyzer.analyze(
            content, profile_id=profile_id, content_type=content_type, analyzed_at=self.clock()
        )
        self.state.put_sentiment(record)
        logger.debug(
            f"Sentiment for {profile_id}/{content_type}: {record.sentiment_label} "
            f"(score={record.sentiment_score:.2f}, confidence={record.confidence:.2f})"
        )
        self.flagging.evaluate(profile_id, record, profile_name=profile_name, profile_kind=profile_kind)
        return record

    def on_profile_content(self, profile: Profile) -> None:
        """ProfileStore content listener."""
        self.analyze_profile_content(
            profile.id, profile.bio, "bio", profile_name=profile.display_name, profile_kind=profile.kind
        )

    def record_social_post(
        self,
        profile_id: str,
        content: str,
        platform: SocialPlatform = "instagram",
        likes: int = 0,
        shares: int = 0,
        comments: int = 0,
        reach: int = 0,
        profile_name: str = "",
        profile_kind: ProfileKind = "service",
        post_type: SocialPostType = "promotion",
        hashtags: Iterable[str] = (),
        image_prompt: str = "",
    ) -> SocialPost:
        """Store a post and score its text; hashtags and the image prompt are not part of the analysis."""
        record = self.analyze_profile_content(profile_id, content, "social_post", profile_name, profile_kind)
        post = SocialPost(
            profile_id=profile_id,
            platform=platform,
            post_type=post_type,
            content=content,
            hashtags=list(hashtags),
            image_prompt=image_prompt,
            likes=likes,
            shares=shares,
            comments=comments,
            reach=reach,
            sentiment_score=record.sentiment_score,
            created_at=self.clock(),
        )
        self.state.social_posts[profile_id].append(post)
        return post

    def overall_stats(self, profiles: Iterable[Profile], now: datetime | None = None) -> OverallStats:
        now = now or self.clock()
        profiles = list(profiles)
        metrics = self.state.view_metrics
        records = list(self.state.sentiment_records.values())

        views_by_skill: dict[str, int] = defaultdict(int)
        for profile in profiles:
            metric = metrics.get(profile.id)
            views_by_skill[profile.skill] += metric.total_views if metric else 0

        locations = Counter(profile.location for profile in profiles if profile.location)

        return OverallStats(
            total_profiles=len(profiles),
            total_views=sum(metric.total_views for metric in metrics.values()),
            average_sentiment=self._average([record.sentiment_score for record in records]),
            flagged_profiles_count=self.state.flagged_profiles_count,
            top_service=self._top_key(views_by_skill),
            top_location=self._top_key(locations),
            engagement_trend=self.engagement_trend(now),
            sentiment_trend=self.sentiment_trend(now),
        )

    def engagement_trend(self, now: datetime) -> str:
        """Views in the last window against the window before it."""
        today = now.date()
        current = sum(
            self.state.daily_views.get(today - timedelta(days=offset), 0) for offset in range(TREND_WINDOW_DAYS)
        )
        prior = sum(
            self.state.daily_views.get(today - timedelta(days=offset), 0)
            for offset in range(TREND_WINDOW_DAYS, TREND_WINDOW_DAYS * 2)
        )
        if prior == 0:
            return "up" if current > 0 else "stable"
        change = (current - prior) / prior
        if change > ENGAGEMENT_TREND_TOLERANCE:
            return "up"
        if change < -ENGAGEMENT_TREND_TOLERANCE:
            return "down"
        return "stable"

    def sentiment_trend(self, now: datetime) -> str:
        """Mean score of every analysis in the last window against the window before it."""
        window = timedelta(days=TREND_WINDOW_DAYS)
        current, prior = [], []
        for record in self.state.sentiment_history:
            age = now - record.analyzed_at
            if timedelta(0) <= age < window:
                current.append(record.sentiment_score)
            elif window <= age < window * 2:
                prior.append(record.sentiment_score)
        if not current or not prior:
            return "stable"
        change = self._average(current) - self._average(prior)
        if change > SENTIMENT_TREND_TOLERANCE:
            return "improving"
        if change < -SENTIMENT_TREND_TOLERANCE:
            return "declining"
        return "stable"

    def top_performers(self, profiles: Iterable[Profile], limit: int | None = None):
        posts = [post for per_profile in self.state.social_posts.values() for post in per_profile]
        return self.ranking.rank(
            profiles,
            self.state.view_metrics.values(),
            self.state.sentiment_records.values(),
            posts,
            limit=limit if limit is not None else self.top_limit,
        )

    def snapshot(self, profiles: Iterable[Profile], now: datetime | None = None) -> MetricsSnapshot:
        """Deep-copied aggregate safe to hand to read-only consumers."""
        profiles = list(profiles)
        now = now or self.clock()
        return MetricsSnapshot(
            profile_views=[metric.model_copy() for metric in self.state.view_metrics.values()],
            social_engagement=[
                post.model_copy(deep=True)
                for per_profile in self.state.social_posts.values()
                for post in per_profile
            ],
            sentiment_analysis=[record.model_copy(deep=True) for record in self.state.sentiment_records.values()],
            flagged_profiles=[flag.model_copy() for flag in self.state.flags],
            top_performing_profiles=self.top_performers(profiles),
            overall_stats=self.overall_stats(profiles, now),
            generated_at=now,
        )

    @staticmethod
    def _average(values: list[float]) -> float:
        return round(sum(values) / len(values), 4) if values else 0.0

    @staticmethod
    def _top_key(counts) -> str:
        if not counts:
            return ""
        # Highest count wins, ties broken alphabetically
        return min(counts.items(), key=lambda item: (-item[1], item[0]))[0]
