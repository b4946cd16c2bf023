from collections import defaultdict
from collections.abc import Iterable

from skillhub.core.config import Settings
from skillhub.models.metrics import RankingEntry, SentimentRecord, SocialPost, ViewMetric
from skillhub.models.profile import Profile


class RankingEngine:
    """
    Ranks profiles for "top performer" surfacing.

    overall_score = 100 * (views, engagement and bookings each normalized against the
    best profile in the batch, plus average sentiment mapped from [-1, 1] to [0, 1]),
    combined with the weights below. Each component is non-decreasing in its input.
    """

    # Weights for different factors
    WEIGHT_VIEWS = 0.40
    WEIGHT_ENGAGEMENT = 0.25
    WEIGHT_SENTIMENT = 0.15
    WEIGHT_CONVERSIONS = 0.20

    def __init__(
        self,
        weight_views: float = WEIGHT_VIEWS,
        weight_engagement: float = WEIGHT_ENGAGEMENT,
        weight_sentiment: float = WEIGHT_SENTIMENT,
        weight_conversions: float = WEIGHT_CONVERSIONS,
    ):
        weights = (weight_views, weight_engagement, weight_sentiment, weight_conversions)
        if any(weight < 0 for weight in weights):
            raise ValueError("Ranking weights must be non-negative")
        self.weight_views = weight_views
        self.weight_engagement = weight_engagement
        self.weight_sentiment = weight_sentiment
        self.weight_conversions = weight_conversions

    @classmethod
    def from_settings(cls, settings: Settings) -> "RankingEngine":
        return cls(
            weight_views=settings.RANK_WEIGHT_VIEWS,
            weight_engagement=settings.RANK_WEIGHT_ENGAGEMENT,
            weight_sentiment=settings.RANK_WEIGHT_SENTIMENT,
            weight_conversions=settings.RANK_WEIGHT_CONVERSIONS,
        )

    def rank(
        self,
        profiles: Iterable[Profile],
        view_metrics: Iterable[ViewMetric],
        sentiment_records: Iterable[SentimentRecord],
        social_posts: Iterable[SocialPost] = (),
        limit: int | None = None,
    ) -> list[RankingEntry]:
        metrics_by_id = {metric.profile_id: metric for metric in view_metrics}

        sentiment_scores: dict[str, list[float]] = defaultdict(list)
        for record in sentiment_records:
            sentiment_scores[record.profile_id].append(record.sentiment_score)

        interactions: dict[str, int] = defaultdict(int)
        for post in social_posts:
            interactions[post.profile_id] += post.interactions

        entries = []
        for profile in profiles:
            metric = metrics_by_id.get(profile.id)
            total_views = metric.total_views if metric else 0
            scores = sentiment_scores.get(profile.id, [])
            entries.append(
                RankingEntry(
                    profile_id=profile.id,
                    profile_name=profile.display_name,
                    profile_kind=profile.kind,
                    total_views=total_views,
                    total_engagement=total_views + interactions.get(profile.id, 0),
                    average_sentiment=round(sum(scores) / len(scores), 4) if scores else 0.0,
                    booking_conversions=metric.bookings if metric else 0,
                )
            )

        if not entries:
            return []

        max_views = max(entry.total_views for entry in entries)
        max_engagement = max(entry.total_engagement for entry in entries)
        max_bookings = max(entry.booking_conversions for entry in entries)

        for entry in entries:
            entry.overall_score = self.score(entry, max_views, max_engagement, max_bookings)

        entries.sort(key=lambda e: (-e.overall_score, -e.total_views, e.profile_id))
        return entries[:limit] if limit is not None else entries

    def score(self, entry: RankingEntry, max_views: int, max_engagement: int, max_bookings: int) -> float:
        views_score = self._normalize(entry.total_views, max_views)
        engagement_score = self._normalize(entry.total_engagement, max_engagement)
        conversion_score = self._normalize(entry.booking_conversions, max_bookings)
        sentiment_score = (min(max(entry.average_sentiment, -1.0), 1.0) + 1.0) / 2.0

        final_score = (
            (views_score * self.weight_views)
            + (engagement_score * self.weight_engagement)
            + (sentiment_score * self.weight_sentiment)
            + (conversion_score * self.weight_conversions)
        )
        return round(final_score * 100, 2)

    @staticmethod
    def _normalize(value: float, maximum: float) -> float:
        if maximum <= 0:
            return 0.0
        return value / maximum
