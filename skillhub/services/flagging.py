from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from loguru import logger

from skillhub.core.config import Settings
from skillhub.models.metrics import Flag, FlagReason, SentimentRecord, ViewMetric
from skillhub.models.profile import ProfileKind
from skillhub.services.state import EngagementState


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FlaggingEngine:
    """
    Raises, tracks and resolves moderation flags.

    At most one unresolved flag exists per (profile, reason). Rewrite attempts are
    counted per profile and mirrored onto every flag of that profile, so the count
    survives resolve/re-flag cycles.
    """

    def __init__(
        self,
        state: EngagementState,
        auto_flag_confidence: float = 0.7,
        low_engagement_idle_days: int = 30,
        poor_conversion_min_views: int = 100,
        poor_conversion_rate: float = 2.0,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.state = state
        self.auto_flag_confidence = auto_flag_confidence
        self.low_engagement_idle_days = low_engagement_idle_days
        self.poor_conversion_min_views = poor_conversion_min_views
        self.poor_conversion_rate = poor_conversion_rate
        self.clock = clock

    @classmethod
    def from_settings(cls, state: EngagementState, settings: Settings, **kwargs) -> "FlaggingEngine":
        return cls(
            state,
            auto_flag_confidence=settings.AUTO_FLAG_CONFIDENCE,
            low_engagement_idle_days=settings.LOW_ENGAGEMENT_IDLE_DAYS,
            poor_conversion_min_views=settings.POOR_CONVERSION_MIN_VIEWS,
            poor_conversion_rate=settings.POOR_CONVERSION_RATE,
            **kwargs,
        )

    def evaluate(
        self,
        profile_id: str,
        record: SentimentRecord,
        profile_name: str = "",
        profile_kind: ProfileKind = "service",
    ) -> Flag | None:
        """Auto-flag strongly negative content unless the profile already has an open flag."""
        if record.sentiment_label != "negative" or record.confidence <= self.auto_flag_confidence:
            return None
        if self.state.unresolved_flags(profile_id):
            logger.debug(f"Profile {profile_id} already has an open flag, skipping auto-flag")
            return None
        return self._raise(
            profile_id, FlagReason.NEGATIVE_SENTIMENT, record.sentiment_score, profile_name, profile_kind
        )

    def evaluate_performance(
        self,
        profile_id: str,
        metric: ViewMetric,
        now: datetime | None = None,
    ) -> list[Flag]:
        """Flag profiles that went quiet or convert poorly."""
        now = now or self.clock()
        raised = []
        name, kind = metric.profile_name, metric.profile_kind

        last_viewed = metric.last_viewed_at
        if last_viewed.tzinfo is None:
            last_viewed = last_viewed.replace(tzinfo=timezone.utc)
        if now - last_viewed > timedelta(days=self.low_engagement_idle_days):
            raised.append(self.flag(profile_id, FlagReason.LOW_ENGAGEMENT, 0.0, name, kind))

        if metric.total_views >= self.poor_conversion_min_views and metric.conversion_rate < self.poor_conversion_rate:
            raised.append(self.flag(profile_id, FlagReason.POOR_CONVERSION, 0.0, name, kind))

        return raised

    def flag(
        self,
        profile_id: str,
        reason: FlagReason | str = FlagReason.MANUAL,
        sentiment_score: float = 0.0,
        profile_name: str = "",
        profile_kind: ProfileKind = "service",
    ) -> Flag:
        """Flag a profile. Returns the open flag for the same reason if there is one."""
        reason = FlagReason(reason)
        for existing in self.state.unresolved_flags(profile_id):
            if existing.reason == reason:
                return existing
        return self._raise(profile_id, reason, sentiment_score, profile_name, profile_kind)

    def resolve(self, profile_id: str, reason: FlagReason | str | None = None) -> list[Flag]:
        """Resolve open flags for a profile. Resolving again is a no-op."""
        reason = FlagReason(reason) if reason is not None else None
        resolved = []
        now = self.clock()
        for flag in self.state.unresolved_flags(profile_id):
            if reason is not None and flag.reason != reason:
                continue
            flag.is_resolved = True
            flag.resolved_at = now
            self.state.adjust_flagged_count(-1)
            resolved.append(flag)

        if resolved:
            logger.info(f"Resolved {len(resolved)} flag(s) for profile {profile_id}")
        return resolved

    def increment_rewrite(self, profile_id: str) -> int | None:
        """Count a content rewrite. Profiles that were never flagged are ignored."""
        flags = self.state.flags_for(profile_id)
        if not flags:
            return None
        count = self.state.rewrite_counts.get(profile_id, 0) + 1
        self.state.rewrite_counts[profile_id] = count
        for flag in flags:
            flag.rewrite_count = count
        return count

    def rewrite_count(self, profile_id: str) -> int:
        return self.state.rewrite_counts.get(profile_id, 0)

    def _raise(
        self,
        profile_id: str,
        reason: FlagReason,
        sentiment_score: float,
        profile_name: str,
        profile_kind: ProfileKind,
    ) -> Flag:
        flag = Flag(
            profile_id=profile_id,
            profile_name=profile_name,
            profile_kind=profile_kind,
            reason=reason,
            sentiment_score=sentiment_score,
            flagged_at=self.clock(),
            rewrite_count=self.rewrite_count(profile_id),
        )
        self.state.flags.append(flag)
        self.state.adjust_flagged_count(1)
        logger.info(f"Flagged profile {profile_id} for {reason.value} (score={sentiment_score:.2f})")
        return flag
