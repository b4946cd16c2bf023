import threading
from collections import defaultdict, deque
from datetime import date, timedelta

from loguru import logger

from skillhub.core.constants import SENTIMENT_HISTORY_LIMIT
from skillhub.models.metrics import ContentType, Flag, SentimentRecord, SocialPost, ViewMetric


class EngagementState:
    """
    Shared in-process engagement state.

    Build one per process and pass it to the tracker, flagging engine and metrics
    service. Components mutate it through these methods only.
    """

    def __init__(self, sentiment_history_limit: int = SENTIMENT_HISTORY_LIMIT) -> None:
        self.view_metrics: dict[str, ViewMetric] = {}
        self.sentiment_records: dict[tuple[str, ContentType], SentimentRecord] = {}
        self.social_posts: dict[str, list[SocialPost]] = defaultdict(list)
        self.flags: list[Flag] = []
        self.rewrite_counts: dict[str, int] = {}
        self.flagged_profiles_count: int = 0
        # Viewer ids seen per profile, for unique view counting
        self.viewers: dict[str, set[str]] = defaultdict(set)
        # Total views per UTC calendar day, for trend detection; only the trend windows are kept
        self.daily_views: dict[date, int] = defaultdict(int)
        # Every analyzed score, oldest first, so trends see more than the latest record per type
        self.sentiment_history: deque[SentimentRecord] = deque(maxlen=sentiment_history_limit)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._daily_guard = threading.Lock()

    def lock_for(self, profile_id: str) -> threading.Lock:
        """Per-profile lock guarding read-modify-write of that profile's metrics."""
        with self._locks_guard:
            lock = self._locks.get(profile_id)
            if lock is None:
                lock = self._locks[profile_id] = threading.Lock()
            return lock

    # Sentiment

    def put_sentiment(self, record: SentimentRecord) -> None:
        self.sentiment_records[(record.profile_id, record.content_type)] = record
        self.sentiment_history.append(record)

    def sentiments_for(self, profile_id: str) -> list[SentimentRecord]:
        return [record for (pid, _), record in self.sentiment_records.items() if pid == profile_id]

    # Views

    def record_daily_view(self, day: date, keep_days: int) -> None:
        """Count a view on ``day`` and drop days older than ``keep_days`` before the newest one."""
        with self._daily_guard:
            self.daily_views[day] += 1
            cutoff = max(self.daily_views) - timedelta(days=keep_days)
            for stale in [d for d in self.daily_views if d <= cutoff]:
                del self.daily_views[stale]

    # Flags

    def flags_for(self, profile_id: str) -> list[Flag]:
        return [flag for flag in self.flags if flag.profile_id == profile_id]

    def unresolved_flags(self, profile_id: str | None = None) -> list[Flag]:
        return [
            flag
            for flag in self.flags
            if not flag.is_resolved and (profile_id is None or flag.profile_id == profile_id)
        ]

    def adjust_flagged_count(self, delta: int) -> None:
        self.flagged_profiles_count = max(0, self.flagged_profiles_count + delta)

    # Cleanup

    def purge_profile(self, profile_id: str) -> None:
        """Drop a deleted profile's metrics. Resolved flags stay as moderation history."""
        self.view_metrics.pop(profile_id, None)
        self.viewers.pop(profile_id, None)
        self.social_posts.pop(profile_id, None)
        for key in [key for key in self.sentiment_records if key[0] == profile_id]:
            del self.sentiment_records[key]
        kept = [record for record in self.sentiment_history if record.profile_id != profile_id]
        self.sentiment_history = deque(kept, maxlen=self.sentiment_history.maxlen)
        self.rewrite_counts.pop(profile_id, None)

        open_flags = self.unresolved_flags(profile_id)
        if open_flags:
            open_ids = {flag.id for flag in open_flags}
            self.flags = [flag for flag in self.flags if flag.id not in open_ids]
            self.adjust_flagged_count(-len(open_flags))

        with self._locks_guard:
            self._locks.pop(profile_id, None)
        logger.debug(f"Purged engagement state for profile {profile_id} ({len(open_flags)} open flags dropped)")
