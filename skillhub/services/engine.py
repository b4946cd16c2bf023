from collections.abc import Callable
from datetime import datetime, timezone

from loguru import logger

from skillhub.core.config import Settings
from skillhub.models.metrics import MetricsSnapshot, SocialPlatform, SocialPost, SocialPostType, ViewMetric
from skillhub.models.profile import Profile
from skillhub.services.content_generator import ContentGenerator
from skillhub.services.flagging import FlaggingEngine
from skillhub.services.gemini import GeminiService
from skillhub.services.metrics import MetricsService
from skillhub.services.profile_store import ProfileStore
from skillhub.services.ranking import RankingEngine
from skillhub.services.repository import InMemoryProfileRepository, ProfileRepository, RedisProfileRepository
from skillhub.services.sentiment import SentimentAnalyzer
from skillhub.services.social_generator import SocialPostGenerator
from skillhub.services.state import EngagementState
from skillhub.services.sync import MirrorClient, SyncService
from skillhub.services.view_tracker import ViewTracker


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProfileEngine:
    """Facade wiring the profile lifecycle and engagement components together."""

    def __init__(
        self,
        settings: Settings | None = None,
        gemini: GeminiService | None = None,
        repository: ProfileRepository | None = None,
        mirror: MirrorClient | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.settings = settings or Settings()
        self.state = EngagementState()

        gemini = gemini or GeminiService(api_key=self.settings.GEMINI_API_KEY, model=self.settings.DEFAULT_GEMINI_MODEL)
        self.generator = ContentGenerator(
            gemini, timeout=self.settings.GENERATION_TIMEOUT_SECONDS, currency=self.settings.PRICE_CURRENCY
        )
        self.social_generator = SocialPostGenerator(gemini, timeout=self.settings.GENERATION_TIMEOUT_SECONDS)

        if repository is None:
            repository = self._build_repository()
        if mirror is None and self.settings.MIRROR_URL:
            mirror = MirrorClient(
                self.settings.MIRROR_URL,
                timeout=self.settings.MIRROR_TIMEOUT_SECONDS,
                max_retries=self.settings.MIRROR_MAX_RETRIES,
                backoff=self.settings.MIRROR_BACKOFF_SECONDS,
            )
        self.sync = SyncService(repository=repository, mirror=mirror)

        self.store = ProfileStore(self.generator, state=self.state, repository=repository, sync=self.sync, clock=clock)
        self.views = ViewTracker(self.state, clock=clock)
        self.analyzer = SentimentAnalyzer()
        self.flagging = FlaggingEngine.from_settings(self.state, self.settings, clock=clock)
        self.ranking = RankingEngine.from_settings(self.settings)
        self.metrics = MetricsService(self.state, self.analyzer, self.flagging, self.ranking, clock=clock)

        self.store.add_content_listener(self.metrics.on_profile_content)

    def _build_repository(self) -> ProfileRepository:
        if self.settings.REDIS_URL:
            return RedisProfileRepository(
                self.settings.REDIS_URL,
                key_prefix=self.settings.REDIS_PROFILE_KEY,
                max_connections=self.settings.REDIS_MAX_CONNECTIONS,
            )
        logger.info("REDIS_URL is not set. Profiles are kept in memory only.")
        return InMemoryProfileRepository()

    def record_view(
        self, profile_id: str, viewer_id: str | None = None, viewed_at: datetime | None = None
    ) -> ViewMetric | None:
        """Record a view of a known profile. Unknown ids are ignored."""
        profile = self.store.get(profile_id)
        if profile is None:
            logger.debug(f"Ignoring view for unknown profile {profile_id}")
            return None
        return self.views.record_view(
            profile.id, profile.display_name, profile.kind, viewer_id=viewer_id, viewed_at=viewed_at
        )

    def record_booking(self, profile_id: str) -> ViewMetric | None:
        metric = self.views.record_booking(profile_id)
        if metric is not None:
            self.flagging.evaluate_performance(profile_id, metric)
        return metric

    async def rewrite_bio(self, profile_id: str, bio: str) -> Profile | None:
        """Replace a bio after moderation; counts as a rewrite attempt."""
        profile = await self.store.update(profile_id, {"bio": bio})
        if profile is not None:
            self.flagging.increment_rewrite(profile_id)
        return profile

    async def generate_social_post(
        self, profile_id: str, platform: SocialPlatform = "instagram", post_type: SocialPostType = "promotion"
    ) -> SocialPost | None:
        """Draft a post for a known profile and record it with zero engagement. Unknown ids are ignored."""
        profile = self.store.get(profile_id)
        if profile is None:
            logger.debug(f"Ignoring social post request for unknown profile {profile_id}")
            return None
        draft = await self.social_generator.generate(profile.display_name, profile.skill, platform, post_type)
        if self.store.get(profile_id) is None:
            logger.debug(f"Profile {profile_id} deleted while its social post was generating")
            return None
        logger.info(f"Drafted {platform} {post_type} post for profile {profile_id} ({draft.source})")
        return self.metrics.record_social_post(
            profile_id,
            draft.content,
            platform=draft.platform,
            profile_name=profile.display_name,
            profile_kind=profile.kind,
            post_type=draft.post_type,
            hashtags=draft.hashtags,
            image_prompt=draft.image_prompt,
        )

    def review_performance(self) -> int:
        """Run the low-engagement and poor-conversion rules; returns the open performance flags."""
        open_flags = 0
        for profile in self.store.list():
            metric = self.views.get(profile.id)
            if metric is not None:
                open_flags += len(self.flagging.evaluate_performance(profile.id, metric))
        return open_flags

    def snapshot(self) -> MetricsSnapshot:
        return self.metrics.snapshot(self.store.list())

    async def close(self) -> None:
        await self.store.drain()
        await self.sync.close()
