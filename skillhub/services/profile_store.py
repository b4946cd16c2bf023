import asyncio
from collections.abc import Callable, Coroutine
from datetime import datetime, timezone
from typing import Any

from loguru import logger

from skillhub.core.exceptions import InvalidStatusError, InvalidTransitionError, RepositoryUnavailableError
from skillhub.models.profile import (
    LocalProfileForm,
    Profile,
    ProfileKind,
    ProfileStatus,
    ServiceProviderForm,
    can_transition,
    parse_form,
)
from skillhub.services.content_generator import ContentGenerator
from skillhub.services.repository import ProfileRepository
from skillhub.services.state import EngagementState
from skillhub.services.sync import SyncService

ContentListener = Callable[[Profile], Any]

IMMUTABLE_FIELDS = frozenset({"id", "created_at"})
RETRYABLE_STATUSES = frozenset({ProfileStatus.GENERATION_FAILED, ProfileStatus.READY})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProfileStore:
    """
    Owns profile records and their status state machine.

    The local cache is authoritative for this process. Generation runs as a background
    task so a new profile is usable in PENDING_CONTENT straight away; repository and
    mirror writes are queued on the sync service, which applies them in order per
    profile, and never fail a store operation.
    """

    def __init__(
        self,
        generator: ContentGenerator,
        state: EngagementState | None = None,
        repository: ProfileRepository | None = None,
        sync: SyncService | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.generator = generator
        self.state = state
        self.repository = repository
        self.sync = sync if sync is not None else SyncService(repository=repository)
        self.clock = clock
        self._profiles: dict[str, Profile] = {}
        self._generation_tasks: dict[str, asyncio.Task] = {}
        self._background: set[asyncio.Future] = set()
        self._content_listeners: list[ContentListener] = []

    def add_content_listener(self, listener: ContentListener) -> None:
        """Register a callback invoked whenever a profile's bio changes."""
        self._content_listeners.append(listener)

    # Reads

    def get(self, profile_id: str) -> Profile | None:
        profile = self._profiles.get(profile_id)
        return profile.model_copy() if profile else None

    def list(self, status: ProfileStatus | None = None, kind: ProfileKind | None = None) -> list[Profile]:
        return [
            profile.model_copy()
            for profile in self._profiles.values()
            if (status is None or profile.status == status) and (kind is None or profile.kind == kind)
        ]

    async def load(self, profile_id: str) -> Profile | None:
        """Local cache first, then the repository."""
        if profile_id in self._profiles:
            return self.get(profile_id)
        if self.repository is None:
            return None
        try:
            profile = await self.repository.get(profile_id)
        except RepositoryUnavailableError as e:
            logger.warning(f"Repository unavailable while loading {profile_id}: {e}")
            return None
        if profile is not None:
            self._profiles[profile.id] = profile
        return profile.model_copy() if profile else None

    async def refresh(self) -> int:
        """Pull repository records missing from the local cache. Returns how many were added."""
        if self.repository is None:
            return 0
        try:
            remote = await self.repository.list()
        except RepositoryUnavailableError as e:
            logger.warning(f"Repository unavailable, continuing with {len(self._profiles)} cached profiles: {e}")
            return 0
        added = 0
        for profile in remote:
            if profile.id not in self._profiles:
                self._profiles[profile.id] = profile
                added += 1
        logger.info(f"Loaded {added} profile(s) from repository")
        return added

    # Mutations

    async def create(self, form: ServiceProviderForm | LocalProfileForm | dict[str, Any]) -> Profile:
        if isinstance(form, dict):
            form = parse_form(form)
        now = self.clock()
        profile = Profile(**form.normalized(), created_at=now, updated_at=now)
        self._profiles[profile.id] = profile
        logger.info(f"Created {profile.kind} profile {profile.id} for {profile.display_name!r}")

        self._schedule_sync(profile)
        self._generation_tasks[profile.id] = self._spawn(self._generate(profile.id))
        return profile.model_copy()

    async def update(self, profile_id: str, fields: dict[str, Any]) -> Profile | None:
        profile = self._profiles.get(profile_id)
        if profile is None:
            logger.debug(f"Ignoring update for unknown profile {profile_id}")
            return None

        changes = {key: value for key, value in fields.items() if key not in IMMUTABLE_FIELDS}
        if len(changes) != len(fields):
            ignored = sorted(IMMUTABLE_FIELDS & set(fields))
            logger.warning(f"Ignoring immutable fields in update of {profile_id}: {ignored}")

        if "status" in changes:
            target = self._coerce_status(changes["status"])
            if not can_transition(profile.status, target):
                raise InvalidTransitionError(profile.status, target)
            changes["status"] = target

        updated = Profile.model_validate({**profile.model_dump(), **changes, "updated_at": self.clock()})
        self._profiles[profile_id] = updated

        self._schedule_sync(updated)
        if "bio" in changes and updated.bio != profile.bio:
            self._notify(updated)
        return updated.model_copy()

    async def retry(self, profile_id: str) -> Profile | None:
        """Regenerate content for a failed or ready profile and wait for the outcome."""
        profile = self._profiles.get(profile_id)
        if profile is None:
            return None
        if profile.status not in RETRYABLE_STATUSES:
            raise InvalidTransitionError(profile.status, ProfileStatus.READY)

        in_flight = self._generation_tasks.get(profile_id)
        if in_flight is not None and not in_flight.done():
            return await in_flight

        task = self._spawn(self._generate(profile_id))
        self._generation_tasks[profile_id] = task
        return await task

    async def delete(self, profile_id: str) -> bool:
        profile = self._profiles.pop(profile_id, None)
        if profile is None:
            return False

        task = self._generation_tasks.pop(profile_id, None)
        if task is not None and not task.done():
            task.cancel()
        if self.state is not None:
            self.state.purge_profile(profile_id)

        logger.info(f"Deleted profile {profile_id}")
        if self.sync is not None:
            self._track(self.sync.enqueue_delete(profile_id))
        return True

    # Background work

    async def wait_for_generation(self, profile_id: str) -> Profile | None:
        task = self._generation_tasks.get(profile_id)
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                return None
        return self.get(profile_id)

    async def drain(self) -> None:
        """Wait for all in-flight generation and sync tasks."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def _generate(self, profile_id: str) -> Profile | None:
        profile = self._profiles.get(profile_id)
        if profile is None:
            return None

        try:
            content = await self.generator.generate(
                profile.display_name, profile.skill, profile.years_experience, profile.location
            )
        except Exception as e:
            logger.exception(f"Content generation failed for profile {profile_id}: {e}")
            current = self._profiles.get(profile_id)
            if current is None:
                return None
            if current.status in (ProfileStatus.PENDING_CONTENT, ProfileStatus.GENERATION_FAILED):
                current.status = ProfileStatus.GENERATION_FAILED
                current.updated_at = self.clock()
                self._schedule_sync(current)
            return current.model_copy()

        current = self._profiles.get(profile_id)
        if current is None:
            logger.debug(f"Profile {profile_id} deleted while content was generating")
            return None

        current.bio = content.bio
        current.suggested_price = content.price
        if current.status in (ProfileStatus.PENDING_CONTENT, ProfileStatus.GENERATION_FAILED):
            current.status = ProfileStatus.READY
        current.updated_at = self.clock()
        logger.info(f"Profile {profile_id} content ready ({content.source}, price={content.price})")

        self._schedule_sync(current)
        self._notify(current)
        return current.model_copy()

    def _notify(self, profile: Profile) -> None:
        for listener in self._content_listeners:
            try:
                listener(profile.model_copy())
            except Exception as e:
                logger.exception(f"Content listener failed for profile {profile.id}: {e}")

    def _schedule_sync(self, profile: Profile) -> None:
        if self.sync is not None:
            self._track(self.sync.enqueue_upsert(profile.model_copy()))

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        return self._track(asyncio.create_task(coro))

    def _track(self, future: asyncio.Future) -> asyncio.Future:
        self._background.add(future)
        future.add_done_callback(self._background.discard)
        return future

    @staticmethod
    def _coerce_status(value: Any) -> ProfileStatus:
        if isinstance(value, ProfileStatus):
            return value
        if isinstance(value, str):
            try:
                return ProfileStatus(value)
            except ValueError:
                if value.upper() in ProfileStatus.__members__:
                    return ProfileStatus[value.upper()]
        raise InvalidStatusError(value)
