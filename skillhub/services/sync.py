import asyncio
from collections.abc import Callable, Iterable
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel

from skillhub.core.base_client import BaseClient
from skillhub.core.exceptions import SupersededError
from skillhub.core.version import __version__
from skillhub.models.profile import Profile
from skillhub.services.repository import ProfileRepository

SyncTarget = Literal["repository", "mirror"]
TARGETS: tuple[SyncTarget, ...] = ("repository", "mirror")


class SyncResult(BaseModel):
    profile_id: str
    target: SyncTarget
    ok: bool
    skipped: bool = False
    superseded: bool = False
    error: str | None = None


class MirrorClient(BaseClient):
    """Posts profile rows to a remote mirror webhook (spreadsheet bridge or similar)."""

    def __init__(self, url: str, timeout: float = 10.0, max_retries: int = 2, backoff: float = 0.5):
        super().__init__(
            timeout=timeout,
            max_retries=max_retries,
            backoff=backoff,
            headers={"User-Agent": f"SkillHub/{__version__}", "Accept": "application/json"},
        )
        self.url = url

    @staticmethod
    def to_row(profile: Profile) -> dict[str, Any]:
        return {
            "id": profile.id,
            "kind": profile.kind,
            "name": profile.display_name,
            "skill": profile.skill,
            "years_experience": profile.years_experience,
            "location": profile.location,
            "contact": profile.contact,
            "bio": profile.bio,
            "suggested_price": profile.suggested_price,
            "status": profile.status.value,
            "created_at": profile.created_at.isoformat(),
            "updated_at": profile.updated_at.isoformat(),
        }

    async def upsert(self, profile: Profile, abandon: Callable[[], bool] | None = None) -> dict[str, Any]:
        return await self.post(self.url, json={"action": "upsert", "row": self.to_row(profile)}, abandon=abandon)

    async def remove(self, profile_id: str, abandon: Callable[[], bool] | None = None) -> dict[str, Any]:
        return await self.post(self.url, json={"action": "delete", "id": profile_id}, abandon=abandon)


class SyncService:
    """
    Best-effort propagation of local profile changes.

    Writes for one profile are applied strictly one after another by a per-profile
    worker. At most one write waits behind the one in flight: a newer upsert or a
    delete replaces it, and an in-flight mirror write stops retrying once something
    newer is queued. Targets therefore end up with the latest local state. Results
    are returned for logging; nothing here raises and local state is never rolled back.
    """

    def __init__(self, repository: ProfileRepository | None = None, mirror: MirrorClient | None = None):
        self.repository = repository
        self.mirror = mirror
        # profile id -> (latest snapshot or None for a delete, future for its results)
        self._pending: dict[str, tuple[Profile | None, asyncio.Future]] = {}
        self._workers: dict[str, asyncio.Task] = {}

    def enqueue_upsert(self, profile: Profile) -> asyncio.Future:
        return self._enqueue(profile.id, profile.model_copy())

    def enqueue_delete(self, profile_id: str) -> asyncio.Future:
        return self._enqueue(profile_id, None)

    async def sync_profile(self, profile: Profile) -> list[SyncResult]:
        return await self.enqueue_upsert(profile)

    async def remove_profile(self, profile_id: str) -> list[SyncResult]:
        return await self.enqueue_delete(profile_id)

    async def batch_sync(self, profiles: Iterable[Profile]) -> int:
        """Push every profile; returns how many reached all configured targets."""
        profiles = list(profiles)
        results = await asyncio.gather(*(self.sync_profile(profile) for profile in profiles))
        synced = sum(1 for per_profile in results if all(r.ok for r in per_profile))
        logger.info(f"Batch sync finished: {synced}/{len(profiles)} profiles synced")
        return synced

    async def flush(self) -> None:
        """Wait until every queued write has been applied."""
        while self._workers:
            await asyncio.gather(*list(self._workers.values()), return_exceptions=True)

    async def close(self) -> None:
        await self.flush()
        if self.mirror:
            await self.mirror.close()
        if self.repository:
            await self.repository.close()

    def _enqueue(self, profile_id: str, profile: Profile | None) -> asyncio.Future:
        future = asyncio.get_running_loop().create_future()
        replaced = self._pending.get(profile_id)
        self._pending[profile_id] = (profile, future)
        if replaced is not None:
            logger.debug(f"Queued sync of profile {profile_id} replaced by a newer write")
            self._resolve(replaced[1], self._superseded(profile_id))

        if profile_id not in self._workers:
            self._workers[profile_id] = asyncio.create_task(self._drain(profile_id))
        return future

    async def _drain(self, profile_id: str) -> None:
        future = None
        try:
            while profile_id in self._pending:
                profile, future = self._pending.pop(profile_id)
                self._resolve(future, await self._apply(profile_id, profile))
        finally:
            # Only reached with work left over when the worker itself was cancelled
            leftover = self._pending.pop(profile_id, None)
            for waiting in (future, leftover[1] if leftover else None):
                if waiting is not None and not waiting.done():
                    waiting.cancel()
            self._workers.pop(profile_id, None)

    async def _apply(self, profile_id: str, profile: Profile | None) -> list[SyncResult]:
        def newer_write_queued() -> bool:
            return profile_id in self._pending

        repository_op = mirror_op = None
        if profile is None:
            if self.repository is not None:
                repository_op = self.repository.delete(profile_id)
            if self.mirror is not None:
                mirror_op = self.mirror.remove(profile_id, abandon=newer_write_queued)
        else:
            if self.repository is not None:
                repository_op = self.repository.put(profile)
            if self.mirror is not None:
                mirror_op = self.mirror.upsert(profile, abandon=newer_write_queued)
        return [
            await self._run("repository", profile_id, repository_op),
            await self._run("mirror", profile_id, mirror_op),
        ]

    @staticmethod
    async def _run(target: SyncTarget, profile_id: str, operation) -> SyncResult:
        if operation is None:
            return SyncResult(profile_id=profile_id, target=target, ok=True, skipped=True)
        try:
            await operation
        except SupersededError:
            return SyncResult(profile_id=profile_id, target=target, ok=True, skipped=True, superseded=True)
        except Exception as e:
            logger.warning(f"Sync of profile {profile_id} to {target} failed: {e}")
            return SyncResult(profile_id=profile_id, target=target, ok=False, error=str(e))
        logger.debug(f"Synced profile {profile_id} to {target}")
        return SyncResult(profile_id=profile_id, target=target, ok=True)

    @staticmethod
    def _superseded(profile_id: str) -> list[SyncResult]:
        return [
            SyncResult(profile_id=profile_id, target=target, ok=True, skipped=True, superseded=True)
            for target in TARGETS
        ]

    @staticmethod
    def _resolve(future: asyncio.Future, results: list[SyncResult]) -> None:
        if not future.done():
            future.set_result(results)
