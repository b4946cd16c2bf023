from abc import ABC, abstractmethod

import redis.asyncio as redis
from cachetools import TTLCache
from loguru import logger
from pydantic import ValidationError

from skillhub.core.exceptions import RepositoryUnavailableError
from skillhub.models.profile import Profile


class ProfileRepository(ABC):
    """
    Keyed document store for profile records.

    Implementations raise RepositoryUnavailableError when the backend cannot be reached.
    """

    @abstractmethod
    async def get(self, profile_id: str) -> Profile | None:
        pass

    @abstractmethod
    async def put(self, profile: Profile) -> None:
        pass

    @abstractmethod
    async def delete(self, profile_id: str) -> bool:
        pass

    @abstractmethod
    async def list(self) -> list[Profile]:
        pass

    async def close(self) -> None:
        return None


class InMemoryProfileRepository(ProfileRepository):
    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    async def get(self, profile_id: str) -> Profile | None:
        raw = self._items.get(profile_id)
        return Profile.model_validate_json(raw) if raw else None

    async def put(self, profile: Profile) -> None:
        self._items[profile.id] = profile.model_dump_json()

    async def delete(self, profile_id: str) -> bool:
        return self._items.pop(profile_id, None) is not None

    async def list(self) -> list[Profile]:
        return [Profile.model_validate_json(raw) for raw in self._items.values()]


class RedisProfileRepository(ProfileRepository):
    """Redis-backed profile documents stored as JSON under a key prefix."""

    def __init__(self, redis_url: str, key_prefix: str = "skillhub:profile:", max_connections: int = 20) -> None:
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self.max_connections = max_connections
        self._client: redis.Redis | None = None
        # Negative cache for missing ids to avoid repeated GETs for unknown profiles
        self._missing_ids: TTLCache = TTLCache(maxsize=10000, ttl=300)

    async def get_client(self) -> redis.Redis:
        if self._client is None:
            logger.info("Creating Redis client for profile repository")
            self._client = redis.from_url(
                self.redis_url,
                decode_responses=True,
                encoding="utf-8",
                socket_connect_timeout=5,
                socket_timeout=5,
                max_connections=self.max_connections,
                health_check_interval=30,
                socket_keepalive=True,
            )
        return self._client

    def _format_key(self, profile_id: str) -> str:
        return f"{self.key_prefix}{profile_id}"

    async def get(self, profile_id: str) -> Profile | None:
        if profile_id in self._missing_ids:
            logger.debug(f"[REDIS] Negative cache hit for missing profile {profile_id}")
            return None
        try:
            client = await self.get_client()
            raw = await client.get(self._format_key(profile_id))
        except (redis.RedisError, OSError) as exc:
            raise RepositoryUnavailableError(f"Failed to get profile '{profile_id}': {exc}") from exc

        if not raw:
            self._missing_ids[profile_id] = True
            return None
        try:
            return Profile.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding undecodable profile document {profile_id}: {e}")
            return None

    async def put(self, profile: Profile) -> None:
        try:
            client = await self.get_client()
            await client.set(self._format_key(profile.id), profile.model_dump_json())
        except (redis.RedisError, OSError) as exc:
            raise RepositoryUnavailableError(f"Failed to store profile '{profile.id}': {exc}") from exc
        self._missing_ids.pop(profile.id, None)

    async def delete(self, profile_id: str) -> bool:
        try:
            client = await self.get_client()
            result = await client.delete(self._format_key(profile_id))
        except (redis.RedisError, OSError) as exc:
            raise RepositoryUnavailableError(f"Failed to delete profile '{profile_id}': {exc}") from exc
        return bool(result)

    async def list(self) -> list[Profile]:
        profiles = []
        try:
            client = await self.get_client()
            async for key in client.scan_iter(match=f"{self.key_prefix}*", count=500):
                raw = await client.get(key)
                if not raw:
                    continue
                try:
                    profiles.append(Profile.model_validate_json(raw))
                except ValidationError as e:
                    logger.warning(f"Skipping undecodable profile document {key}: {e}")
        except (redis.RedisError, OSError) as exc:
            raise RepositoryUnavailableError(f"Failed to scan profiles: {exc}") from exc
        return profiles

    async def close(self) -> None:
        """Close and disconnect the Redis client"""
        if self._client is not None:
            try:
                await self._client.close()
                logger.info("Profile repository Redis client closed")
            except Exception as exc:
                logger.warning(f"Failed to close profile repository Redis client: {exc}")
            finally:
                self._client = None
