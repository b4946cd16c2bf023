import asyncio
from collections.abc import Callable
from typing import Any

import httpx
from loguru import logger

from skillhub.core.exceptions import SupersededError

# Answers worth another attempt; any other 4xx is final
TRANSIENT_STATUSES = frozenset({408, 425, 429, 500, 502, 503, 504})


class BaseClient:
    """
    Async JSON client for outbound webhook writes.

    Connection errors and transient statuses are retried with exponential backoff.
    Callers may pass ``abandon``; it is checked before every retry and, when it
    returns True, the write is dropped with SupersededError instead of being resent
    on top of a newer one.
    """

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff: float = 0.5,
        headers: dict[str, str] | None = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max(max_retries, 1)
        self.backoff = backoff
        self.headers = headers or {}
        self._client: httpx.AsyncClient | None = None

    async def get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, headers=self.headers, follow_redirects=True
            )
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def is_transient(error: httpx.HTTPError) -> bool:
        if isinstance(error, httpx.HTTPStatusError):
            return error.response.status_code in TRANSIENT_STATUSES
        return isinstance(error, httpx.RequestError)

    async def _send(
        self, method: str, url: str, abandon: Callable[[], bool] | None = None, **kwargs
    ) -> httpx.Response:
        client = await self.get_client()
        attempt = 0
        while True:
            attempt += 1
            try:
                response = await client.request(method, url, **kwargs)
                response.raise_for_status()
                return response
            except (httpx.HTTPStatusError, httpx.RequestError) as e:
                if not self.is_transient(e) or attempt >= self.max_retries:
                    logger.error(f"{method} {url} failed after {attempt} attempt(s): {e}")
                    raise
                if abandon is not None and abandon():
                    logger.info(f"Dropping {method} {url} after attempt {attempt}: a newer write is queued")
                    raise SupersededError(f"{method} {url} superseded") from e
                wait_time = self.backoff * (2 ** (attempt - 1))
                logger.warning(f"{method} {url} failed: {e}. Retrying in {wait_time}s ({attempt}/{self.max_retries})")
                await asyncio.sleep(wait_time)

    @staticmethod
    def _decode(response: httpx.Response) -> dict[str, Any]:
        # Webhook bridges often answer 200 with an empty or plain-text body
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError:
            return {"text": response.text}
        return data if isinstance(data, dict) else {"data": data}

    async def post(
        self, url: str, json: dict[str, Any] | None = None, abandon: Callable[[], bool] | None = None
    ) -> dict[str, Any]:
        response = await self._send("POST", url, abandon=abandon, json=json)
        return self._decode(response)
