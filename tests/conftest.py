"""
Shared fixtures for the profile engine tests.

Gemini is always replaced by a mock, so no test touches the network.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from skillhub.core.config import Settings
from skillhub.services.content_generator import ContentGenerator
from skillhub.services.flagging import FlaggingEngine
from skillhub.services.gemini import GeminiService
from skillhub.services.state import EngagementState

FIXED_NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


class Clock:
    """Manually advanced clock for time-dependent components."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def make_gemini(response: str = "", enabled: bool = True, side_effect=None) -> MagicMock:
    gemini = MagicMock(spec=GeminiService)
    gemini.enabled = enabled
    gemini.generate_content_async = AsyncMock(return_value=response, side_effect=side_effect)
    return gemini


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def state() -> EngagementState:
    return EngagementState()


@pytest.fixture
def flagging(state: EngagementState, clock: Clock) -> FlaggingEngine:
    return FlaggingEngine(state, clock=clock)


@pytest.fixture
def offline_gemini() -> MagicMock:
    """Gemini without an API key: every generation takes the fallback path."""
    return make_gemini(enabled=False)


@pytest.fixture
def offline_generator(offline_gemini: MagicMock) -> ContentGenerator:
    return ContentGenerator(offline_gemini, timeout=1.0)


@pytest.fixture
def settings() -> Settings:
    return Settings(GEMINI_API_KEY=None, REDIS_URL=None, MIRROR_URL=None, _env_file=None)
