"""
Shared fixtures for the ToolSense cache tests.
"""

import fakeredis
import pytest

from toolsense_cache.entities import ChatMessage, GenerationResult
from toolsense_cache.errors import GenerationError
from toolsense_cache.repositories import (
    FileCacheRepository,
    RedisCacheRepository,
    SQLiteCacheRepository,
)

START_TIME = 1_700_000_000.0


class FakeClock:
    """Manually advanced clock returning Unix seconds."""

    def __init__(self, start: float = START_TIME) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeMsClock(FakeClock):
    """Manually advanced clock returning epoch milliseconds."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        super().__init__(start)

    def __call__(self) -> int:
        return int(self.now)


class FakeGenerator:
    """Report generator that records calls instead of hitting an API."""

    model_name = "fake-model"

    def __init__(self) -> None:
        self.calls: list[tuple[str, list[ChatMessage], str]] = []
        self.closed = False

    async def generate(
        self,
        message: str,
        history: list[ChatMessage],
        language: str = "en",
    ) -> GenerationResult:
        self.calls.append((message, list(history), language))
        return GenerationResult(text=f"report for {message} [{language}]", model=self.model_name)

    async def close(self) -> None:
        self.closed = True


class FailingGenerator(FakeGenerator):
    """Generator whose every call fails."""

    async def generate(
        self,
        message: str,
        history: list[ChatMessage],
        language: str = "en",
    ) -> GenerationResult:
        self.calls.append((message, list(history), language))
        raise GenerationError("model overloaded")


@pytest.fixture
def clock():
    """Clock in seconds for cache stores."""
    return FakeClock()


@pytest.fixture
def ms_clock():
    """Clock in milliseconds for the rate limiter."""
    return FakeMsClock()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def redis_client():
    """In-memory Redis with string responses."""
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def file_store(tmp_path, clock):
    return FileCacheRepository(cache_dir=tmp_path / "file-cache", clock=clock)


@pytest.fixture
def sqlite_store(tmp_path, clock):
    store = SQLiteCacheRepository(profile_dir=tmp_path / "profiles", clock=clock)
    yield store
    store.close()


@pytest.fixture
def redis_store(redis_client, clock):
    return RedisCacheRepository(redis_client=redis_client, key_prefix="test", clock=clock)


@pytest.fixture(params=["file", "sqlite", "redis"])
def store(request):
    """Each cache tier, so shared behaviour is tested once for all three."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def failing_generator():
    return FailingGenerator()
