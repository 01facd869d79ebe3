import asyncio
from datetime import UTC, datetime

import pytest
import pytest_asyncio

from timeleak.models.domain import (
    AuthenticatedUser,
    DailyUsage,
    UsageEvent,
    UsageEventType,
    UsageSample,
)
from timeleak.runtime import build_runtime
from timeleak.services.redis_client import KeyValueStoreError
from timeleak.utils.clock import to_epoch_ms

# Friday 2024-03-15 12:00 UTC
NOW_MS = to_epoch_ms(datetime(2024, 3, 15, 12, 0, tzinfo=UTC))


class FakeKeyValueStore:
    """Dict-backed store. With `down` set it fails like RedisKeyValueStore."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.healthy = True
        self.down = False

    async def get(self, key: str) -> str | None:
        if self.down:
            return None
        return self.store.get(key)

    async def get_strict(self, key: str) -> str | None:
        if self.down:
            raise KeyValueStoreError("store unavailable", operation="get", key=key)
        return self.store.get(key)

    async def set(self, key: str, value: str) -> bool:
        if self.down:
            return False
        self.store[key] = value
        return True

    async def set_strict(self, key: str, value: str) -> None:
        if self.down:
            raise KeyValueStoreError("store unavailable", operation="set", key=key)
        self.store[key] = value

    async def delete(self, key: str) -> bool:
        return self.store.pop(key, None) is not None

    async def ping(self) -> bool:
        return self.healthy


class FakeClock:
    """Pinned clock. sleep() parks until the next advance()."""

    def __init__(self, now_ms: int = NOW_MS, tz=UTC):
        self._now_ms = now_ms
        self.tz = tz
        self._tick: asyncio.Event | None = None

    def now_ms(self) -> int:
        return self._now_ms

    def set(self, now_ms: int) -> None:
        self._now_ms = now_ms
        self._wake()

    def advance(self, ms: int) -> None:
        self._now_ms += ms
        self._wake()

    def _wake(self) -> None:
        if self._tick is not None:
            self._tick.set()
            self._tick = None

    async def sleep(self, seconds: float) -> None:
        if self._tick is None:
            self._tick = asyncio.Event()
        await self._tick.wait()


class FakeUsageProvider:
    def __init__(self):
        self.access_granted = True
        self.samples: list[UsageSample] = []
        self.events: list[UsageEvent] = []
        self.stats_error: Exception | None = None
        self.events_error: Exception | None = None
        self.access_checks = 0

    async def has_usage_access(self) -> bool:
        self.access_checks += 1
        return self.access_granted

    async def query_interval_stats(self, start_ms: int, end_ms: int) -> list[UsageSample]:
        if self.stats_error is not None:
            raise self.stats_error
        return list(self.samples)

    async def query_events(self, start_ms: int, end_ms: int) -> list[UsageEvent]:
        if self.events_error is not None:
            raise self.events_error
        return list(self.events)

    def add_session(self, package: str, start_ms: int, end_ms: int) -> None:
        self.events.append(UsageEvent(package, UsageEventType.RESUMED, start_ms))
        self.events.append(UsageEvent(package, UsageEventType.PAUSED, end_ms))
        self.events.sort(key=lambda event: event.timestamp_ms)


class FakeUploadSink:
    def __init__(self):
        self.uploads: list[tuple[AuthenticatedUser, DailyUsage, int]] = []
        self.error: Exception | None = None
        self.closed = False

    async def upsert(self, user: AuthenticatedUser, daily_usage: DailyUsage, goal_time_ms: int):
        if self.error is not None:
            raise self.error
        self.uploads.append((user, daily_usage, goal_time_ms))

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_store():
    return FakeKeyValueStore()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_provider():
    return FakeUsageProvider()


@pytest.fixture
def fake_sink():
    return FakeUploadSink()


@pytest_asyncio.fixture
async def runtime(fake_store, fake_clock, fake_provider, fake_sink):
    built = build_runtime(
        store=fake_store,
        clock=fake_clock,
        provider=fake_provider,
        sink=fake_sink,
        sleep=fake_clock.sleep,
    )
    yield built
    await built.close()


@pytest_asyncio.fixture
async def signed_in_runtime(runtime):
    await runtime.identity.sign_in("user-123", "+15555550100")
    return runtime


@pytest.fixture
def make_clock():
    return FakeClock
