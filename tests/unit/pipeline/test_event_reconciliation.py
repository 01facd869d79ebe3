import pytest

from timeleak.models.domain import HOUR_MS, MINUTE_MS, UsageEvent, UsageEventType
from timeleak.pipeline.reconciliation import UsageEventReconciler

START = 1_000_000_000
END = START + 24 * HOUR_MS
PKG = "com.instagram.android"


def _resumed(ts: int, pkg: str = PKG) -> UsageEvent:
    return UsageEvent(pkg, UsageEventType.RESUMED, ts)


def _paused(ts: int, pkg: str = PKG) -> UsageEvent:
    return UsageEvent(pkg, UsageEventType.PAUSED, ts)


@pytest.fixture
def reconciler(fake_provider, fake_clock):
    return UsageEventReconciler(fake_provider, fake_clock)


def test_single_session_accumulates_duration(reconciler):
    events = [_resumed(START + 1000), _paused(START + 1000 + 10 * MINUTE_MS)]

    result = reconciler.replay(events, START, END, now_ms=END)

    assert result.usage_times[PKG] == 10 * MINUTE_MS
    assert result.launch_counts[PKG] == 1
    assert result.last_event_ms[PKG] == START + 1000 + 10 * MINUTE_MS
    assert result.complete


def test_resume_within_debounce_is_not_a_new_launch(reconciler):
    t0 = START + 10_000
    events = [
        _resumed(t0),
        _paused(t0 + 500),
        _resumed(t0 + 1500),  # 1.5s after the previous resume
        _paused(t0 + 60_000),
    ]

    result = reconciler.replay(events, START, END, now_ms=END)

    assert result.launch_counts[PKG] == 1
    assert result.usage_times[PKG] == 500 + (60_000 - 1500)


def test_resume_at_exactly_two_seconds_counts_as_launch(reconciler):
    t0 = START + 10_000
    events = [_resumed(t0), _paused(t0 + 1000), _resumed(t0 + 2000), _paused(t0 + 3000)]

    result = reconciler.replay(events, START, END, now_ms=END)

    assert result.launch_counts[PKG] == 2


def test_pause_without_resume_is_ignored(reconciler):
    events = [_paused(START + 5000), _resumed(START + 10_000), _paused(START + 20_000)]

    result = reconciler.replay(events, START, END, now_ms=END)

    assert result.usage_times[PKG] == 10_000
    assert result.launch_counts[PKG] == 1


def test_open_session_closes_at_now_when_inside_window(reconciler):
    now = START + 2 * HOUR_MS
    events = [_resumed(now - 30 * MINUTE_MS)]

    result = reconciler.replay(events, START, END, now_ms=now)

    assert result.usage_times[PKG] == 30 * MINUTE_MS


def test_open_session_longer_than_four_hours_is_capped(reconciler):
    events = [_resumed(START + HOUR_MS)]

    result = reconciler.replay(events, START, END, now_ms=START + 10 * HOUR_MS)

    assert result.usage_times[PKG] == 4 * HOUR_MS
    assert result.capped_sessions == 1


def test_out_of_window_events_are_discarded(reconciler):
    events = [
        _resumed(START - 5 * MINUTE_MS),
        _paused(START + 5 * MINUTE_MS),
        _resumed(END + 1),
    ]

    result = reconciler.replay(events, START, END, now_ms=END + 10)

    assert PKG not in result.usage_times
    assert PKG not in result.launch_counts
    assert result.discarded_events == 2


def test_packages_are_tracked_independently(reconciler):
    other = "com.google.android.youtube"
    events = [
        _resumed(START + 1000),
        _resumed(START + 2000, other),
        _paused(START + 61_000),
        _paused(START + 122_000, other),
    ]

    result = reconciler.replay(events, START, END, now_ms=END)

    assert result.usage_times == {PKG: 60_000, other: 120_000}
    assert result.total_usage_ms == 180_000


def test_failure_midway_keeps_partial_results(reconciler):
    def exploding_events():
        yield _resumed(START + 1000)
        yield _paused(START + 31_000)
        raise RuntimeError("event buffer closed")

    result = reconciler.replay(exploding_events(), START, END, now_ms=END)

    assert result.usage_times[PKG] == 30_000
    assert not result.complete
    assert "event buffer closed" in result.error


@pytest.mark.asyncio
async def test_reconcile_returns_empty_result_when_query_fails(reconciler, fake_provider):
    fake_provider.events_error = RuntimeError("boom")

    result = await reconciler.reconcile(START, END)

    assert result.usage_times == {}
    assert result.error is not None


@pytest.mark.asyncio
async def test_reconcile_closes_open_sessions_at_clock_now(reconciler, fake_provider, fake_clock):
    now = fake_clock.now_ms()
    fake_provider.events = [_resumed(now - 20 * MINUTE_MS)]

    result = await reconciler.reconcile(now - 24 * HOUR_MS, now)

    assert result.usage_times[PKG] == 20 * MINUTE_MS
