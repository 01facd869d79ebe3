import pytest

from timeleak.models.domain import DEFAULT_GOAL_MS, HOUR_MS, MINUTE_MS
from timeleak.services.goal_service import (
    GoalService,
    GoalValidationError,
    ProgressBand,
    compute_progress,
    progress_band,
)
from timeleak.services.redis_client import KeyValueStoreError
from timeleak.services.user_prefs import UserPrefs


@pytest.fixture
def prefs(fake_store):
    return UserPrefs(fake_store, prefix="test")


@pytest.fixture
def goals(prefs):
    return GoalService(prefs)


class StubAggregator:
    def __init__(self, average):
        self.average = average
        self.calls = 0

    async def average_daily_screen_time(self):
        self.calls += 1
        return self.average


@pytest.mark.asyncio
async def test_default_goal_without_baseline(goals):
    assert await goals.get_goal() == DEFAULT_GOAL_MS


@pytest.mark.asyncio
async def test_default_goal_is_ninety_percent_of_baseline(goals):
    await goals.capture_baseline(5 * HOUR_MS)

    assert await goals.get_goal() == int(5 * HOUR_MS * 0.9)


@pytest.mark.asyncio
async def test_saved_goal_wins_over_baseline(goals):
    await goals.capture_baseline(5 * HOUR_MS)
    await goals.set_goal(3 * HOUR_MS)

    assert await goals.get_goal() == 3 * HOUR_MS


@pytest.mark.asyncio
async def test_goal_above_baseline_is_rejected_without_writing(goals, prefs):
    await goals.capture_baseline(4 * HOUR_MS)
    await goals.set_goal(3 * HOUR_MS)

    with pytest.raises(GoalValidationError) as exc_info:
        await goals.set_goal(5 * HOUR_MS)

    assert exc_info.value.reason == "exceeds_baseline"
    assert exc_info.value.limit_ms == 4 * HOUR_MS
    assert await prefs.get_saved_goal_time() == 3 * HOUR_MS


@pytest.mark.asyncio
async def test_goal_equal_to_baseline_is_accepted(goals):
    await goals.capture_baseline(4 * HOUR_MS)

    assert await goals.set_goal(4 * HOUR_MS) == 4 * HOUR_MS


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "goal_ms, reason",
    [(0, "not_positive"), (-MINUTE_MS, "not_positive"), (25 * HOUR_MS, "exceeds_day")],
)
async def test_goal_out_of_range_is_rejected(goals, prefs, goal_ms, reason):
    with pytest.raises(GoalValidationError) as exc_info:
        await goals.set_goal(goal_ms)

    assert exc_info.value.reason == reason
    assert await prefs.get_saved_goal_time() is None


@pytest.mark.asyncio
async def test_baseline_is_captured_once(goals):
    assert await goals.capture_baseline(5 * HOUR_MS) is True
    assert await goals.capture_baseline(2 * HOUR_MS) is False

    state = await goals.get_state()
    assert state.baseline_screen_time_ms == 5 * HOUR_MS


@pytest.mark.asyncio
async def test_zero_baseline_counts_as_captured(goals):
    await goals.capture_baseline(0)

    state = await goals.get_state()
    assert state.baseline_screen_time_ms == 0
    assert state.goal_time_ms == 0


@pytest.mark.asyncio
async def test_backfill_baseline_uses_average_once(goals):
    aggregator = StubAggregator(average=6 * HOUR_MS)

    assert await goals.backfill_baseline(aggregator) is True
    assert await goals.backfill_baseline(aggregator) is False
    assert aggregator.calls == 1
    assert (await goals.get_state()).baseline_screen_time_ms == 6 * HOUR_MS


@pytest.mark.asyncio
async def test_backfill_baseline_skips_without_history(goals):
    assert await goals.backfill_baseline(StubAggregator(average=None)) is False
    assert (await goals.get_state()).baseline_screen_time_ms is None


@pytest.mark.asyncio
async def test_clear_removes_goal_and_baseline(goals, prefs):
    await prefs.save_user(phone="+15555550100", uid="user-123")
    await goals.capture_baseline(5 * HOUR_MS)
    await goals.set_goal(4 * HOUR_MS)

    await goals.clear()

    assert await goals.get_goal() == DEFAULT_GOAL_MS
    assert await prefs.is_baseline_captured() is False
    assert await prefs.get_uid() == "user-123"


@pytest.mark.parametrize(
    "ratio, band",
    [
        (0.0, ProgressBand.GOOD),
        (0.79, ProgressBand.GOOD),
        (0.8, ProgressBand.WARNING),
        (1.0, ProgressBand.WARNING),
        (1.01, ProgressBand.OVER),
    ],
)
def test_progress_band_thresholds(ratio, band):
    assert progress_band(ratio) == band


def test_compute_progress_under_goal():
    progress = compute_progress(current_usage_ms=HOUR_MS, goal_time_ms=4 * HOUR_MS)

    assert progress.progress == 0.25
    assert progress.is_over_goal is False
    assert progress.remaining_ms == 3 * HOUR_MS
    assert progress.over_ms == 0
    assert progress.band == ProgressBand.GOOD


def test_compute_progress_over_goal():
    progress = compute_progress(current_usage_ms=5 * HOUR_MS, goal_time_ms=4 * HOUR_MS)

    assert progress.progress == 1.0
    assert progress.is_over_goal is True
    assert progress.remaining_ms == 0
    assert progress.over_ms == HOUR_MS
    assert progress.band == ProgressBand.OVER


@pytest.mark.asyncio
async def test_goal_not_saved_when_baseline_unreadable(goals, prefs, fake_store):
    await goals.capture_baseline(2 * HOUR_MS)
    await goals.set_goal(HOUR_MS)
    fake_store.down = True

    with pytest.raises(KeyValueStoreError):
        await goals.set_goal(10 * HOUR_MS)

    fake_store.down = False
    assert await prefs.get_saved_goal_time() == HOUR_MS
    assert await prefs.get_baseline_screen_time() == 2 * HOUR_MS


@pytest.mark.asyncio
async def test_baseline_not_recaptured_when_flag_unreadable(goals, prefs, fake_store):
    await goals.capture_baseline(2 * HOUR_MS)
    fake_store.down = True

    with pytest.raises(KeyValueStoreError):
        await goals.capture_baseline(30 * MINUTE_MS)

    aggregator = StubAggregator(30 * MINUTE_MS)
    with pytest.raises(KeyValueStoreError):
        await goals.backfill_baseline(aggregator)
    assert aggregator.calls == 0

    fake_store.down = False
    assert await prefs.get_baseline_screen_time() == 2 * HOUR_MS
