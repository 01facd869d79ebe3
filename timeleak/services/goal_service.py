"""
Daily goal management.

Goals are reduction targets: once a baseline (the user's pre-intervention
30-day average) is captured, a goal above it is rejected rather than clamped.
"""

from dataclasses import dataclass
from enum import Enum

from timeleak.infrastructure.observability.logging import get_logger
from timeleak.models.domain import (
    BASELINE_GOAL_RATIO,
    DEFAULT_GOAL_MS,
    MAX_DAILY_SCREEN_TIME_MS,
    GoalState,
)
from timeleak.services.user_prefs import UserPrefs

logger = get_logger(__name__)

WARNING_THRESHOLD = 0.8


class GoalValidationError(Exception):
    """Raised when a requested goal is rejected."""

    def __init__(self, message: str, requested_ms: int, limit_ms: int | None = None, reason: str = "invalid"):
        super().__init__(message)
        self.requested_ms = requested_ms
        self.limit_ms = limit_ms
        self.reason = reason


class ProgressBand(str, Enum):
    GOOD = "good"
    WARNING = "warning"
    OVER = "over"


@dataclass(frozen=True, slots=True)
class GoalProgress:
    goal_time_ms: int
    current_usage_ms: int
    progress: float
    is_over_goal: bool
    remaining_ms: int
    over_ms: int
    band: ProgressBand


def progress_band(ratio: float) -> ProgressBand:
    """Under 80% good, 80-100% warning, above 100% over."""
    if ratio < WARNING_THRESHOLD:
        return ProgressBand.GOOD
    if ratio <= 1.0:
        return ProgressBand.WARNING
    return ProgressBand.OVER


def compute_progress(current_usage_ms: int, goal_time_ms: int) -> GoalProgress:
    ratio = current_usage_ms / goal_time_ms if goal_time_ms > 0 else 1.0
    is_over = current_usage_ms > goal_time_ms
    difference = abs(current_usage_ms - goal_time_ms)
    return GoalProgress(
        goal_time_ms=goal_time_ms,
        current_usage_ms=current_usage_ms,
        progress=min(ratio, 1.0),
        is_over_goal=is_over,
        remaining_ms=0 if is_over else difference,
        over_ms=difference if is_over else 0,
        band=progress_band(ratio),
    )


class GoalService:
    def __init__(self, prefs: UserPrefs):
        self.prefs = prefs

    async def get_goal(self) -> int:
        """Saved goal, else 90% of the baseline, else 4h30m."""
        saved = await self.prefs.get_saved_goal_time()
        if saved:
            return saved

        baseline = await self.prefs.get_baseline_screen_time()
        if baseline is not None:
            return int(baseline * BASELINE_GOAL_RATIO)
        return DEFAULT_GOAL_MS

    async def get_state(self) -> GoalState:
        return GoalState(
            goal_time_ms=await self.get_goal(),
            baseline_screen_time_ms=await self.prefs.get_baseline_screen_time(),
        )

    async def set_goal(self, goal_time_ms: int) -> int:
        """
        Persist a new daily goal.

        Raises:
            GoalValidationError: If the goal is not positive, exceeds 24h, or
                exceeds the captured baseline. Nothing is written in that case.
            KeyValueStoreError: If the stored baseline cannot be read. The
                goal is not written against an unknown baseline.
        """
        if goal_time_ms <= 0:
            raise GoalValidationError(
                "Goal must be greater than 0", requested_ms=goal_time_ms, reason="not_positive"
            )
        if goal_time_ms > MAX_DAILY_SCREEN_TIME_MS:
            raise GoalValidationError(
                "Goal cannot exceed 24 hours",
                requested_ms=goal_time_ms,
                limit_ms=MAX_DAILY_SCREEN_TIME_MS,
                reason="exceeds_day",
            )

        baseline = await self.prefs.get_baseline_screen_time()
        if baseline is not None and goal_time_ms > baseline:
            logger.info("Rejected goal above baseline", goal_ms=goal_time_ms, baseline_ms=baseline)
            raise GoalValidationError(
                "Goal cannot exceed your baseline screen time",
                requested_ms=goal_time_ms,
                limit_ms=baseline,
                reason="exceeds_baseline",
            )

        await self.prefs.save_goal_time(goal_time_ms)
        logger.info("Goal updated", goal_ms=goal_time_ms)
        return goal_time_ms

    async def capture_baseline(self, baseline_ms: int) -> bool:
        """Store the baseline once. Returns False when one already exists.

        A failed read of the captured flag raises KeyValueStoreError rather
        than overwriting a baseline that may exist.
        """
        if await self.prefs.is_baseline_captured():
            return False
        await self.prefs.save_baseline_screen_time(max(baseline_ms, 0))
        return True

    async def backfill_baseline(self, aggregator) -> bool:
        """
        Capture the 30-day average as baseline if none exists yet.

        Usage access is often granted after sign-in, so the baseline can't
        always be taken at onboarding; every sync run gives it another chance.
        """
        if await self.prefs.is_baseline_captured():
            return False

        average = await aggregator.average_daily_screen_time()
        if average is None:
            logger.debug("No usage history yet, baseline not captured")
            return False

        captured = await self.capture_baseline(average)
        if captured:
            logger.info("Baseline captured from 30-day average", baseline_ms=average)
        return captured

    async def progress(self, current_usage_ms: int) -> GoalProgress:
        return compute_progress(current_usage_ms, await self.get_goal())

    async def clear(self) -> None:
        await self.prefs.clear_goal_state()
        logger.info("Goal state cleared")
