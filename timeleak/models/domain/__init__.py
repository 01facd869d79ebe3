"""
Domain models shared by the pipeline, services and jobs.
"""

from .sync_domain import (
    BASELINE_GOAL_RATIO,
    DEFAULT_GOAL_MS,
    AuthenticatedUser,
    GoalState,
    ScheduledSyncWork,
    WorkState,
)
from .usage_domain import (
    DAY_MS,
    HOUR_MS,
    LAUNCH_DEBOUNCE_MS,
    MAX_DAILY_SCREEN_TIME_MS,
    MAX_SINGLE_APP_SESSION_MS,
    MINUTE_MS,
    TOP_APPS_LIMIT,
    AppCategory,
    AppSession,
    AppUsage,
    DailyUsage,
    UsageEvent,
    UsageEventType,
    UsageSample,
)

__all__ = [
    "AppCategory",
    "AppSession",
    "AppUsage",
    "AuthenticatedUser",
    "BASELINE_GOAL_RATIO",
    "DAY_MS",
    "DEFAULT_GOAL_MS",
    "DailyUsage",
    "GoalState",
    "HOUR_MS",
    "LAUNCH_DEBOUNCE_MS",
    "MAX_DAILY_SCREEN_TIME_MS",
    "MAX_SINGLE_APP_SESSION_MS",
    "MINUTE_MS",
    "ScheduledSyncWork",
    "TOP_APPS_LIMIT",
    "UsageEvent",
    "UsageEventType",
    "UsageSample",
    "WorkState",
]
