# timeleak/models/domain/usage_domain.py
"""
Usage Domain Models
Shapes produced and consumed by the usage aggregation pipeline.

Instants are epoch milliseconds and durations are milliseconds, matching
what the device usage-stats source reports.
"""

from dataclasses import dataclass, field
from enum import Enum

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

# Sanity bounds
MAX_SINGLE_APP_SESSION_MS = 4 * HOUR_MS
MAX_DAILY_SCREEN_TIME_MS = DAY_MS

LAUNCH_DEBOUNCE_MS = 2000
TOP_APPS_LIMIT = 100


class UsageEventType(str, Enum):
    RESUMED = "resumed"
    PAUSED = "paused"


class AppCategory(str, Enum):
    SOCIAL_MEDIA = "social_media"
    ENTERTAINMENT = "entertainment"
    OTHER = "other"


@dataclass(slots=True)
class UsageSample:
    """One interval stat reported for a package over a query window."""

    package_name: str
    total_time_visible_ms: int
    total_time_in_foreground_ms: int
    last_time_used_ms: int


@dataclass(slots=True)
class UsageEvent:
    """Foreground/background transition for a package."""

    package_name: str
    event_type: UsageEventType
    timestamp_ms: int


@dataclass(slots=True)
class AppSession:
    """Open foreground interval tracked during a single event scan."""

    package_name: str
    started_at_ms: int

    def duration_until(self, ended_at_ms: int) -> int:
        return ended_at_ms - self.started_at_ms


@dataclass(frozen=True, slots=True)
class AppUsage:
    package_name: str
    usage_time_ms: int
    last_time_used_ms: int
    launch_count: int
    app_name: str = ""
    category: AppCategory = AppCategory.OTHER


@dataclass(frozen=True, slots=True)
class DailyUsage:
    """Immutable aggregate for one window; superseded by the next run, never merged."""

    date: str  # ISO date, local to the window end
    total_screen_time_ms: int
    top_apps: tuple[AppUsage, ...] = field(default_factory=tuple)
    social_media_time_ms: int = 0
    entertainment_time_ms: int = 0

    @property
    def app_count(self) -> int:
        return len(self.top_apps)
