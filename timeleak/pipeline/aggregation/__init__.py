"""
Aggregation package.

Builds DailyUsage snapshots from interval stats and reconciled events.
"""

from .service import AVERAGE_LOOKBACK_DAYS, UsageAggregator, clamp_screen_time, merge_samples
from .windows import calendar_day_window, local_midnight_ms, trailing_24h_window

__all__ = [
    "AVERAGE_LOOKBACK_DAYS",
    "UsageAggregator",
    "calendar_day_window",
    "clamp_screen_time",
    "local_midnight_ms",
    "merge_samples",
    "trailing_24h_window",
]
