"""
Window bounds for aggregation.

Bounds are UTC epoch milliseconds. Local time only enters when resolving
midnight, so a calendar day that crosses a DST switch is 23h or 25h long while
the trailing window is always exactly 24h.
"""

from datetime import datetime, time, tzinfo

from timeleak.models.domain import DAY_MS
from timeleak.utils.clock import to_epoch_ms, to_local


def local_midnight_ms(epoch_ms: int, tz: tzinfo) -> int:
    """Start of the local calendar day containing epoch_ms."""
    local = to_local(epoch_ms, tz)
    return to_epoch_ms(datetime.combine(local.date(), time(0, 0), tzinfo=tz))


def trailing_24h_window(now_ms: int) -> tuple[int, int]:
    return now_ms - DAY_MS, now_ms


def calendar_day_window(now_ms: int, tz: tzinfo) -> tuple[int, int]:
    return local_midnight_ms(now_ms, tz), now_ms


def local_date_iso(epoch_ms: int, tz: tzinfo) -> str:
    return to_local(epoch_ms, tz).date().isoformat()
