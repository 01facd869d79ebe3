"""
Wall-clock access for the pipeline and scheduler.

Everything that reads "now" goes through a Clock so windows, targets and
last-run bookkeeping can be pinned in tests. Internally instants are UTC epoch
milliseconds; the zone only matters when resolving local midnight or 23:59.
"""

import time
from datetime import UTC, datetime, tzinfo
from typing import Protocol


class Clock(Protocol):
    tz: tzinfo

    def now_ms(self) -> int: ...


class SystemClock:
    def __init__(self, tz: tzinfo = UTC):
        self.tz = tz

    def now_ms(self) -> int:
        return int(time.time() * 1000)


def to_local(epoch_ms: int, tz: tzinfo) -> datetime:
    return datetime.fromtimestamp(epoch_ms / 1000, tz=UTC).astimezone(tz)


def to_epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def now_local(clock: Clock) -> datetime:
    return to_local(clock.now_ms(), clock.tz)
