"""
Daily 23:59 sync scheduling.

One-shot work chained by re-arming after every run, instead of a periodic
schedule: the next target is recomputed from the wall clock each time, so DST
switches and clock drift never accumulate into a stored interval.
"""

from dataclasses import asdict, dataclass
from datetime import datetime, time, timedelta
from enum import Enum

from timeleak.config import settings
from timeleak.infrastructure.observability.logging import get_logger
from timeleak.jobs.work_scheduler import (
    DurableWorkScheduler,
    ExistingWorkPolicy,
    retry_slot_for,
)
from timeleak.models.domain import HOUR_MS, ScheduledSyncWork
from timeleak.services.user_prefs import UserPrefs
from timeleak.utils.clock import Clock, to_epoch_ms, to_local
from timeleak.utils.time_format import format_time_remaining

logger = get_logger(__name__)

DAILY_SYNC_WORK_NAME = "daily_midnight_sync"
IMMEDIATE_SYNC_WORK_NAME = "immediate_usage_sync"
CATCH_UP_SYNC_WORK_NAME = "catch_up_usage_sync"
USAGE_SYNC_HANDLER = "usage_sync"

MANAGED_WORK_NAMES = (
    DAILY_SYNC_WORK_NAME,
    retry_slot_for(DAILY_SYNC_WORK_NAME),
    IMMEDIATE_SYNC_WORK_NAME,
    retry_slot_for(IMMEDIATE_SYNC_WORK_NAME),
    CATCH_UP_SYNC_WORK_NAME,
    retry_slot_for(CATCH_UP_SYNC_WORK_NAME),
)


class SyncTrigger(str, Enum):
    SCHEDULED = "scheduled"
    IMMEDIATE = "immediate"
    MANUAL = "manual"
    RETRY = "retry"
    CATCH_UP = "catch_up"


@dataclass(frozen=True, slots=True)
class SyncStatusReport:
    work_name: str
    state: str | None
    target_at: str | None
    time_until_next: str | None
    run_attempt: int
    last_run_time_ms: int | None
    hours_since_last_run: int | None
    is_stale: bool

    def to_dict(self) -> dict:
        return asdict(self)


class MidnightScheduler:
    def __init__(
        self,
        work_scheduler: DurableWorkScheduler,
        clock: Clock,
        prefs: UserPrefs,
        target_time: time | None = None,
        stale_after_hours: int | None = None,
        catch_up_after_hours: int | None = None,
    ):
        self.work_scheduler = work_scheduler
        self.clock = clock
        self.prefs = prefs
        self.target_time = target_time or time(settings.SYNC_TARGET_HOUR, settings.SYNC_TARGET_MINUTE)
        self.stale_after_hours = stale_after_hours or settings.SYNC_STALE_AFTER_HOURS
        self.catch_up_after_hours = catch_up_after_hours or settings.CATCH_UP_SYNC_AFTER_HOURS

    def next_target(self, now_ms: int | None = None) -> datetime:
        """Next local occurrence of the target time, strictly after now."""
        if now_ms is None:
            now_ms = self.clock.now_ms()
        today = to_local(now_ms, self.clock.tz).date()

        target = datetime.combine(today, self.target_time, tzinfo=self.clock.tz)
        if to_epoch_ms(target) <= now_ms:
            target = datetime.combine(today + timedelta(days=1), self.target_time, tzinfo=self.clock.tz)
        return target

    def delay_to_next_target_ms(self, now_ms: int | None = None) -> int:
        if now_ms is None:
            now_ms = self.clock.now_ms()
        return to_epoch_ms(self.next_target(now_ms)) - now_ms

    async def schedule_next(self) -> ScheduledSyncWork:
        """Re-arm the daily slot for the next target, replacing whatever is there."""
        now_ms = self.clock.now_ms()
        delay_ms = self.delay_to_next_target_ms(now_ms)
        work = await self.work_scheduler.enqueue_unique(
            DAILY_SYNC_WORK_NAME,
            delay_ms,
            USAGE_SYNC_HANDLER,
            network_required=True,
            policy=ExistingWorkPolicy.REPLACE,
            input_data={"trigger": SyncTrigger.SCHEDULED.value},
        )
        logger.info(
            "Next daily sync scheduled",
            target_at=self.next_target(now_ms).isoformat(),
            delay_minutes=delay_ms // 60_000,
        )
        return work

    async def initialize(self) -> ScheduledSyncWork:
        logger.info("Initializing daily sync scheduler")
        return await self.schedule_next()

    async def schedule_immediate_sync(self) -> ScheduledSyncWork:
        """One-off sync right after sign-in; its run performs the first daily re-arm."""
        logger.info("Scheduling immediate sync for newly authenticated user")
        return await self.work_scheduler.enqueue_unique(
            IMMEDIATE_SYNC_WORK_NAME,
            0,
            USAGE_SYNC_HANDLER,
            network_required=True,
            policy=ExistingWorkPolicy.REPLACE,
            input_data={"trigger": SyncTrigger.IMMEDIATE.value},
        )

    async def maybe_schedule_catch_up_sync(self) -> ScheduledSyncWork | None:
        """Sync now if the last run is missing or older than the catch-up threshold."""
        last_run = await self.prefs.get_last_run_time()
        if last_run is not None:
            hours_since = (self.clock.now_ms() - last_run) // HOUR_MS
            if hours_since < self.catch_up_after_hours:
                return None
            logger.info("Catch-up sync triggered", hours_since_last_run=hours_since)
        else:
            logger.info("Catch-up sync triggered, no previous run recorded")

        return await self.work_scheduler.enqueue_unique(
            CATCH_UP_SYNC_WORK_NAME,
            0,
            USAGE_SYNC_HANDLER,
            network_required=True,
            policy=ExistingWorkPolicy.KEEP,
            input_data={"trigger": SyncTrigger.CATCH_UP.value},
        )

    async def cancel(self) -> None:
        for name in (DAILY_SYNC_WORK_NAME, retry_slot_for(DAILY_SYNC_WORK_NAME)):
            await self.work_scheduler.cancel_unique(name)
        logger.info("Cancelled daily sync work")

    async def reset(self) -> ScheduledSyncWork:
        """Cancel and re-initialize. A run already in flight may still re-arm; REPLACE keeps one."""
        logger.info("Resetting daily sync scheduler")
        await self.cancel()
        work = await self.initialize()
        logger.info("Daily sync scheduler reset complete", work_id=work.work_id)
        return work

    async def check_status(self) -> SyncStatusReport:
        now_ms = self.clock.now_ms()
        work = await self.work_scheduler.query_status(DAILY_SYNC_WORK_NAME)
        last_run = await self.prefs.get_last_run_time()

        hours_since = (now_ms - last_run) // HOUR_MS if last_run is not None else None
        report = SyncStatusReport(
            work_name=DAILY_SYNC_WORK_NAME,
            state=work.state.value if work else None,
            target_at=to_local(work.target_at_ms, self.clock.tz).isoformat() if work else None,
            time_until_next=format_time_remaining(work.target_at_ms - now_ms) if work else None,
            run_attempt=work.run_attempt if work else 0,
            last_run_time_ms=last_run,
            hours_since_last_run=hours_since,
            is_stale=hours_since is None or hours_since > self.stale_after_hours,
        )

        if work is None:
            logger.warning("No daily sync work scheduled")
        if report.is_stale:
            logger.warning(
                "Last sync is stale",
                hours_since_last_run=hours_since,
                stale_after_hours=self.stale_after_hours,
            )
        return report
