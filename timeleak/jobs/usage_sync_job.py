"""
Usage sync run sequence.

Every trigger (daily fire, post-sign-in immediate sync, catch-up, manual)
goes through UsageSyncJob.execute():

    permission -> authentication -> baseline backfill -> aggregate trailing
    24h -> upload when above the noise floor -> record last run

and, on every exit path, re-arms the daily slot. A single missed re-arm
would silently end all future syncs, so it lives in a finally block rather
than on each return.
"""

from dataclasses import dataclass, replace

from timeleak.config import settings
from timeleak.infrastructure.observability.logging import get_logger, log_sync_outcome
from timeleak.jobs.midnight_scheduler import MidnightScheduler, SyncTrigger
from timeleak.jobs.work_scheduler import WorkResult
from timeleak.models.domain import ScheduledSyncWork
from timeleak.pipeline.aggregation import UsageAggregator
from timeleak.services.goal_service import GoalService
from timeleak.services.identity_provider import IdentityProvider
from timeleak.services.permission_monitor import PermissionMonitor
from timeleak.services.upload_sink import UploadSinkError, UsageUploadSink
from timeleak.services.user_prefs import UserPrefs
from timeleak.utils.clock import Clock

logger = get_logger(__name__)


class SyncStatus:
    SUCCESS = "success"
    SKIPPED_MINIMAL_USAGE = "skipped_minimal_usage"
    NO_DATA = "no_data_available"
    PERMISSION_MISSING = "permission_missing"
    NOT_AUTHENTICATED = "not_authenticated"
    UPLOAD_REJECTED = "upload_rejected"
    FAILED = "failed"


# Permission, auth and rejected uploads stop this cycle without retrying;
# only transient errors retry
WORK_RESULT_BY_STATUS = {
    SyncStatus.SUCCESS: WorkResult.SUCCESS,
    SyncStatus.SKIPPED_MINIMAL_USAGE: WorkResult.SUCCESS,
    SyncStatus.NO_DATA: WorkResult.SUCCESS,
    SyncStatus.PERMISSION_MISSING: WorkResult.FAILURE,
    SyncStatus.NOT_AUTHENTICATED: WorkResult.FAILURE,
    SyncStatus.UPLOAD_REJECTED: WorkResult.FAILURE,
    SyncStatus.FAILED: WorkResult.RETRY,
}


@dataclass(frozen=True, slots=True)
class SyncRunResult:
    status: str
    trigger: SyncTrigger
    last_run_time_ms: int | None = None
    total_screen_time_ms: int | None = None
    app_count: int = 0
    duration_ms: int = 0
    error: str | None = None
    rearmed: bool = False

    @property
    def work_result(self) -> WorkResult:
        return WORK_RESULT_BY_STATUS[self.status]

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "trigger": self.trigger.value,
            "last_run_time_ms": self.last_run_time_ms,
            "total_screen_time_ms": self.total_screen_time_ms,
            "app_count": self.app_count,
            "duration_ms": self.duration_ms,
            "error": self.error,
            "rearmed": self.rearmed,
        }


class UsageSyncJob:
    def __init__(
        self,
        permissions: PermissionMonitor,
        identity: IdentityProvider,
        aggregator: UsageAggregator,
        sink: UsageUploadSink,
        prefs: UserPrefs,
        goals: GoalService,
        scheduler: MidnightScheduler,
        clock: Clock,
        min_screen_time_ms: int | None = None,
    ):
        self.permissions = permissions
        self.identity = identity
        self.aggregator = aggregator
        self.sink = sink
        self.prefs = prefs
        self.goals = goals
        self.scheduler = scheduler
        self.clock = clock
        self.min_screen_time_ms = (
            settings.SYNC_MIN_SCREEN_TIME_MS if min_screen_time_ms is None else min_screen_time_ms
        )

    async def run(self, work: ScheduledSyncWork) -> WorkResult:
        """Work-scheduler entry point."""
        if "retry_of" in work.input_data:
            trigger = SyncTrigger.RETRY
        else:
            trigger = SyncTrigger(work.input_data.get("trigger", SyncTrigger.SCHEDULED.value))
        result = await self.execute(trigger)
        return result.work_result

    async def execute(self, trigger: SyncTrigger = SyncTrigger.MANUAL) -> SyncRunResult:
        started_ms = self.clock.now_ms()
        logger.info("Usage sync started", trigger=trigger.value)

        try:
            outcome = await self._sync_once(trigger)
        except UploadSinkError as e:
            status = SyncStatus.FAILED if e.retryable else SyncStatus.UPLOAD_REJECTED
            logger.error(
                "Usage upload failed",
                trigger=trigger.value,
                status_code=e.status_code,
                retryable=e.retryable,
                error=str(e),
            )
            outcome = SyncRunResult(status=status, trigger=trigger, error=f"{type(e).__name__}: {e}")
        except Exception as e:
            logger.exception("Usage sync failed", trigger=trigger.value, error=str(e))
            outcome = SyncRunResult(
                status=SyncStatus.FAILED,
                trigger=trigger,
                error=f"{type(e).__name__}: {e}",
            )
        finally:
            rearmed = await self._rearm()

        outcome = replace(outcome, rearmed=rearmed, duration_ms=self.clock.now_ms() - started_ms)
        log_sync_outcome(outcome.status, outcome.duration_ms, outcome.total_screen_time_ms)
        return outcome

    async def _sync_once(self, trigger: SyncTrigger) -> SyncRunResult:
        if not await self.permissions.is_granted():
            logger.warning("No usage access permission, skipping sync")
            return SyncRunResult(status=SyncStatus.PERMISSION_MISSING, trigger=trigger)

        user = await self.identity.current_user()
        if user is None or not user.phone_number:
            logger.warning("No authenticated user with phone number, skipping sync")
            return SyncRunResult(status=SyncStatus.NOT_AUTHENTICATED, trigger=trigger)

        await self._backfill_baseline()

        daily_usage = await self.aggregator.aggregate_last_24_hours()
        if daily_usage is None:
            logger.warning("No usage data available")
            return SyncRunResult(status=SyncStatus.NO_DATA, trigger=trigger)

        if daily_usage.total_screen_time_ms <= self.min_screen_time_ms:
            logger.info(
                "Usage too minimal to upload, marking run complete",
                total_screen_time_ms=daily_usage.total_screen_time_ms,
                min_screen_time_ms=self.min_screen_time_ms,
            )
            now_ms = await self._record_last_run()
            return SyncRunResult(
                status=SyncStatus.SKIPPED_MINIMAL_USAGE,
                trigger=trigger,
                last_run_time_ms=now_ms,
                total_screen_time_ms=daily_usage.total_screen_time_ms,
                app_count=daily_usage.app_count,
            )

        goal_time_ms = await self.goals.get_goal()
        await self.sink.upsert(user, daily_usage, goal_time_ms)

        now_ms = await self._record_last_run()
        return SyncRunResult(
            status=SyncStatus.SUCCESS,
            trigger=trigger,
            last_run_time_ms=now_ms,
            total_screen_time_ms=daily_usage.total_screen_time_ms,
            app_count=daily_usage.app_count,
        )

    async def _backfill_baseline(self) -> None:
        try:
            await self.goals.backfill_baseline(self.aggregator)
        except Exception as e:
            logger.warning("Baseline backfill failed, continuing sync", error=str(e))

    async def _record_last_run(self) -> int:
        now_ms = self.clock.now_ms()
        await self.prefs.save_last_run_time(now_ms)
        return now_ms

    async def _rearm(self) -> bool:
        try:
            await self.scheduler.schedule_next()
            return True
        except Exception as e:
            logger.error("Failed to re-arm daily sync", error=str(e), error_type=type(e).__name__)
            return False
