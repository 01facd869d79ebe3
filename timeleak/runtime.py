"""
Service wiring.

Builds every collaborator explicitly and hands them to whoever needs them
(API lifespan, worker jobs). Nothing here is a module-level singleton.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import time

from timeleak.config import Settings, settings as default_settings
from timeleak.infrastructure.observability.logging import get_logger
from timeleak.jobs.midnight_scheduler import (
    DAILY_SYNC_WORK_NAME,
    MANAGED_WORK_NAMES,
    USAGE_SYNC_HANDLER,
    MidnightScheduler,
)
from timeleak.jobs.usage_sync_job import UsageSyncJob
from timeleak.jobs.work_scheduler import DurableWorkScheduler
from timeleak.pipeline.aggregation import UsageAggregator
from timeleak.pipeline.reconciliation import UsageEventReconciler
from timeleak.services.connectivity import HttpConnectivityProbe
from timeleak.services.goal_service import GoalService
from timeleak.services.identity_provider import PrefsIdentityProvider
from timeleak.services.permission_monitor import PermissionMonitor
from timeleak.services.redis_client import KeyValueStore, RedisKeyValueStore
from timeleak.services.upload_sink import UsageUploadSink
from timeleak.services.usage_stats_provider import JsonExportUsageStatsProvider, UsageStatsProvider
from timeleak.services.user_prefs import UserPrefs
from timeleak.utils.clock import Clock, SystemClock

logger = get_logger(__name__)


@dataclass
class SyncRuntime:
    store: KeyValueStore
    clock: Clock
    prefs: UserPrefs
    provider: UsageStatsProvider
    permissions: PermissionMonitor
    identity: PrefsIdentityProvider
    aggregator: UsageAggregator
    goals: GoalService
    sink: UsageUploadSink
    work_scheduler: DurableWorkScheduler
    midnight_scheduler: MidnightScheduler
    sync_job: UsageSyncJob
    connectivity: HttpConnectivityProbe | None = None

    async def start(self) -> None:
        """Restore persisted work, then make sure the daily slot is armed."""
        restored = await self.work_scheduler.restore(MANAGED_WORK_NAMES)
        if not any(work.name == DAILY_SYNC_WORK_NAME for work in restored):
            await self.midnight_scheduler.initialize()

    async def close(self) -> None:
        await self.work_scheduler.shutdown()
        await self.sink.close()
        if self.connectivity is not None:
            await self.connectivity.close()
        if isinstance(self.store, RedisKeyValueStore):
            await self.store.close()


def build_runtime(
    config: Settings | None = None,
    *,
    store: KeyValueStore | None = None,
    clock: Clock | None = None,
    provider: UsageStatsProvider | None = None,
    sink: UsageUploadSink | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> SyncRuntime:
    config = config or default_settings
    store = store or RedisKeyValueStore(config.REDIS_URL, config.get_redis_config())
    clock = clock or SystemClock(config.tzinfo())
    provider = provider or JsonExportUsageStatsProvider(config.USAGE_EXPORT_PATH)
    sink = sink or UsageUploadSink(config.UPLOAD_BASE_URL, config.UPLOAD_AUTH_TOKEN)

    prefs = UserPrefs(store, prefix=config.KEY_PREFIX)
    permissions = PermissionMonitor(provider.has_usage_access, config.PERMISSION_POLL_INTERVAL_MS)
    identity = PrefsIdentityProvider(prefs)
    reconciler = UsageEventReconciler(provider, clock)
    aggregator = UsageAggregator(provider, reconciler, clock)
    goals = GoalService(prefs)

    connectivity = (
        HttpConnectivityProbe(config.CONNECTIVITY_CHECK_URL) if config.CONNECTIVITY_CHECK_URL else None
    )
    work_scheduler = DurableWorkScheduler(
        store,
        clock,
        backoff=config.sync_backoff_policy(),
        network_probe=connectivity,
        prefix=config.KEY_PREFIX,
        sleep=sleep,
    )
    midnight_scheduler = MidnightScheduler(
        work_scheduler,
        clock,
        prefs,
        target_time=time(config.SYNC_TARGET_HOUR, config.SYNC_TARGET_MINUTE),
        stale_after_hours=config.SYNC_STALE_AFTER_HOURS,
        catch_up_after_hours=config.CATCH_UP_SYNC_AFTER_HOURS,
    )
    sync_job = UsageSyncJob(
        permissions=permissions,
        identity=identity,
        aggregator=aggregator,
        sink=sink,
        prefs=prefs,
        goals=goals,
        scheduler=midnight_scheduler,
        clock=clock,
        min_screen_time_ms=config.SYNC_MIN_SCREEN_TIME_MS,
    )
    work_scheduler.register_handler(USAGE_SYNC_HANDLER, sync_job.run)

    logger.info("Sync runtime built", environment=config.environment, timezone=config.TIMEZONE)
    return SyncRuntime(
        store=store,
        clock=clock,
        prefs=prefs,
        provider=provider,
        permissions=permissions,
        identity=identity,
        aggregator=aggregator,
        goals=goals,
        sink=sink,
        work_scheduler=work_scheduler,
        midnight_scheduler=midnight_scheduler,
        sync_job=sync_job,
        connectivity=connectivity,
    )
