"""
Generic background worker runner.

Reads the desired job name from CLI args or the WORKER_JOB environment
variable and runs it against a freshly built runtime.
"""

import asyncio
import os
import sys
from collections.abc import Awaitable, Callable

from timeleak.config import settings
from timeleak.infrastructure.observability.logging import get_logger, setup_logging
from timeleak.jobs.midnight_scheduler import IMMEDIATE_SYNC_WORK_NAME, SyncTrigger
from timeleak.runtime import SyncRuntime, build_runtime

logger = get_logger(__name__)

JobCoroutine = Callable[[SyncRuntime], Awaitable[None]]


async def run_daily_sync_scheduler(runtime: SyncRuntime) -> None:
    """Long-running scheduler: restore persisted work, arm the daily slot, then wait."""
    await runtime.start()
    await runtime.midnight_scheduler.maybe_schedule_catch_up_sync()
    logger.info("Daily sync worker started")
    await asyncio.Event().wait()


async def run_sync_now(runtime: SyncRuntime) -> None:
    result = await runtime.sync_job.execute(SyncTrigger.MANUAL)
    logger.info("Manual sync finished", **result.to_dict())


async def report_sync_status(runtime: SyncRuntime) -> None:
    report = await runtime.midnight_scheduler.check_status()
    logger.info("Sync status", **report.to_dict())


async def wait_for_permission_then_sync(runtime: SyncRuntime) -> None:
    """Poll for usage access (fast interval), then schedule the first sync and wait for it."""
    granted = await runtime.permissions.wait_until_granted(fast=True)
    if not granted:
        return
    await runtime.midnight_scheduler.schedule_immediate_sync()
    await runtime.work_scheduler.wait_for(IMMEDIATE_SYNC_WORK_NAME)


JOB_REGISTRY: dict[str, JobCoroutine] = {
    "daily_sync": run_daily_sync_scheduler,
    "sync_now": run_sync_now,
    "sync_status": report_sync_status,
    "wait_for_permission": wait_for_permission_then_sync,
}


def _resolve_job_name() -> str:
    """Pick the target job from CLI args or WORKER_JOB env variable."""
    if len(sys.argv) > 1:
        return sys.argv[1].strip().lower()
    return os.getenv("WORKER_JOB", "daily_sync").strip().lower()


async def run_worker(job_name: str | None = None, runtime: SyncRuntime | None = None) -> None:
    """Run the requested background job."""
    name = (job_name or _resolve_job_name()).strip().lower()
    if name not in JOB_REGISTRY:
        raise ValueError(
            f"Unknown worker job '{name}'. "
            f"Available jobs: {', '.join(sorted(JOB_REGISTRY.keys()))}"
        )

    runtime = runtime or build_runtime()
    logger.info("Starting background worker", job=name)
    try:
        await JOB_REGISTRY[name](runtime)
    finally:
        await runtime.close()


def main() -> None:
    """CLI entrypoint."""
    setup_logging(log_level=settings.LOG_LEVEL)
    job_name = _resolve_job_name()
    asyncio.run(run_worker(job_name))


if __name__ == "__main__":
    main()
