"""
sync.py
-------
Inspect and drive the daily usage sync.

Usage:
    1. GET /sync/status - Daily slot state, time until next run, staleness
    2. POST /sync/now - Run the sync sequence in-process right away
    3. POST /sync/reset - Cancel and re-arm the daily slot
"""

from fastapi import APIRouter, Depends

from timeleak.infrastructure.observability.logging import get_logger
from timeleak.jobs.midnight_scheduler import SyncTrigger
from timeleak.models.api.sync_response import (
    ScheduledWorkResponse,
    SyncRunResponse,
    SyncStatusResponse,
)
from timeleak.routes.dependencies import get_runtime
from timeleak.runtime import SyncRuntime

router = APIRouter(prefix="/sync", tags=["sync"])
logger = get_logger(__name__)


@router.get("/status", response_model=SyncStatusResponse)
async def get_sync_status(runtime: SyncRuntime = Depends(get_runtime)):
    report = await runtime.midnight_scheduler.check_status()
    return SyncStatusResponse(**report.to_dict())


@router.post("/now", response_model=SyncRunResponse)
async def run_sync_now(runtime: SyncRuntime = Depends(get_runtime)):
    result = await runtime.sync_job.execute(SyncTrigger.MANUAL)
    logger.info("Manual sync requested via API", status=result.status)
    return SyncRunResponse(**result.to_dict())


@router.post("/reset", response_model=ScheduledWorkResponse)
async def reset_sync(runtime: SyncRuntime = Depends(get_runtime)):
    work = await runtime.midnight_scheduler.reset()
    return ScheduledWorkResponse(
        success=True,
        work_name=work.name,
        work_id=work.work_id,
        target_at_ms=work.target_at_ms,
        message="Daily sync re-armed",
    )
