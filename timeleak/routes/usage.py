"""
usage.py
--------
Read-only views over the aggregation pipeline.

Usage:
    1. GET /usage/today - Local calendar day so far
    2. GET /usage/last-24h - Trailing 24h window (what the daily sync uploads)
    3. GET /usage/average - Average daily screen time over the last 30 days
"""

from fastapi import APIRouter, Depends, HTTPException, status

from timeleak.infrastructure.observability.logging import get_logger
from timeleak.models.api.usage_response import AverageUsageResponse, DailyUsageResponse
from timeleak.models.domain import DailyUsage
from timeleak.pipeline.aggregation import AVERAGE_LOOKBACK_DAYS
from timeleak.routes.dependencies import get_runtime
from timeleak.runtime import SyncRuntime
from timeleak.services.usage_stats_provider import UsageStatsError
from timeleak.utils.time_format import format_duration

router = APIRouter(prefix="/usage", tags=["usage"])
logger = get_logger(__name__)

NO_ACCESS_DETAIL = "Usage access not granted"


def _to_response(usage: DailyUsage | None) -> DailyUsageResponse:
    if usage is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NO_ACCESS_DETAIL)
    return DailyUsageResponse.from_domain(usage)


def _unavailable(e: UsageStatsError) -> HTTPException:
    logger.error("Usage stats unavailable", error=str(e), source=e.source)
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.get("/today", response_model=DailyUsageResponse)
async def get_today(runtime: SyncRuntime = Depends(get_runtime)):
    try:
        usage = await runtime.aggregator.aggregate_today()
    except UsageStatsError as e:
        raise _unavailable(e) from e
    return _to_response(usage)


@router.get("/last-24h", response_model=DailyUsageResponse)
async def get_last_24_hours(runtime: SyncRuntime = Depends(get_runtime)):
    try:
        usage = await runtime.aggregator.aggregate_last_24_hours()
    except UsageStatsError as e:
        raise _unavailable(e) from e
    return _to_response(usage)


@router.get("/average", response_model=AverageUsageResponse)
async def get_average(runtime: SyncRuntime = Depends(get_runtime)):
    """
    Raises:
        404: Usage access not granted, or no usage history to average
    """
    average = await runtime.aggregator.average_daily_screen_time(AVERAGE_LOOKBACK_DAYS)
    if average is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NO_ACCESS_DETAIL)

    return AverageUsageResponse(
        days=AVERAGE_LOOKBACK_DAYS,
        average_daily_screen_time_ms=average,
        average_daily_screen_time_display=format_duration(average),
    )
