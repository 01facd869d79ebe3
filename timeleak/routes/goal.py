"""
goal.py
-------
Daily screen-time goal.

Usage:
    1. GET /goal - Effective goal, captured baseline, and progress today
    2. PUT /goal - Set a new goal (rejected above the baseline or 24h)
"""

from fastapi import APIRouter, Depends, HTTPException, status

from timeleak.infrastructure.observability.logging import get_logger
from timeleak.models.api.sync_request import GoalUpdateRequest
from timeleak.models.api.usage_response import GoalProgressResponse, GoalResponse
from timeleak.routes.dependencies import get_runtime
from timeleak.runtime import SyncRuntime
from timeleak.services.goal_service import GoalValidationError, compute_progress
from timeleak.services.redis_client import KeyValueStoreError
from timeleak.services.usage_stats_provider import UsageStatsError
from timeleak.utils.time_format import format_duration

router = APIRouter(prefix="/goal", tags=["goal"])
logger = get_logger(__name__)


def _store_unavailable(e: KeyValueStoreError) -> HTTPException:
    logger.error("Goal state unavailable", operation=e.operation, error=str(e))
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Goal state temporarily unavailable",
    )


async def _goal_response(runtime: SyncRuntime) -> GoalResponse:
    try:
        state = await runtime.goals.get_state()
    except KeyValueStoreError as e:
        raise _store_unavailable(e) from e

    progress = None
    try:
        today = await runtime.aggregator.aggregate_today()
    except UsageStatsError as e:
        logger.warning("Usage unavailable for goal progress", error=str(e))
        today = None
    if today is not None:
        progress = GoalProgressResponse.from_domain(
            compute_progress(today.total_screen_time_ms, state.goal_time_ms)
        )

    return GoalResponse(
        goal_time_ms=state.goal_time_ms,
        goal_time_display=format_duration(state.goal_time_ms),
        baseline_screen_time_ms=state.baseline_screen_time_ms,
        progress=progress,
    )


@router.get("", response_model=GoalResponse)
async def get_goal(runtime: SyncRuntime = Depends(get_runtime)):
    return await _goal_response(runtime)


@router.put("", response_model=GoalResponse)
async def update_goal(request: GoalUpdateRequest, runtime: SyncRuntime = Depends(get_runtime)):
    """
    Raises:
        422: Goal not positive, above 24h, or above the captured baseline
        503: Baseline could not be read, nothing was written
    """
    try:
        await runtime.goals.set_goal(request.goal_time_ms)
    except GoalValidationError as e:
        logger.info("Goal update rejected", reason=e.reason, requested_ms=e.requested_ms)
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "message": str(e),
                "reason": e.reason,
                "requested_ms": e.requested_ms,
                "limit_ms": e.limit_ms,
            },
        ) from e
    except KeyValueStoreError as e:
        raise _store_unavailable(e) from e

    return await _goal_response(runtime)
