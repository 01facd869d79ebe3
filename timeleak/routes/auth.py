"""
auth.py
-------
Session hand-off from the phone sign-in flow.

Usage:
    1. POST /auth/session - Cache uid and phone number, schedule the first sync
    2. DELETE /auth/session - Sign out and drop user-scoped state
"""

from fastapi import APIRouter, Depends, status

from timeleak.infrastructure.observability.logging import get_logger
from timeleak.models.api.sync_request import SessionRequest
from timeleak.models.api.sync_response import ScheduledWorkResponse, SignOutResponse
from timeleak.routes.dependencies import get_runtime
from timeleak.runtime import SyncRuntime

router = APIRouter(prefix="/auth", tags=["auth"])
logger = get_logger(__name__)


@router.post("/session", response_model=ScheduledWorkResponse, status_code=status.HTTP_201_CREATED)
async def create_session(request: SessionRequest, runtime: SyncRuntime = Depends(get_runtime)):
    user = await runtime.identity.sign_in(request.uid, request.phone_number)
    work = await runtime.midnight_scheduler.schedule_immediate_sync()
    logger.info("Session created, immediate sync scheduled", uid=user.uid, work_id=work.work_id)

    return ScheduledWorkResponse(
        success=True,
        work_name=work.name,
        work_id=work.work_id,
        target_at_ms=work.target_at_ms,
        message="Signed in. First sync scheduled.",
    )


@router.delete("/session", response_model=SignOutResponse)
async def delete_session(runtime: SyncRuntime = Depends(get_runtime)):
    await runtime.identity.sign_out()
    return SignOutResponse(message="Signed out")
