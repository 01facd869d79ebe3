# timeleak/models/api/sync_response.py
from typing import Literal

from pydantic import BaseModel


class SyncStatusResponse(BaseModel):
    """Response for GET /sync/status"""

    work_name: str
    state: str | None = None
    target_at: str | None = None
    time_until_next: str | None = None
    run_attempt: int = 0
    last_run_time_ms: int | None = None
    hours_since_last_run: int | None = None
    is_stale: bool


class SyncRunResponse(BaseModel):
    """Response for POST /sync/now"""

    status: str
    trigger: str
    last_run_time_ms: int | None = None
    total_screen_time_ms: int | None = None
    app_count: int = 0
    duration_ms: int = 0
    error: str | None = None
    rearmed: bool


class ScheduledWorkResponse(BaseModel):
    """Response for POST /sync/reset and POST /auth/session"""

    success: bool
    work_name: str
    work_id: str
    target_at_ms: int
    message: str


class SignOutResponse(BaseModel):
    success: Literal[True] = True
    message: str
