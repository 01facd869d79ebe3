# timeleak/models/api/sync_request.py
from pydantic import BaseModel, Field


class GoalUpdateRequest(BaseModel):
    """Request body for PUT /goal. Range checks happen in GoalService."""

    goal_time_ms: int = Field(..., description="Daily screen time goal in milliseconds")


class SessionRequest(BaseModel):
    """Request body for POST /auth/session, sent after phone sign-in succeeds."""

    uid: str = Field(..., min_length=1, max_length=128)
    phone_number: str = Field(..., min_length=4, max_length=32)
