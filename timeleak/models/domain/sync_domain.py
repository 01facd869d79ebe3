# timeleak/models/domain/sync_domain.py
"""
Sync Domain Models
Scheduler-owned work records, goal state and the authenticated identity.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

# Fallback goal when no baseline is known: 4h30m
DEFAULT_GOAL_MS = 16_200_000
BASELINE_GOAL_RATIO = 0.9


class WorkState(str, Enum):
    ENQUEUED = "enqueued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_live(self) -> bool:
        return self in (WorkState.ENQUEUED, WorkState.RUNNING)


@dataclass(slots=True)
class ScheduledSyncWork:
    """Persisted record for one unique work name."""

    name: str
    work_id: str
    target_at_ms: int
    state: WorkState
    handler: str
    run_attempt: int = 0
    network_required: bool = True
    input_data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScheduledSyncWork":
        return cls(
            name=data["name"],
            work_id=data["work_id"],
            target_at_ms=int(data["target_at_ms"]),
            state=WorkState(data["state"]),
            handler=data["handler"],
            run_attempt=int(data.get("run_attempt", 0)),
            network_required=bool(data.get("network_required", True)),
            input_data=dict(data.get("input_data") or {}),
        )


@dataclass(slots=True)
class GoalState:
    goal_time_ms: int
    baseline_screen_time_ms: int | None = None


@dataclass(frozen=True, slots=True)
class AuthenticatedUser:
    uid: str
    phone_number: str | None = None
