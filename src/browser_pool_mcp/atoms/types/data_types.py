import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from browser_pool_mcp.atoms.errors.application_errors import InvalidStateTransition


class WorkerState(str, Enum):
    """Lifecycle states of a pooled worker process."""

    STARTING = "starting"
    READY = "ready"
    TERMINATED = "terminated"


class WorkerEventType(str, Enum):
    """Events delivered into a worker's lifecycle state machine."""

    READY = "ready"
    STDOUT = "stdout"
    STDERR = "stderr"
    EXITED = "exited"
    KILLED = "killed"
    FAILED = "failed"


class WorkerEvent(BaseModel):
    """A single lifecycle event observed for a worker."""

    type: WorkerEventType
    port: int
    line: Optional[str] = None
    returncode: Optional[int] = None
    timestamp: float = Field(default_factory=time.monotonic)


# (event, current state) -> next state. Output events never change state.
_TRANSITIONS: Dict[WorkerEventType, Dict[WorkerState, WorkerState]] = {
    WorkerEventType.READY: {WorkerState.STARTING: WorkerState.READY},
    WorkerEventType.FAILED: {WorkerState.STARTING: WorkerState.TERMINATED},
    WorkerEventType.KILLED: {
        WorkerState.STARTING: WorkerState.TERMINATED,
        WorkerState.READY: WorkerState.TERMINATED,
    },
    WorkerEventType.EXITED: {
        WorkerState.STARTING: WorkerState.TERMINATED,
        WorkerState.READY: WorkerState.TERMINATED,
    },
}

_TERMINAL_EVENTS = {WorkerEventType.FAILED, WorkerEventType.KILLED, WorkerEventType.EXITED}


class Worker(BaseModel):
    """One spawned worker process, its port and its call channel."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    port: int
    session_id: str
    process: Any = None  # asyncio.subprocess.Process
    channel: Any = None  # WorkerChannel, set once connected
    state: WorkerState = WorkerState.STARTING
    last_used: float = Field(default_factory=time.monotonic)
    in_flight: int = 0
    returncode: Optional[int] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_live(self) -> bool:
        return self.state != WorkerState.TERMINATED

    @property
    def pid(self) -> Optional[int]:
        return getattr(self.process, "pid", None)

    def touch(self, now: Optional[float] = None) -> None:
        """Mark the worker as used right now."""
        self.last_used = time.monotonic() if now is None else now

    def idle_seconds(self, now: Optional[float] = None) -> float:
        now = time.monotonic() if now is None else now
        return max(0.0, now - self.last_used)

    def apply_event(self, event: WorkerEvent) -> bool:
        """
        Apply a lifecycle event to this worker.

        Returns:
            True if the event moved the worker to a new state, False otherwise.
            Terminal events on an already terminated worker are no-ops.

        Raises:
            InvalidStateTransition: If the event is not allowed in the current state.
        """
        if event.type in (WorkerEventType.STDOUT, WorkerEventType.STDERR):
            return False

        if self.state == WorkerState.TERMINATED and event.type in _TERMINAL_EVENTS:
            return False

        next_state = _TRANSITIONS.get(event.type, {}).get(self.state)
        if next_state is None:
            raise InvalidStateTransition(
                f"Cannot apply {event.type.value} to worker on port {self.port} in state {self.state.value}",
                port=self.port,
            )

        if event.type == WorkerEventType.EXITED:
            self.returncode = event.returncode
        self.state = next_state
        return True


class WorkerStatus(BaseModel):
    """Observable view of one worker, as reported by the status query."""

    model_config = ConfigDict(populate_by_name=True)

    port: int
    session_id: str = Field(serialization_alias="sessionId")
    idle_minutes: int = Field(serialization_alias="idleMinutes")
    state: WorkerState
    in_flight: int = Field(default=0, serialization_alias="inFlight")


class PoolStatus(BaseModel):
    """Snapshot of the live pool for observability."""

    model_config = ConfigDict(populate_by_name=True)

    instances: List[WorkerStatus] = Field(default_factory=list)
    max_instances: int = Field(serialization_alias="maxInstances")
    this_session: str = Field(serialization_alias="thisSession")
    assigned_port: Optional[int] = Field(default=None, serialization_alias="assignedPort")

    @property
    def live_count(self) -> int:
        return len(self.instances)

    def to_wire(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json", by_alias=True)
        data["liveCount"] = self.live_count
        return data
