from browser_pool_mcp.atoms.types.data_types import (
    PoolStatus,
    Worker,
    WorkerEvent,
    WorkerEventType,
    WorkerState,
    WorkerStatus,
)

__all__ = [
    "PoolStatus",
    "Worker",
    "WorkerEvent",
    "WorkerEventType",
    "WorkerState",
    "WorkerStatus",
]
