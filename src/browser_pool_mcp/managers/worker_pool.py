"""
The set of live workers known to one pool manager.
"""

import time
from typing import Dict, Iterator, List, Optional, Set

from browser_pool_mcp.atoms.logging.logger import get_logger
from browser_pool_mcp.atoms.types.data_types import PoolStatus, Worker, WorkerStatus
from browser_pool_mcp.atoms.utils.config_constants import MAX_INSTANCES


class WorkerPool:
    """
    Registry of live workers keyed by port, bounded by max_instances.

    Only the lifecycle manager adds and removes entries; other components read.
    """

    def __init__(self, max_instances: int = MAX_INSTANCES) -> None:
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")
        self.max_instances = max_instances
        self._workers: Dict[int, Worker] = {}

    def __len__(self) -> int:
        return len(self._workers)

    def __contains__(self, port: object) -> bool:
        return port in self._workers

    def __iter__(self) -> Iterator[Worker]:
        return iter(list(self._workers.values()))

    def get(self, port: Optional[int]) -> Optional[Worker]:
        if port is None:
            return None
        return self._workers.get(port)

    def ports(self) -> Set[int]:
        return set(self._workers)

    def workers(self) -> List[Worker]:
        return list(self._workers.values())

    def is_full(self) -> bool:
        return len(self._workers) >= self.max_instances

    def add(self, worker: Worker) -> None:
        """
        Register a worker.

        Raises:
            ValueError: If a live worker already holds the port.
        """
        if worker.port in self._workers:
            raise ValueError(f"Port {worker.port} is already held by a live worker")
        self._workers[worker.port] = worker
        self.logger.debug(f"Worker on port {worker.port} registered ({len(self)}/{self.max_instances})")

    def remove(self, port: int) -> Optional[Worker]:
        worker = self._workers.pop(port, None)
        if worker is not None:
            self.logger.debug(f"Worker on port {port} removed ({len(self)}/{self.max_instances})")
        return worker

    def least_recently_used(self) -> Optional[Worker]:
        """
        The eviction candidate: smallest last_used, ties broken by lowest port.
        """
        if not self._workers:
            return None
        return min(self._workers.values(), key=lambda w: (w.last_used, w.port))

    def idle_workers(self, timeout: float, now: Optional[float] = None) -> List[Worker]:
        """Workers idle longer than timeout with no call in progress."""
        now = time.monotonic() if now is None else now
        return [
            w for w in self._workers.values()
            if now - w.last_used > timeout and w.in_flight == 0
        ]

    def status(self, session_id: str, assigned_port: Optional[int], now: Optional[float] = None) -> PoolStatus:
        now = time.monotonic() if now is None else now
        instances = [
            WorkerStatus(
                port=w.port,
                session_id=w.session_id,
                idle_minutes=round(w.idle_seconds(now) / 60),
                state=w.state,
                in_flight=w.in_flight,
            )
            for w in self._workers.values()
        ]
        return PoolStatus(
            instances=instances,
            max_instances=self.max_instances,
            this_session=session_id,
            assigned_port=assigned_port,
        )
