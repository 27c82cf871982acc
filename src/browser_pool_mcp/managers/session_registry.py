"""
Session Registry for the single caller served by a pool manager.

This module provides the SessionRegistry class that binds the manager's
session to at most one live worker, creating one on demand and evicting the
least recently used worker when the pool is full.
"""

import asyncio
import random
import string
import time
from typing import Optional

from browser_pool_mcp.atoms.logging.logger import get_logger
from browser_pool_mcp.atoms.types.data_types import PoolStatus, Worker, WorkerState
from browser_pool_mcp.managers.process_manager import WorkerLifecycleManager
from browser_pool_mcp.managers.worker_pool import WorkerPool
from browser_pool_mcp.utils.port_allocator import PortAllocator

_BASE36 = string.digits + string.ascii_lowercase


def _base36(value: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def generate_session_id() -> str:
    """
    Build a session id from the current time and a random component.

    Uniqueness is best effort; the id only labels workers in status output.
    """
    return f"session-{int(time.time() * 1000)}-{_base36(random.getrandbits(52))}"


class SessionRegistry:
    """
    Maps this manager's session to its assigned worker with get-or-create semantics.
    """

    def __init__(
        self,
        pool: WorkerPool,
        lifecycle: WorkerLifecycleManager,
        allocator: PortAllocator,
        session_id: Optional[str] = None,
    ) -> None:
        """
        Initialize the SessionRegistry.

        Args:
            pool: The pool of live workers.
            lifecycle: Lifecycle manager used to start and kill workers.
            allocator: Port allocator for new workers.
            session_id: Fixed session id; generated when omitted.
        """
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")
        self.pool = pool
        self.lifecycle = lifecycle
        self.allocator = allocator
        self.session_id = session_id or generate_session_id()

        self._assigned_port: Optional[int] = None
        self._pending: Optional["asyncio.Task[Worker]"] = None

        self.lifecycle.add_exit_listener(self._on_worker_exit)
        self.logger.info(f"[browser-pool] Session: {self.session_id}")

    @property
    def assigned_port(self) -> Optional[int]:
        """Port of the assigned worker, or None if no live worker is assigned."""
        worker = self.assigned_worker
        return worker.port if worker is not None else None

    @property
    def assigned_worker(self) -> Optional[Worker]:
        worker = self.pool.get(self._assigned_port)
        if worker is None or worker.state == WorkerState.TERMINATED:
            return None
        return worker

    def _on_worker_exit(self, worker: Worker) -> None:
        if worker.port == self._assigned_port:
            self.logger.info(
                f"[browser-pool] Assigned worker on port {worker.port} is gone; next call will respawn"
            )
            self._assigned_port = None

    async def get_or_create(self) -> Worker:
        """
        Return the session's worker, creating one if needed.

        Concurrent callers share one in-flight creation, so a session never
        spawns two workers at once. If creation fails, every waiting caller
        receives the same error and nothing is registered.
        """
        worker = self.assigned_worker
        if worker is not None:
            worker.touch()
            return worker

        if self._pending is None:
            self._pending = asyncio.create_task(self._create(), name=f"get-or-create:{self.session_id}")
            self._pending.add_done_callback(self._clear_pending)
        else:
            self.logger.debug("[browser-pool] Joining in-flight worker creation")

        return await asyncio.shield(self._pending)

    def _clear_pending(self, task: "asyncio.Task[Worker]") -> None:
        if self._pending is task:
            self._pending = None
        if not task.cancelled() and task.exception() is not None:
            self.logger.debug(f"[browser-pool] Worker creation failed: {task.exception()}")

    async def _create(self) -> Worker:
        self._assigned_port = None

        if self.pool.is_full():
            victim = self.pool.least_recently_used()
            if victim is not None:
                self.logger.info(
                    f"[browser-pool] Pool at capacity ({len(self.pool)}/{self.pool.max_instances}); "
                    f"evicting least recently used port {victim.port}"
                )
                await self.lifecycle.kill(victim)

        port = await self.allocator.claim(self.pool.ports())
        worker = await self.lifecycle.start_worker(port, self.session_id)

        self._assigned_port = port
        return worker

    def status(self) -> PoolStatus:
        return self.pool.status(self.session_id, self.assigned_port)

    async def shutdown(self) -> None:
        """Cancel any in-flight creation."""
        pending = self._pending
        if pending is not None and not pending.done():
            pending.cancel()
            try:
                await pending
            except (asyncio.CancelledError, Exception):
                pass
