"""
Idle Reaper for pooled workers.

Periodically kills workers that have not been used for longer than the
instance timeout. Workers with a proxied call in progress are skipped.
"""

import asyncio
import time
from typing import Any, List, Optional

from browser_pool_mcp.atoms.logging.logger import get_logger
from browser_pool_mcp.atoms.utils.config_constants import INSTANCE_TIMEOUT, REAP_INTERVAL
from browser_pool_mcp.managers.process_manager import WorkerLifecycleManager
from browser_pool_mcp.managers.worker_pool import WorkerPool


class IdleReaper:
    """Background sweep that terminates idle workers."""

    def __init__(
        self,
        pool: WorkerPool,
        lifecycle: WorkerLifecycleManager,
        instance_timeout: float = INSTANCE_TIMEOUT,
        interval: float = REAP_INTERVAL,
    ) -> None:
        """
        Initialize the IdleReaper.

        Args:
            pool: The pool to sweep.
            lifecycle: Lifecycle manager used to kill idle workers.
            instance_timeout: Idle seconds after which a worker is killed.
            interval: Seconds between sweeps.
        """
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")
        self.pool = pool
        self.lifecycle = lifecycle
        self.instance_timeout = instance_timeout
        self.interval = interval
        self._task: Optional["asyncio.Task[Any]"] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep(self, now: Optional[float] = None) -> List[int]:
        """
        Kill every worker idle longer than the timeout.

        Returns:
            Ports of the workers that were killed.
        """
        now = time.monotonic() if now is None else now
        reaped: List[int] = []
        for worker in self.pool.idle_workers(self.instance_timeout, now):
            # A call may have started while an earlier kill in this sweep was awaited
            if worker.in_flight or now - worker.last_used <= self.instance_timeout:
                continue
            self.logger.info(f"[browser-pool] Port {worker.port} timed out")
            try:
                await self.lifecycle.kill(worker)
                reaped.append(worker.port)
            except Exception as e:
                self.logger.error(f"[browser-pool] Failed to reap port {worker.port}: {e}", exc_info=True)
        return reaped

    def start(self) -> None:
        """Start the periodic sweep task."""
        if self.running:
            self.logger.info("Idle reaper is already running.")
            return
        self._task = asyncio.create_task(self._run(), name="idle-reaper")
        self.logger.debug(
            f"Idle reaper started (timeout {self.instance_timeout}s, interval {self.interval}s)"
        )

    async def _run(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                self.logger.debug("Idle reaper cancelled during sleep.")
                break
            try:
                await self.sweep()
            except asyncio.CancelledError:
                self.logger.debug("Idle reaper cancelled.")
                break
            except Exception as e:
                self.logger.error(f"Error in idle reaper loop: {e}", exc_info=True)

    async def stop(self) -> None:
        """Stop the periodic sweep task."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
