from typing import Optional

from browser_pool_mcp.atoms.logging.logger import get_logger
from browser_pool_mcp.atoms.utils.settings import PoolSettings
from browser_pool_mcp.managers.process_manager import (
    ChannelFactory,
    HealthProbe,
    ProcessLauncher,
    WorkerLifecycleManager,
)
from browser_pool_mcp.managers.session_registry import SessionRegistry
from browser_pool_mcp.managers.worker_pool import WorkerPool
from browser_pool_mcp.molecules.monitoring.idle_reaper import IdleReaper
from browser_pool_mcp.organisms.processors.proxy_dispatcher import ProxyDispatcher
from browser_pool_mcp.utils.port_allocator import PortAllocator, PortProbe


class PoolCoordinator:
    """
    Owns every component of one pool manager process.

    Builds the pool, port allocator, lifecycle manager, session registry,
    idle reaper and dispatcher from one set of settings, and handles
    start-up and shutdown for all of them.
    """

    def __init__(
        self,
        settings: Optional[PoolSettings] = None,
        session_id: Optional[str] = None,
        port_probe: Optional[PortProbe] = None,
        health_probe: Optional[HealthProbe] = None,
        channel_factory: Optional[ChannelFactory] = None,
        process_launcher: Optional[ProcessLauncher] = None,
    ) -> None:
        self._logger = get_logger(__name__)
        self.settings = settings or PoolSettings()

        self.pool = WorkerPool(max_instances=self.settings.max_instances)
        self.allocator = PortAllocator(
            base_port=self.settings.base_port,
            port_range=self.settings.port_range,
            max_attempts=self.settings.max_port_attempts,
            probe=port_probe,
        )
        self.lifecycle = WorkerLifecycleManager(
            self.pool,
            self.settings,
            health_probe=health_probe,
            channel_factory=channel_factory,
            process_launcher=process_launcher,
        )
        self.registry = SessionRegistry(self.pool, self.lifecycle, self.allocator, session_id=session_id)
        self.reaper = IdleReaper(
            self.pool,
            self.lifecycle,
            instance_timeout=self.settings.instance_timeout,
            interval=self.settings.reap_interval,
        )
        self.dispatcher = ProxyDispatcher(self.registry)
        self._shut_down = False

    @property
    def session_id(self) -> str:
        return self.registry.session_id

    def start(self) -> None:
        """Start background tasks. Must be called from inside the running event loop."""
        self.reaper.start()
        self._logger.info("[browser-pool] Started")

    async def shutdown(self) -> None:
        """Stop the reaper and kill every tracked worker. Safe to call more than once."""
        if self._shut_down:
            return
        self._shut_down = True
        self._logger.info("[browser-pool] Shutting down...")
        await self.reaper.stop()
        await self.registry.shutdown()
        await self.lifecycle.shutdown()
        self._logger.info("[browser-pool] Shutdown complete")
