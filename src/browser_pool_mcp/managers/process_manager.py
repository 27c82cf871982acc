"""
Worker lifecycle management.

This module provides the WorkerLifecycleManager class that spawns worker
processes on allocated ports, waits for them to answer their health probe,
connects an MCP call channel, and terminates them on demand or when they
exit on their own. All state changes flow through lifecycle events applied
to the Worker, so tests can drive the same transitions without real processes.
"""

import asyncio
from typing import Any, Awaitable, Callable, Coroutine, List, Optional, Set

import aiohttp

from browser_pool_mcp.atoms.errors.application_errors import (
    ConnectionFailureError,
    SpawnFailureError,
    StartupTimeoutError,
    UnexpectedExitError,
)
from browser_pool_mcp.atoms.logging.logger import get_logger
from browser_pool_mcp.atoms.types.data_types import Worker, WorkerEvent, WorkerEventType, WorkerState
from browser_pool_mcp.atoms.utils.settings import PoolSettings
from browser_pool_mcp.managers.worker_pool import WorkerPool
from browser_pool_mcp.molecules.channels.worker_channel import connect_channel

HealthProbe = Callable[[str, float], Awaitable[bool]]
ChannelFactory = Callable[[int, str], Awaitable[Any]]
ExitListener = Callable[[Worker], None]
ProcessLauncher = Callable[..., Awaitable[Any]]


async def http_health_probe(url: str, timeout: float) -> bool:
    """
    Probe a worker endpoint. Any HTTP response, whatever its status, means ready.
    """
    try:
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
            async with session.get(url):
                return True
    except (aiohttp.ClientError, asyncio.TimeoutError, OSError):
        return False


async def _default_channel_factory(port: int, url: str) -> Any:
    return await connect_channel(url, port=port)


class WorkerLifecycleManager:
    """
    Spawns, readies, connects and kills worker processes for one pool.
    """

    def __init__(
        self,
        pool: WorkerPool,
        settings: Optional[PoolSettings] = None,
        health_probe: Optional[HealthProbe] = None,
        channel_factory: Optional[ChannelFactory] = None,
        process_launcher: Optional[ProcessLauncher] = None,
    ) -> None:
        """
        Initialize the WorkerLifecycleManager.

        Args:
            pool: The pool this manager registers workers into.
            settings: Pool settings; defaults are used when omitted.
            health_probe: Readiness check, called with (url, request_timeout).
            channel_factory: Opens a call channel, called with (port, url).
            process_launcher: Starts the worker process; defaults to asyncio.create_subprocess_exec.
        """
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")
        self.pool = pool
        self.settings = settings or PoolSettings()
        self._health_probe: HealthProbe = health_probe or http_health_probe
        self._channel_factory: ChannelFactory = channel_factory or _default_channel_factory
        self._launch: ProcessLauncher = process_launcher or asyncio.create_subprocess_exec
        self._exit_listeners: List[ExitListener] = []
        self._tasks: Set["asyncio.Task[Any]"] = set()

    def endpoint_url(self, port: int) -> str:
        return f"http://{self.settings.worker_host}:{port}{self.settings.health_path}"

    def add_exit_listener(self, listener: ExitListener) -> None:
        """Register a callback invoked when a worker exits outside a managed kill."""
        self._exit_listeners.append(listener)

    def _track(self, coro: Coroutine[Any, Any, Any], name: str) -> "asyncio.Task[Any]":
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def spawn(self, port: int, session_id: str) -> Worker:
        """
        Launch a worker process bound to port.

        Returns:
            A Worker in the STARTING state. It is not registered in the pool yet.

        Raises:
            SpawnFailureError: If the process could not be launched.
        """
        command = self.settings.build_command(port)
        self.logger.info(f"[browser-pool] Spawning Playwright on port {port}...")
        try:
            process = await self._launch(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            self.logger.error(f"[browser-pool] Failed to launch worker on port {port}: {e}")
            raise SpawnFailureError(
                f"Failed to launch worker on port {port}: {e}",
                port=port,
                details={"command": command},
            ) from e

        worker = Worker(port=port, session_id=session_id, process=process)
        self.logger.debug(f"[browser-pool] Worker on port {port} started with PID {worker.pid}")

        if getattr(process, "stdout", None) is not None:
            self._track(self._pump(worker, process.stdout, WorkerEventType.STDOUT), f"pw:{port}:out")
        if getattr(process, "stderr", None) is not None:
            self._track(self._pump(worker, process.stderr, WorkerEventType.STDERR), f"pw:{port}:err")
        self._track(self._watch_exit(worker), f"pw:{port}:exit")
        return worker

    async def _pump(self, worker: Worker, stream: asyncio.StreamReader, event_type: WorkerEventType) -> None:
        while True:
            try:
                raw = await stream.readline()
            except ValueError as e:
                # readline has already discarded the over-long line from its buffer
                self.deliver(
                    worker,
                    WorkerEvent(type=event_type, port=worker.port, line=f"<output line dropped: {e}>"),
                )
                continue
            if not raw:
                return
            line = raw.decode(errors="replace").rstrip()
            if line:
                self.deliver(worker, WorkerEvent(type=event_type, port=worker.port, line=line))

    async def _watch_exit(self, worker: Worker) -> None:
        returncode = await worker.process.wait()
        self.deliver(worker, WorkerEvent(type=WorkerEventType.EXITED, port=worker.port, returncode=returncode))

    def deliver(self, worker: Worker, event: WorkerEvent) -> None:
        """
        Apply a lifecycle event to a worker and react to it.

        Output lines are logged. An EXITED event on a worker that was not
        killed by this manager deregisters it and notifies exit listeners.
        """
        if event.type == WorkerEventType.STDOUT:
            self.logger.debug(f"[pw:{worker.port}:out] {event.line}")
            return
        if event.type == WorkerEventType.STDERR:
            self.logger.debug(f"[pw:{worker.port}:err] {event.line}")
            return

        if event.type == WorkerEventType.EXITED:
            self.logger.info(f"[browser-pool] Port {worker.port} exited (code {event.returncode})")

        changed = worker.apply_event(event)
        if event.type != WorkerEventType.EXITED or not changed:
            return

        error = UnexpectedExitError(
            f"Worker on port {worker.port} exited unexpectedly (code {event.returncode})",
            port=worker.port,
            details={"returncode": event.returncode},
        )
        self.logger.warning(f"[browser-pool] {error.user_friendly_message}")

        if self.pool.get(worker.port) is worker:
            self.pool.remove(worker.port)
        if worker.channel is not None:
            self._track(self._close_channel(worker), f"pw:{worker.port}:close")
        for listener in list(self._exit_listeners):
            try:
                listener(worker)
            except Exception as e:
                self.logger.error(f"Exit listener failed for port {worker.port}: {e}", exc_info=True)

    async def await_ready(self, port: int, timeout: Optional[float] = None, worker: Optional[Worker] = None) -> None:
        """
        Wait until the worker on port answers its health probe.

        The first probe happens after the startup delay, then once per poll interval.

        Raises:
            StartupTimeoutError: If no response arrived before the timeout.
            SpawnFailureError: If the worker process exited while waiting.
        """
        timeout = self.settings.ready_timeout if timeout is None else timeout
        url = self.endpoint_url(port)
        loop = asyncio.get_running_loop()
        start = loop.time()

        await asyncio.sleep(self.settings.startup_delay)
        while True:
            if worker is not None and worker.state == WorkerState.TERMINATED:
                raise SpawnFailureError(
                    f"Worker on port {port} exited during startup (code {worker.returncode})",
                    port=port,
                    details={"returncode": worker.returncode},
                )
            if await self._health_probe(url, self.settings.health_request_timeout):
                self.logger.info(f"[browser-pool] Server ready on port {port}")
                return
            if loop.time() - start > timeout:
                raise StartupTimeoutError(f"Timeout waiting for server on port {port}", port=port)
            await asyncio.sleep(self.settings.ready_poll_interval)

    async def connect(self, port: int) -> Any:
        """
        Open the call channel to the worker on port.

        Raises:
            ConnectionFailureError: If the handshake did not complete.
        """
        url = self.endpoint_url(port)
        try:
            channel = await self._channel_factory(port, url)
        except ConnectionFailureError:
            raise
        except Exception as e:
            raise ConnectionFailureError(f"Failed to connect to worker on port {port}: {e}", port=port) from e
        self.logger.info(f"[browser-pool] MCP client connected to port {port}")
        return channel

    async def start_worker(self, port: int, session_id: str) -> Worker:
        """
        Spawn, await readiness, connect and register a worker.

        Nothing is registered in the pool unless every step succeeds; on
        failure the process is killed before the error propagates.
        """
        worker = await self.spawn(port, session_id)
        try:
            await self.await_ready(port, worker=worker)
            worker.channel = await self.connect(port)
            if worker.state == WorkerState.TERMINATED:
                raise SpawnFailureError(f"Worker on port {port} exited while connecting", port=port)
        except BaseException as e:
            self.logger.error(f"[browser-pool] Worker on port {port} failed to start: {e}")
            worker.apply_event(WorkerEvent(type=WorkerEventType.FAILED, port=port))
            await self._close_channel(worker)
            await self._terminate_process(worker)
            raise

        self.pool.add(worker)
        worker.touch()
        worker.apply_event(WorkerEvent(type=WorkerEventType.READY, port=port))
        return worker

    async def _close_channel(self, worker: Worker) -> None:
        channel, worker.channel = worker.channel, None
        if channel is None:
            return
        try:
            await channel.close()
        except Exception as e:
            self.logger.debug(f"[browser-pool] Ignoring error closing channel on port {worker.port}: {e}")

    async def _terminate_process(self, worker: Worker) -> None:
        process = worker.process
        if process is None or process.returncode is not None:
            return
        try:
            process.kill()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=self.settings.termination_timeout)
        except asyncio.TimeoutError:
            self.logger.warning(
                f"[browser-pool] Process on port {worker.port} did not exit within "
                f"{self.settings.termination_timeout}s after kill"
            )

    async def kill(self, worker: Worker) -> None:
        """
        Close the channel, kill the process and deregister the worker.

        Killing a worker that is already terminated is a no-op.
        """
        if worker.state == WorkerState.TERMINATED and self.pool.get(worker.port) is not worker:
            return

        self.logger.info(f"[browser-pool] Killing port {worker.port}")
        worker.apply_event(WorkerEvent(type=WorkerEventType.KILLED, port=worker.port))
        await self._close_channel(worker)
        await self._terminate_process(worker)
        if self.pool.get(worker.port) is worker:
            self.pool.remove(worker.port)

    async def kill_port(self, port: int) -> bool:
        worker = self.pool.get(port)
        if worker is None:
            return False
        await self.kill(worker)
        return True

    async def shutdown(self) -> None:
        """Kill every tracked worker and stop background tasks."""
        workers = self.pool.workers()
        if workers:
            self.logger.info(f"[browser-pool] Killing {len(workers)} worker(s)")
            results = await asyncio.gather(*(self.kill(w) for w in workers), return_exceptions=True)
            for worker, result in zip(workers, results):
                if isinstance(result, Exception):
                    self.logger.error(f"[browser-pool] Error killing port {worker.port}: {result}")

        pending = [t for t in self._tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
