import asyncio
import os
import sys
from typing import Any, Dict, List, Optional, Set

import pytest
import pytest_asyncio

# Add the src directory to the path for importing modules during tests
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../src")))

from browser_pool_mcp.atoms.utils.settings import PoolSettings  # noqa: E402
from browser_pool_mcp.pages.application.coordinator import PoolCoordinator  # noqa: E402


async def settle(rounds: int = 5) -> None:
    """Let background tasks (exit watchers, output pumps) run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeProcess:
    """Stands in for asyncio.subprocess.Process."""

    _next_pid = 40000

    def __init__(self, command: List[str]) -> None:
        FakeProcess._next_pid += 1
        self.pid = FakeProcess._next_pid
        self.command = command
        self.returncode: Optional[int] = None
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        self.kill_calls = 0
        self._exited = asyncio.Event()

    def emit(self, line: str, stream: str = "stdout") -> None:
        getattr(self, stream).feed_data(f"{line}\n".encode())

    def _finish(self, returncode: int) -> None:
        if self.returncode is not None:
            return
        self.returncode = returncode
        self.stdout.feed_eof()
        self.stderr.feed_eof()
        self._exited.set()

    def exit(self, returncode: int = 1) -> None:
        """Simulate the worker dying on its own."""
        self._finish(returncode)

    def kill(self) -> None:
        self.kill_calls += 1
        self._finish(-9)

    async def wait(self) -> int:
        await self._exited.wait()
        assert self.returncode is not None
        return self.returncode


class FakeLauncher:
    """Records launched commands and hands out FakeProcess objects."""

    def __init__(self) -> None:
        self.processes: List[FakeProcess] = []
        self.error: Optional[BaseException] = None

    async def __call__(self, *command: str, **kwargs: Any) -> FakeProcess:
        if self.error is not None:
            raise self.error
        process = FakeProcess(list(command))
        self.processes.append(process)
        return process

    @property
    def spawn_count(self) -> int:
        return len(self.processes)


class FakeChannel:
    """Stands in for a WorkerChannel."""

    def __init__(self, port: int) -> None:
        self.port = port
        self.calls: List[Any] = []
        self.results: List[Any] = []
        self.close_calls = 0
        self.close_error: Optional[BaseException] = None

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Any:
        self.calls.append((name, arguments))
        outcome = self.results.pop(0) if self.results else {"content": [{"type": "text", "text": f"ok:{name}"}]}
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def close(self) -> None:
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error


class FakeChannelFactory:
    def __init__(self) -> None:
        self.channels: Dict[int, FakeChannel] = {}
        self.error: Optional[BaseException] = None

    async def __call__(self, port: int, url: str) -> FakeChannel:
        if self.error is not None:
            raise self.error
        channel = FakeChannel(port)
        self.channels[port] = channel
        return channel


class FakeHealthProbe:
    def __init__(self, ready: bool = True) -> None:
        self.ready = ready
        self.urls: List[str] = []

    async def __call__(self, url: str, timeout: float) -> bool:
        self.urls.append(url)
        return self.ready


class FakePortProbe:
    """Treats every port as free except the ones marked busy."""

    def __init__(self) -> None:
        self.busy: Set[int] = set()
        self.probed: List[int] = []

    async def __call__(self, port: int) -> bool:
        self.probed.append(port)
        return port not in self.busy


@pytest.fixture
def settings() -> PoolSettings:
    return PoolSettings(
        startup_delay=0,
        ready_poll_interval=0.01,
        ready_timeout=0.05,
        termination_timeout=1.0,
        reap_interval=3600,
    )


@pytest.fixture
def launcher() -> FakeLauncher:
    return FakeLauncher()


@pytest.fixture
def channel_factory() -> FakeChannelFactory:
    return FakeChannelFactory()


@pytest.fixture
def health_probe() -> FakeHealthProbe:
    return FakeHealthProbe()


@pytest.fixture
def port_probe() -> FakePortProbe:
    return FakePortProbe()


@pytest_asyncio.fixture
async def coordinator(settings, launcher, channel_factory, health_probe, port_probe):
    """A fully wired pool whose processes, sockets and channels are fakes."""
    c = PoolCoordinator(
        settings,
        session_id="session-test",
        port_probe=port_probe,
        health_probe=health_probe,
        channel_factory=channel_factory,
        process_launcher=launcher,
    )
    yield c
    await c.shutdown()
