"""
Tests for SessionRegistry get-or-create, eviction and exit handling.
"""

import asyncio
import re
from typing import Set

import pytest

from browser_pool_mcp.atoms.errors.application_errors import SpawnFailureError, StartupTimeoutError
from browser_pool_mcp.managers.session_registry import generate_session_id
from browser_pool_mcp.pages.application.coordinator import PoolCoordinator
from tests.conftest import FakeChannelFactory, FakeHealthProbe, FakeLauncher, settle


class HostPortProbe:
    """A port probe shared by several managers, as if they ran on one host."""

    def __init__(self) -> None:
        self.bound: Set[int] = set()

    async def __call__(self, port: int) -> bool:
        if port in self.bound:
            return False
        # The worker spawned next binds the port
        self.bound.add(port)
        return True


def test_generated_session_ids_have_expected_shape():
    first, second = generate_session_id(), generate_session_id()
    assert re.fullmatch(r"session-\d+-[0-9a-z]+", first)
    assert first != second


@pytest.mark.asyncio
class TestGetOrCreate:
    async def test_second_call_returns_same_worker(self, coordinator, launcher):
        registry = coordinator.registry

        first = await registry.get_or_create()
        second = await registry.get_or_create()

        assert first is second
        assert launcher.spawn_count == 1
        assert registry.assigned_port == first.port == 9000
        assert first.session_id == "session-test"

    async def test_concurrent_callers_share_one_spawn(self, coordinator, launcher):
        workers = await asyncio.gather(*(coordinator.registry.get_or_create() for _ in range(5)))

        assert all(w is workers[0] for w in workers)
        assert launcher.spawn_count == 1
        assert len(coordinator.pool) == 1

    async def test_sessions_on_one_host_get_distinct_ports(self, settings):
        host = HostPortProbe()
        coordinators = [
            PoolCoordinator(
                settings,
                session_id=f"session-{i}",
                port_probe=host,
                health_probe=FakeHealthProbe(),
                channel_factory=FakeChannelFactory(),
                process_launcher=FakeLauncher(),
            )
            for i in range(5)
        ]
        try:
            workers = [await c.registry.get_or_create() for c in coordinators]
            ports = [w.port for w in workers]

            assert len(set(ports)) == 5
            assert all(settings.base_port <= p <= settings.max_port for p in ports)
        finally:
            for c in coordinators:
                await c.shutdown()

    async def test_full_pool_evicts_exactly_the_least_recently_used(self, coordinator, launcher):
        lifecycle = coordinator.lifecycle
        for i in range(coordinator.settings.max_instances):
            port = await coordinator.allocator.claim(coordinator.pool.ports())
            worker = await lifecycle.start_worker(port, f"other-{i}")
            worker.last_used = 1000.0 + i
        coordinator.pool.get(9003).last_used = 10.0
        before = coordinator.pool.ports()
        assert len(before) == 10

        worker = await coordinator.registry.get_or_create()

        after = coordinator.pool.ports()
        assert len(after) == 10
        assert before - after == {9003}
        assert worker.port not in before
        assert launcher.processes[3].kill_calls == 1
        assert sum(p.kill_calls for p in launcher.processes) == 1

    async def test_worker_exit_clears_assignment_and_next_call_respawns(self, coordinator, launcher):
        registry = coordinator.registry
        first = await registry.get_or_create()

        launcher.processes[0].exit(1)
        await settle()

        assert registry.assigned_port is None
        assert len(coordinator.pool) == 0

        second = await registry.get_or_create()
        assert second is not first
        assert second.port != first.port
        assert launcher.spawn_count == 2

    async def test_startup_failure_reaches_every_waiter_and_registers_nothing(self, coordinator, health_probe):
        health_probe.ready = False

        results = await asyncio.gather(
            coordinator.registry.get_or_create(),
            coordinator.registry.get_or_create(),
            return_exceptions=True,
        )

        assert all(isinstance(r, StartupTimeoutError) for r in results)
        assert len(coordinator.pool) == 0
        assert coordinator.registry.assigned_port is None

        health_probe.ready = True
        worker = await coordinator.registry.get_or_create()
        assert coordinator.pool.get(worker.port) is worker

    async def test_spawn_failure_propagates(self, coordinator, launcher):
        launcher.error = OSError("no such file")

        with pytest.raises(SpawnFailureError):
            await coordinator.registry.get_or_create()

        assert len(coordinator.pool) == 0

    async def test_status_reports_this_session(self, coordinator):
        await coordinator.registry.get_or_create()

        status = coordinator.registry.status()

        assert status.this_session == "session-test"
        assert status.assigned_port == 9000
        assert status.max_instances == 10
        assert status.live_count == len(coordinator.pool) == 1
