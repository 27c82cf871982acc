"""
Tests for the worker lifecycle state machine and the pool status model.
"""

import pytest

from browser_pool_mcp.atoms.errors.application_errors import InvalidStateTransition
from browser_pool_mcp.atoms.types.data_types import (
    PoolStatus,
    Worker,
    WorkerEvent,
    WorkerEventType,
    WorkerState,
    WorkerStatus,
)


def _event(event_type: WorkerEventType, **kwargs) -> WorkerEvent:
    return WorkerEvent(type=event_type, port=9000, **kwargs)


class TestWorkerStateMachine:
    def test_new_worker_is_starting(self):
        worker = Worker(port=9000, session_id="s")
        assert worker.state == WorkerState.STARTING
        assert worker.is_live

    def test_starting_to_ready_to_terminated(self):
        worker = Worker(port=9000, session_id="s")
        assert worker.apply_event(_event(WorkerEventType.READY)) is True
        assert worker.state == WorkerState.READY
        assert worker.apply_event(_event(WorkerEventType.KILLED)) is True
        assert worker.state == WorkerState.TERMINATED
        assert not worker.is_live

    def test_startup_failure_terminates(self):
        worker = Worker(port=9000, session_id="s")
        worker.apply_event(_event(WorkerEventType.FAILED))
        assert worker.state == WorkerState.TERMINATED

    def test_exit_records_returncode(self):
        worker = Worker(port=9000, session_id="s")
        worker.apply_event(_event(WorkerEventType.READY))
        worker.apply_event(_event(WorkerEventType.EXITED, returncode=3))
        assert worker.state == WorkerState.TERMINATED
        assert worker.returncode == 3

    def test_terminal_events_on_terminated_worker_are_noops(self):
        worker = Worker(port=9000, session_id="s")
        worker.apply_event(_event(WorkerEventType.KILLED))
        for event_type in (WorkerEventType.KILLED, WorkerEventType.EXITED, WorkerEventType.FAILED):
            assert worker.apply_event(_event(event_type)) is False
        assert worker.state == WorkerState.TERMINATED

    def test_output_events_never_change_state(self):
        worker = Worker(port=9000, session_id="s")
        assert worker.apply_event(_event(WorkerEventType.STDOUT, line="hello")) is False
        assert worker.apply_event(_event(WorkerEventType.STDERR, line="oops")) is False
        assert worker.state == WorkerState.STARTING

    @pytest.mark.parametrize(
        "setup, event_type",
        [
            ([WorkerEventType.READY], WorkerEventType.READY),
            ([WorkerEventType.READY], WorkerEventType.FAILED),
            ([WorkerEventType.KILLED], WorkerEventType.READY),
        ],
    )
    def test_invalid_transitions_raise(self, setup, event_type):
        worker = Worker(port=9000, session_id="s")
        for step in setup:
            worker.apply_event(_event(step))
        with pytest.raises(InvalidStateTransition) as exc_info:
            worker.apply_event(_event(event_type))
        assert exc_info.value.error_code == "invalid_state_transition"
        assert exc_info.value.port == 9000

    def test_touch_and_idle_seconds(self):
        worker = Worker(port=9000, session_id="s", last_used=100.0)
        assert worker.idle_seconds(now=160.0) == 60.0
        worker.touch(now=150.0)
        assert worker.last_used == 150.0
        assert worker.idle_seconds(now=140.0) == 0.0


class TestPoolStatus:
    def test_wire_format_uses_camel_case_and_counts_instances(self):
        status = PoolStatus(
            instances=[
                WorkerStatus(port=9000, session_id="a", idle_minutes=2, state=WorkerState.READY),
                WorkerStatus(port=9001, session_id="b", idle_minutes=0, state=WorkerState.READY, in_flight=1),
            ],
            max_instances=10,
            this_session="a",
            assigned_port=9000,
        )

        wire = status.to_wire()

        assert wire["maxInstances"] == 10
        assert wire["thisSession"] == "a"
        assert wire["assignedPort"] == 9000
        assert wire["liveCount"] == 2
        assert wire["instances"][0] == {
            "port": 9000,
            "sessionId": "a",
            "idleMinutes": 2,
            "state": "ready",
            "inFlight": 0,
        }

    def test_empty_pool(self):
        status = PoolStatus(max_instances=3, this_session="x")
        wire = status.to_wire()
        assert wire["instances"] == []
        assert wire["assignedPort"] is None
        assert wire["liveCount"] == 0
