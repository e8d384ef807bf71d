"""Tests for the background sync scheduler."""

from __future__ import annotations

import time
from collections.abc import Callable, Generator
from unittest.mock import MagicMock

import pytest

from ledgersync.client.sync import SchedulerState, SyncScheduler, TriggerReason
from ledgersync.client.sync.types import SyncResult
from ledgersync.core.config import SyncSettings
from tests.fakes import FakeNetwork


def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll until predicate is true or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def orchestrator() -> MagicMock:
    mock = MagicMock()
    mock.sync_all.return_value = SyncResult(success=True, items_synced=1)
    return mock


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork(online=True)


@pytest.fixture
def scheduler(
    orchestrator: MagicMock, network: FakeNetwork
) -> Generator[SyncScheduler, None, None]:
    settings = SyncSettings(auto_sync_interval=60.0, debounce_delay=0.05)
    s = SyncScheduler(orchestrator, network, settings)
    yield s
    s.stop()


class TestLifecycle:
    """Tests for start/stop."""

    def test_start_runs_first_pass(self, scheduler: SyncScheduler, orchestrator: MagicMock) -> None:
        scheduler.start()
        assert scheduler.state is SchedulerState.RUNNING
        assert wait_for(lambda: scheduler.passes_run == 1)
        assert scheduler.last_result is not None
        assert scheduler.last_result.items_synced == 1

    def test_start_without_immediate_pass(
        self, scheduler: SyncScheduler, orchestrator: MagicMock
    ) -> None:
        scheduler.start(sync_immediately=False)
        time.sleep(0.1)
        assert orchestrator.sync_all.call_count == 0

    def test_stop(self, scheduler: SyncScheduler, network: FakeNetwork) -> None:
        scheduler.start(sync_immediately=False)
        assert network.listener_count == 1
        scheduler.stop()
        assert scheduler.state is SchedulerState.STOPPED
        assert network.listener_count == 0

    def test_start_twice_is_noop(self, scheduler: SyncScheduler, network: FakeNetwork) -> None:
        scheduler.start(sync_immediately=False)
        scheduler.start(sync_immediately=False)
        assert network.listener_count == 1


class TestTriggers:
    """Tests for what wakes the worker."""

    def test_request_sync(self, scheduler: SyncScheduler, orchestrator: MagicMock) -> None:
        scheduler.start(sync_immediately=False)
        scheduler.request_sync(TriggerReason.MANUAL)
        assert wait_for(lambda: orchestrator.sync_all.call_count == 1)

    def test_reconnect_triggers_pass(
        self, scheduler: SyncScheduler, orchestrator: MagicMock, network: FakeNetwork
    ) -> None:
        scheduler.start(sync_immediately=False)
        network.set_online(False)
        time.sleep(0.05)
        assert orchestrator.sync_all.call_count == 0

        network.set_online(True)
        assert wait_for(lambda: orchestrator.sync_all.call_count == 1)

    def test_local_changes_are_debounced(
        self, scheduler: SyncScheduler, orchestrator: MagicMock
    ) -> None:
        scheduler.start(sync_immediately=False)
        for _ in range(5):
            scheduler.notify_local_change()
        assert wait_for(lambda: orchestrator.sync_all.call_count == 1)
        time.sleep(0.2)
        assert orchestrator.sync_all.call_count == 1

    def test_timer(self, orchestrator: MagicMock, network: FakeNetwork) -> None:
        settings = SyncSettings(auto_sync_interval=0.05)
        scheduler = SyncScheduler(orchestrator, network, settings)
        scheduler.start(sync_immediately=False)
        try:
            assert wait_for(lambda: orchestrator.sync_all.call_count >= 2)
        finally:
            scheduler.stop()


class TestCallbacks:
    """Tests for pass results and failures."""

    def test_on_pass_complete(self, orchestrator: MagicMock, network: FakeNetwork) -> None:
        results: list[SyncResult] = []
        scheduler = SyncScheduler(orchestrator, network, on_pass_complete=results.append)
        scheduler.start()
        try:
            assert wait_for(lambda: len(results) == 1)
            assert results[0].success is True
        finally:
            scheduler.stop()

    def test_pass_exception_keeps_worker_alive(
        self, scheduler: SyncScheduler, orchestrator: MagicMock
    ) -> None:
        orchestrator.sync_all.side_effect = [RuntimeError("boom"), SyncResult(success=True)]
        scheduler.start()
        assert wait_for(lambda: orchestrator.sync_all.call_count == 1)
        scheduler.request_sync()
        assert wait_for(lambda: scheduler.passes_run == 1)
