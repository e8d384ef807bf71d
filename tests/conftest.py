"""Shared pytest fixtures."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest

from ledgersync.client.state import LocalRecordStore
from tests.fakes import FakeNetwork, FixedClock, InMemoryRemoteStore


@pytest.fixture
def clock() -> FixedClock:
    """Deterministic clock."""
    return FixedClock()


@pytest.fixture
def remote() -> InMemoryRemoteStore:
    """Empty in-memory remote store."""
    return InMemoryRemoteStore()


@pytest.fixture
def network() -> FakeNetwork:
    """Online network signal."""
    return FakeNetwork(online=True)


@pytest.fixture
def local_store(tmp_path: Path) -> Generator[LocalRecordStore, None, None]:
    """SQLite local store in a temporary directory."""
    store = LocalRecordStore(tmp_path / "state.db")
    yield store
    store.close()
