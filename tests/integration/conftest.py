"""Pytest fixtures for integration tests.

This module provides fixtures for end-to-end testing with a real server
running on a local port and replicas talking to it over HTTP.
"""

from __future__ import annotations

import socket
import threading
import time
from collections.abc import Callable, Generator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest
import uvicorn
from httpx import Client

from ledgersync.client.api import HTTPClient
from ledgersync.client.network import NetworkMonitor
from ledgersync.client.state import LocalRecordStore
from ledgersync.client.sync import SyncOrchestrator
from ledgersync.core.config import ServerConfig, SyncSettings
from ledgersync.server.app import create_app
from ledgersync.server.database import Database


@dataclass
class LiveServer:
    """Container for test server resources."""

    db: Database
    url: str

    def issue_token(self, name: str) -> str:
        """Register a replica and return its raw token."""
        replica = self.db.create_replica(name)
        raw_token, _ = self.db.create_token(replica.id)
        return raw_token


@dataclass
class Replica:
    """Container for a simulated replica."""

    name: str
    store: LocalRecordStore
    api_client: HTTPClient
    network: NetworkMonitor
    orchestrator: SyncOrchestrator

    def close(self) -> None:
        self.api_client.close()
        self.store.close()


class UvicornTestServer:
    """Uvicorn server running in a background thread for testing."""

    def __init__(self, app: Any, host: str = "127.0.0.1", port: int = 0) -> None:
        self.app = app
        self.host = host
        self.port = port
        self.server: uvicorn.Server | None = None
        self.thread: threading.Thread | None = None

    def start(self) -> int:
        """Start the server and return the port."""
        # Find a free port
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind((self.host, 0))
            self.port = s.getsockname()[1]

        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_level="warning",
        )
        self.server = uvicorn.Server(config)

        self.thread = threading.Thread(target=self.server.run, daemon=True)
        self.thread.start()

        # Wait for server to be ready
        self._wait_for_ready()

        return self.port

    def _wait_for_ready(self, timeout: float = 5.0) -> None:
        """Wait for the server to be ready to accept connections."""
        start = time.time()
        while time.time() - start < timeout:
            try:
                with Client() as client:
                    response = client.get(f"http://{self.host}:{self.port}/health")
                    if response.status_code == 200:
                        return
            except Exception:
                pass
            time.sleep(0.1)
        raise RuntimeError("Server failed to start in time")

    def stop(self) -> None:
        """Stop the server."""
        if self.server:
            self.server.should_exit = True
        if self.thread:
            self.thread.join(timeout=5)


@pytest.fixture
def test_server(tmp_path: Path) -> Generator[LiveServer, None, None]:
    """Run a real ledgersync server on a free local port."""
    db = Database(tmp_path / "server.db")
    runner = UvicornTestServer(create_app(db))
    port = runner.start()
    yield LiveServer(db=db, url=f"http://127.0.0.1:{port}")
    runner.stop()
    db.close()


@pytest.fixture
def make_replica(
    test_server: LiveServer, tmp_path: Path
) -> Generator[Callable[[str], Replica], None, None]:
    """Factory creating replicas registered with the test server."""
    created: list[Replica] = []

    def factory(name: str) -> Replica:
        token = test_server.issue_token(name)
        api_client = HTTPClient(ServerConfig(server_url=test_server.url, token=token, timeout=5.0))
        store = LocalRecordStore(tmp_path / name / "state.db")
        network = NetworkMonitor(api_client)
        orchestrator = SyncOrchestrator(
            store,
            api_client,
            network,
            replica_id=name,
            settings=SyncSettings(max_retries=0, retry_delay=0),
        )
        replica = Replica(name, store, api_client, network, orchestrator)
        created.append(replica)
        return replica

    yield factory
    for replica in created:
        replica.close()
