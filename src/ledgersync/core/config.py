"""Shared configuration classes for ledgersync.

This module defines configuration classes used by both client and server components.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ServerConfig:
    """Configuration for connecting to a ledgersync server.

    Used by the HTTP remote store and the network monitor so both talk
    to the same endpoint with the same settings.

    Attributes:
        server_url: Base URL of the server (e.g., "https://ledger.example.com").
        token: Authentication token for this replica.
        timeout: Request/connection timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    server_url: str
    token: str
    timeout: float = 30.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize server URL."""
        self.server_url = self.server_url.rstrip("/")


@dataclass
class SyncSettings:
    """Tunables for the sync engine.

    Attributes:
        auto_sync_interval: Seconds between periodic sync passes.
        debounce_delay: Seconds to wait after a local change before syncing.
        max_retries: Retry attempts for a failed remote read.
        retry_delay: Initial backoff between remote read retries, in seconds.
        network_check_interval: Seconds between reachability probes.
    """

    auto_sync_interval: float = 300.0
    debounce_delay: float = 2.0
    max_retries: int = 3
    retry_delay: float = 2.0
    network_check_interval: float = 5.0

    def __post_init__(self) -> None:
        """Validate settings."""
        if self.auto_sync_interval <= 0:
            raise ValueError("auto_sync_interval must be positive")
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        if self.debounce_delay < 0 or self.retry_delay < 0:
            raise ValueError("delays cannot be negative")
