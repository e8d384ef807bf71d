"""Network reachability monitor.

This module provides:
- NetworkMonitor: online/offline signal with change notifications

The monitor probes the server health endpoint on a background thread
and notifies listeners on every transition. It can also be driven by
hand (set_online), which is what embedding applications with their own
connectivity API do.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)

NETWORK_CHECK_INTERVAL = 5.0  # seconds between probes


class HealthProbe(Protocol):
    """Anything that can tell whether the server is reachable."""

    def health_check(self) -> bool:
        """Return True when the server answers."""
        ...


class NetworkMonitor:
    """Tracks reachability of the remote store."""

    def __init__(
        self,
        probe: HealthProbe | None = None,
        check_interval: float = NETWORK_CHECK_INTERVAL,
        initially_online: bool = True,
    ) -> None:
        """Initialize the monitor.

        Args:
            probe: Health probe used by check_now and the polling thread.
            check_interval: Seconds between probes when polling.
            initially_online: Status before the first probe.
        """
        self._probe = probe
        self._check_interval = check_interval
        self._online = initially_online
        self._lock = threading.RLock()
        self._listeners: list[Callable[[bool], None]] = []
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def is_online(self) -> bool:
        """Current reachability."""
        return self._online

    def add_listener(self, callback: Callable[[bool], None]) -> Callable[[], None]:
        """Subscribe to reachability changes.

        Returns:
            Function that removes the subscription.
        """
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def set_online(self, online: bool) -> None:
        """Update reachability and notify listeners on a transition."""
        with self._lock:
            if online == self._online:
                return
            self._online = online
            listeners = list(self._listeners)

        logger.info("Network is %s", "online" if online else "offline")
        for callback in listeners:
            try:
                callback(online)
            except Exception:
                logger.exception("Network listener failed")

    def check_now(self) -> bool:
        """Probe the server once and update the status.

        Returns:
            The new reachability.
        """
        if self._probe is None:
            return self._online
        online = self._probe.health_check()
        self.set_online(online)
        return online

    def start(self) -> None:
        """Start polling the probe in the background."""
        with self._lock:
            if self._thread is not None:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run,
                name="NetworkMonitor",
                daemon=True,
            )
            self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Stop polling."""
        with self._lock:
            thread = self._thread
            self._thread = None
            self._stop_event.set()
        if thread and thread.is_alive():
            thread.join(timeout=timeout)

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.check_now()
            except Exception:
                logger.exception("Network probe failed")
                self.set_online(False)
            self._stop_event.wait(self._check_interval)
