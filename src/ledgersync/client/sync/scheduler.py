"""Sync pass scheduling.

Triggers:
- explicit request (request_sync)
- periodic timer (SyncSettings.auto_sync_interval)
- network reconnection (NetworkSignal listener)
- local mutation, debounced (notify_local_change)

All triggers funnel into one wake-up event consumed by a single worker
thread, so triggers that fire while a pass is running collapse into one
follow-up pass.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum, IntEnum, auto
from typing import TYPE_CHECKING

from ledgersync.core.config import SyncSettings

if TYPE_CHECKING:
    from collections.abc import Callable

    from ledgersync.client.sync.orchestrator import SyncOrchestrator
    from ledgersync.client.sync.types import NetworkSignal, SyncResult

logger = logging.getLogger(__name__)


class SchedulerState(IntEnum):
    """State of the scheduler."""

    STOPPED = auto()
    RUNNING = auto()
    STOPPING = auto()


class TriggerReason(str, Enum):
    """Why a pass was started."""

    STARTUP = "startup"
    MANUAL = "manual"
    TIMER = "timer"
    RECONNECT = "reconnect"
    LOCAL_CHANGE = "local_change"


class SyncScheduler:
    """Runs orchestrator passes on a background thread.

    Usage:
        scheduler = SyncScheduler(orchestrator, network, settings)
        scheduler.start()
        ...
        scheduler.notify_local_change()  # after the user edits a record
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        network: NetworkSignal,
        settings: SyncSettings | None = None,
        on_pass_complete: Callable[[SyncResult], None] | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            orchestrator: Orchestrator whose passes are scheduled.
            network: Reachability signal; reconnection triggers a pass.
            settings: Interval and debounce settings.
            on_pass_complete: Optional callback receiving each pass result.
        """
        self._orchestrator = orchestrator
        self._network = network
        self._settings = settings or SyncSettings()
        self._on_pass_complete = on_pass_complete

        self._state = SchedulerState.STOPPED
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._wake = threading.Event()
        self._reason = TriggerReason.STARTUP

        self._thread: threading.Thread | None = None
        self._debounce_timer: threading.Timer | None = None
        self._unsubscribe_network: Callable[[], None] | None = None
        self._passes_run = 0
        self._last_result: SyncResult | None = None

    @property
    def state(self) -> SchedulerState:
        """Get current scheduler state."""
        return self._state

    @property
    def passes_run(self) -> int:
        """Number of passes the worker has run."""
        return self._passes_run

    @property
    def last_result(self) -> SyncResult | None:
        """Result of the most recent pass."""
        return self._last_result

    def start(self, sync_immediately: bool = True) -> None:
        """Start the worker thread.

        Args:
            sync_immediately: Run a first pass right away.
        """
        with self._lock:
            if self._state != SchedulerState.STOPPED:
                logger.warning("Scheduler already running")
                return

            self._state = SchedulerState.RUNNING
            self._stop_event.clear()
            self._unsubscribe_network = self._network.add_listener(self._on_network_change)
            if sync_immediately:
                self.request_sync(TriggerReason.STARTUP)
            self._thread = threading.Thread(
                target=self._run,
                name="SyncScheduler",
                daemon=True,
            )
            self._thread.start()
            logger.info(
                "Scheduler started (every %.0fs, debounce %.1fs)",
                self._settings.auto_sync_interval,
                self._settings.debounce_delay,
            )

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the scheduler.

        Args:
            timeout: Maximum time to wait for a running pass to finish
        """
        with self._lock:
            if self._state == SchedulerState.STOPPED:
                return
            self._state = SchedulerState.STOPPING
            self._stop_event.set()
            self._wake.set()
            if self._debounce_timer is not None:
                self._debounce_timer.cancel()
                self._debounce_timer = None
            if self._unsubscribe_network is not None:
                self._unsubscribe_network()
                self._unsubscribe_network = None

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)

        with self._lock:
            self._state = SchedulerState.STOPPED
            self._thread = None
            logger.info("Scheduler stopped")

    def request_sync(self, reason: TriggerReason = TriggerReason.MANUAL) -> None:
        """Ask for a pass as soon as the worker is free."""
        with self._lock:
            self._reason = reason
            self._wake.set()
        logger.debug("Sync requested (%s)", reason.value)

    def notify_local_change(self) -> None:
        """Schedule a pass after the debounce delay; restarts the delay."""
        with self._lock:
            if self._debounce_timer is not None:
                self._debounce_timer.cancel()
            timer = threading.Timer(
                self._settings.debounce_delay,
                self.request_sync,
                args=(TriggerReason.LOCAL_CHANGE,),
            )
            timer.daemon = True
            self._debounce_timer = timer
            timer.start()

    def _on_network_change(self, online: bool) -> None:
        if online:
            logger.info("Network reconnected")
            self.request_sync(TriggerReason.RECONNECT)

    def _run(self) -> None:
        """Worker loop."""
        logger.debug("Scheduler loop started")

        while not self._stop_event.is_set():
            woken = self._wake.wait(timeout=self._settings.auto_sync_interval)
            if self._stop_event.is_set():
                break

            with self._lock:
                self._wake.clear()
                reason = self._reason if woken else TriggerReason.TIMER

            logger.debug("Starting sync pass (%s)", reason.value)
            try:
                result = self._orchestrator.sync_all()
            except Exception:
                logger.exception("Sync pass failed")
                continue

            self._passes_run += 1
            self._last_result = result
            if self._on_pass_complete:
                try:
                    self._on_pass_complete(result)
                except Exception:
                    logger.exception("Pass completion callback failed")

        logger.debug("Scheduler loop ended")
