"""Sync engine for ledgersync.

This package provides:
- SyncOrchestrator: pull -> merge -> persist -> push passes
- SyncScheduler: timer, reconnect and debounced triggers
- Sync error taxonomy and result types
- domain/: pure merge, reconcile and resolution logic
"""

from ledgersync.client.sync.orchestrator import SyncOrchestrator
from ledgersync.client.sync.scheduler import SchedulerState, SyncScheduler, TriggerReason
from ledgersync.client.sync.types import (
    CacheSink,
    LocalPersistFailure,
    LocalStore,
    NetworkSignal,
    NetworkUnavailable,
    RemoteReadFailure,
    RemoteStore,
    RemoteWriteFailure,
    SyncError,
    SyncResult,
    SyncStatus,
)

__all__ = [
    # Orchestration
    "SyncOrchestrator",
    "SyncScheduler",
    "SchedulerState",
    "TriggerReason",
    # Types
    "SyncResult",
    "SyncStatus",
    "LocalStore",
    "RemoteStore",
    "CacheSink",
    "NetworkSignal",
    # Errors
    "SyncError",
    "NetworkUnavailable",
    "RemoteReadFailure",
    "RemoteWriteFailure",
    "LocalPersistFailure",
]
