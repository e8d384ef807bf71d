"""Shared types and dataclasses for sync operations.

This module provides:
- SyncError and subclasses: the sync error taxonomy
- SyncResult: Outcome of one sync pass
- SyncStatus: Snapshot returned by the orchestrator's get_status()
- LocalStore, RemoteStore, CacheSink, NetworkSignal: collaborator protocols
- Type aliases for callbacks
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Protocol

from ledgersync.core.types import StatusIndicator, SyncState

if TYPE_CHECKING:
    from ledgersync.client.sync.domain.conflicts import FieldConflict
    from ledgersync.core.records import VersionedRecord
    from ledgersync.core.types import RecordKind


class SyncError(Exception):
    """Base exception for sync errors."""


class NetworkUnavailable(SyncError):
    """The remote store cannot be reached. Aborts the current pass."""


class RemoteReadFailure(SyncError):
    """Pulling a snapshot from the remote store failed."""

    def __init__(self, kind: RecordKind, message: str, scope: str | None = None) -> None:
        self.kind = kind
        self.scope = scope
        where = f"{kind.value}" + (f" (scope {scope})" if scope else "")
        super().__init__(f"Failed to read {where}: {message}")


class RemoteWriteFailure(SyncError):
    """Pushing one record to the remote store failed."""

    def __init__(self, kind: RecordKind, record_id: str, message: str) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"Failed to push {kind.value} {record_id}: {message}")


class LocalPersistFailure(SyncError):
    """Some records could not be written to the local store.

    The other records of the batch were saved.

    Attributes:
        kind: Record kind of the batch.
        record_ids: Ids that were not persisted.
    """

    def __init__(self, kind: RecordKind, record_ids: Sequence[str], message: str) -> None:
        self.kind = kind
        self.record_ids = list(record_ids)
        super().__init__(
            f"Failed to persist {len(self.record_ids)} {kind.value} record(s): {message}"
        )


@dataclass
class SyncResult:
    """Result of a sync pass.

    A pass that produced conflicts is still successful; conflicts are
    reported alongside the merged data. ``coalesced`` is set when the
    request arrived while another pass was running and was folded into
    a follow-up pass instead.
    """

    success: bool
    items_synced: int = 0
    conflicts: list[FieldConflict] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    coalesced: bool = False

    @property
    def has_conflicts(self) -> bool:
        """Check if there are any conflicts."""
        return len(self.conflicts) > 0


@dataclass(frozen=True)
class SyncStatus:
    """Point-in-time status of the sync engine."""

    online: bool
    syncing: bool
    state: SyncState
    last_sync_time: datetime | None
    pending_conflicts: int
    pending_changes: int
    last_error: str | None = None

    @property
    def indicator(self) -> StatusIndicator:
        """Collapse the status into the single indicator shown to users."""
        if self.syncing:
            return StatusIndicator.SYNCING
        if not self.online:
            return StatusIndicator.OFFLINE
        if self.last_error:
            return StatusIndicator.ERROR
        if self.pending_conflicts:
            return StatusIndicator.CONFLICTS_PENDING
        return StatusIndicator.UP_TO_DATE


class LocalStore(Protocol):
    """Device-local persistence for records and sync metadata."""

    def load_all(self, kind: RecordKind, scope: str | None = None) -> list[VersionedRecord]:
        """Load every record of a kind, tombstones included."""
        ...

    def save_all(self, kind: RecordKind, records: Sequence[VersionedRecord]) -> None:
        """Upsert records. Raises LocalPersistFailure naming failed ids."""
        ...

    def get_state(self, key: str) -> str | None:
        """Get a metadata value."""
        ...

    def set_state(self, key: str, value: str) -> None:
        """Set a metadata value."""
        ...


class RemoteStore(Protocol):
    """Shared remote copy of the records."""

    def fetch_all(self, kind: RecordKind, scope: str | None = None) -> list[VersionedRecord]:
        """Fetch every record of a kind. Raises RemoteReadFailure or NetworkUnavailable."""
        ...

    def upsert(self, kind: RecordKind, record: VersionedRecord) -> None:
        """Write one record. Raises RemoteWriteFailure or NetworkUnavailable."""
        ...


class CacheSink(Protocol):
    """Presentation cache told which keys went stale."""

    def invalidate_pattern(self, pattern: str) -> int:
        """Drop entries matching ``kind`` or ``kind:id``. Returns count dropped."""
        ...


class NetworkSignal(Protocol):
    """Online/offline signal with change notifications."""

    def is_online(self) -> bool:
        """Current reachability."""
        ...

    def add_listener(self, callback: Callable[[bool], None]) -> Callable[[], None]:
        """Subscribe to changes. Returns an unsubscribe function."""
        ...


# Type aliases for callbacks
StatusCallback = Callable[[SyncStatus], None]
Clock = Callable[[], datetime]
