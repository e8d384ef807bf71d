"""Sync orchestrator: one pass of pull -> merge -> persist -> push.

The orchestrator is the only writer of the local store. A pass:

1. Checks reachability; offline means no pass at all.
2. Pulls and reconciles, in order: ledgers, transactions of every
   ledger (tombstoned ledgers included), categories.
3. Persists each reconciled set right away, conflicts or not.
4. Pushes records the remote store is missing or has older, then
   records them as synced locally. A tombstone with a pending
   delete/edit conflict stays local until the conflict is resolved.
5. Updates metadata (last sync time, pending conflicts and changes),
   invalidates presentation caches and notifies status listeners.

Error policy:
    | Error               | Effect                                   |
    |---------------------|------------------------------------------|
    | NetworkUnavailable  | Pass stops, committed writes stay        |
    | RemoteReadFailure   | That kind/scope is skipped, pass goes on |
    | RemoteWriteFailure  | That record is skipped, pass goes on     |
    | LocalPersistFailure | Those records are not pushed this pass   |

Only one pass runs at a time. A sync request arriving during a pass is
answered immediately with ``coalesced=True`` and exactly one follow-up
pass runs once the current one finishes.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Any

from ledgersync.client.sync.domain.conflicts import FieldConflict, merge_pending
from ledgersync.client.sync.domain.reconcile import ReconcileResult, reconcile
from ledgersync.client.sync.domain.resolution import ResolutionOutcome, apply_resolutions
from ledgersync.client.sync.domain.versions import count_pending_changes
from ledgersync.client.sync.types import (
    LocalPersistFailure,
    NetworkUnavailable,
    RemoteReadFailure,
    RemoteWriteFailure,
    SyncResult,
    SyncStatus,
)
from ledgersync.core.config import SyncSettings
from ledgersync.core.instants import format_instant, parse_instant, utc_now
from ledgersync.core.records import VersionedRecord, mark_synced
from ledgersync.core.types import RecordKind, SyncState

if TYPE_CHECKING:
    from collections.abc import Callable

    from ledgersync.client.sync.types import (
        CacheSink,
        Clock,
        LocalStore,
        NetworkSignal,
        RemoteStore,
        StatusCallback,
    )

logger = logging.getLogger(__name__)

# Metadata keys in the local store
LAST_SYNC_KEY = "last_sync_at"
PENDING_CONFLICTS_KEY = "pending_conflicts"
PENDING_CHANGES_KEY = "pending_changes"

# Upper bound for the backoff between remote read retries, in seconds
MAX_RETRY_DELAY = 60.0


class SyncOrchestrator:
    """Drives sync passes between a local and a remote store.

    Usage:
        orchestrator = SyncOrchestrator(
            local_store, remote_store, network, replica_id="laptop"
        )
        unsubscribe = orchestrator.on_status_changed(print)
        result = orchestrator.sync_all()
        if result.conflicts:
            orchestrator.resolve_conflicts({"tx1-amount": "use-local"})
    """

    def __init__(
        self,
        local_store: LocalStore,
        remote_store: RemoteStore,
        network: NetworkSignal,
        *,
        replica_id: str,
        clock: Clock = utc_now,
        cache: CacheSink | None = None,
        settings: SyncSettings | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            local_store: This device's store.
            remote_store: Shared remote store.
            network: Reachability signal.
            replica_id: Identifies this replica in last_modified_by.
            clock: Source of the current time.
            cache: Optional presentation cache to invalidate after a pass.
            settings: Retry settings.
        """
        self._local = local_store
        self._remote = remote_store
        self._network = network
        self._replica_id = replica_id
        self._clock = clock
        self._cache = cache
        self._settings = settings or SyncSettings()

        # _lock guards the flags below, _pass_lock serializes store access
        self._lock = threading.RLock()
        self._pass_lock = threading.Lock()
        self._in_flight = False
        self._rerun_requested = False

        self._state = SyncState.IDLE
        self._last_error: str | None = None
        self._listeners: list[StatusCallback] = []

    @property
    def state(self) -> SyncState:
        """Get current orchestrator state."""
        return self._state

    @property
    def replica_id(self) -> str:
        """Identifier of this replica."""
        return self._replica_id

    # === Public API ===

    def sync_all(self) -> SyncResult:
        """Run a sync pass, or coalesce into the one already running.

        Returns:
            Result of the pass (of the follow-up pass when one ran).
        """
        with self._lock:
            if self._in_flight:
                self._rerun_requested = True
                logger.debug("Sync in progress, follow-up pass requested")
                return SyncResult(success=True, coalesced=True)
            self._in_flight = True

        try:
            result = self._run_pass()
            while self._continue_in_flight():
                logger.info("Running follow-up sync pass")
                result = self._run_pass()
        except BaseException:
            with self._lock:
                self._in_flight = False
                self._rerun_requested = False
            raise
        self._notify()
        return result

    def get_status(self) -> SyncStatus:
        """Get the current status snapshot."""
        pending_changes = self._local.get_state(PENDING_CHANGES_KEY)
        return SyncStatus(
            online=self._network.is_online(),
            syncing=self._in_flight,
            state=self._state,
            last_sync_time=self.last_sync_time,
            pending_conflicts=len(self.pending_conflicts()),
            pending_changes=int(pending_changes) if pending_changes else 0,
            last_error=self._last_error,
        )

    @property
    def last_sync_time(self) -> datetime | None:
        """Time of the last completed pass."""
        return parse_instant(self._local.get_state(LAST_SYNC_KEY))

    def pending_conflicts(self) -> list[FieldConflict]:
        """Conflicts waiting for a decision."""
        raw = self._local.get_state(PENDING_CONFLICTS_KEY)
        if not raw:
            return []
        return [FieldConflict.from_dict(item) for item in json.loads(raw)]

    def on_status_changed(self, callback: StatusCallback) -> Callable[[], None]:
        """Subscribe to status changes.

        Args:
            callback: Called with a SyncStatus on every change.

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

    def resolve_conflicts(
        self,
        resolutions: Mapping[str, Any],
        resolve_all: bool = False,
    ) -> ResolutionOutcome:
        """Apply decisions to pending conflicts.

        Resolved records get a new local version and are pushed by the
        next pass.

        Args:
            resolutions: Decisions keyed by ``"{record_id}-{field}"``.
            resolve_all: Resolve undecided conflicts to the remote side.

        Returns:
            The outcome, with defaulted decisions flagged.

        Raises:
            LocalPersistFailure: If resolved records could not be saved.
        """
        with self._pass_lock:
            pending = self.pending_conflicts()
            known = {c.key for c in pending}
            for key in resolutions:
                if key not in known:
                    logger.warning("No pending conflict for %s", key)

            kinds = [kind for kind in RecordKind if any(c.kind is kind for c in pending)]
            records = [r for kind in kinds for r in self._local.load_all(kind)]
            outcome = apply_resolutions(
                records,
                pending,
                resolutions,
                actor=self._replica_id,
                now=self._clock(),
                default_unresolved=resolve_all,
            )

            changed = set(outcome.changed_ids)
            for kind in kinds:
                touched = [r for r in outcome.records if r.KIND is kind and r.id in changed]
                if touched:
                    self._local.save_all(kind, touched)
                    self._invalidate(kind, [r.id for r in touched])

            self._store_pending_conflicts(outcome.unresolved)
            self._store_pending_changes()
            if not self._in_flight:
                self._state = (
                    SyncState.CONFLICTS_PENDING if outcome.unresolved else SyncState.IDLE
                )

        logger.info(
            "Applied %d resolution(s) (%d defaulted), %d conflict(s) left",
            len(outcome.applied),
            len(outcome.defaulted),
            len(outcome.unresolved),
        )
        self._notify()
        return outcome

    # === Pass ===

    def _continue_in_flight(self) -> bool:
        """Consume a follow-up request, or leave the in-flight state."""
        with self._lock:
            if self._rerun_requested:
                self._rerun_requested = False
                return True
            self._in_flight = False
            return False

    def _run_pass(self) -> SyncResult:
        if not self._network.is_online():
            logger.info("Offline, skipping sync pass")
            self._last_error = "Network unavailable: device is offline"
            self._settle_state()
            return SyncResult(success=False, errors=[self._last_error])

        with self._pass_lock:
            errors: list[str] = []
            results: list[ReconcileResult] = []
            unsaved: set[tuple[RecordKind, str]] = set()
            pushed: list[tuple[RecordKind, str]] = []
            logger.info("Sync pass started")

            try:
                ledgers = self._sync_unit(RecordKind.LEDGER, None, errors, unsaved)
                if ledgers is not None:
                    results.append(ledgers)
                    ledger_ids = [r.id for r in ledgers.records]
                else:
                    ledger_ids = [r.id for r in self._local.load_all(RecordKind.LEDGER)]

                for ledger_id in ledger_ids:
                    entries = self._sync_unit(RecordKind.TRANSACTION, ledger_id, errors, unsaved)
                    if entries is not None:
                        results.append(entries)

                categories = self._sync_unit(RecordKind.CATEGORY, None, errors, unsaved)
                if categories is not None:
                    results.append(categories)

                self._push(results, errors, unsaved, pushed)
            except NetworkUnavailable as e:
                logger.warning("Network lost during sync: %s", e)
                errors.append(str(e))
                return self._finish(results, pushed, errors, completed=False)

            return self._finish(results, pushed, errors, completed=True)

    def _sync_unit(
        self,
        kind: RecordKind,
        scope: str | None,
        errors: list[str],
        unsaved: set[tuple[RecordKind, str]],
    ) -> ReconcileResult | None:
        """Pull, reconcile and persist one kind (and scope)."""
        self._set_state(SyncState.PULLING)
        try:
            remote = self._pull(kind, scope)
        except RemoteReadFailure as e:
            logger.error("Skipping %s: %s", kind.value, e)
            errors.append(str(e))
            return None

        local = self._local.load_all(kind, scope)

        self._set_state(SyncState.MERGING)
        result = reconcile(kind, local, remote)
        logger.debug(
            "Reconciled %s%s: %d local, %d remote, %d downloaded, %d merged, %d conflict(s)",
            kind.value,
            f" [{scope}]" if scope else "",
            len(local),
            len(remote),
            len(result.downloaded),
            len(result.merged),
            len(result.conflicts),
        )
        self._persist(kind, result.changed_records(), errors, unsaved)
        return result

    def _persist(
        self,
        kind: RecordKind,
        records: Sequence[VersionedRecord],
        errors: list[str],
        unsaved: set[tuple[RecordKind, str]],
    ) -> None:
        if not records:
            return
        try:
            self._local.save_all(kind, records)
        except LocalPersistFailure as e:
            logger.error("%s", e)
            errors.append(str(e))
            unsaved.update((kind, record_id) for record_id in e.record_ids)

    def _pull(self, kind: RecordKind, scope: str | None) -> list[VersionedRecord]:
        """Read one kind (and scope), retrying read failures with backoff."""
        attempt = 0
        delay = self._settings.retry_delay
        while True:
            try:
                return self._remote.fetch_all(kind, scope)
            except RemoteReadFailure as e:
                attempt += 1
                if attempt > self._settings.max_retries:
                    raise
                logger.warning(
                    "Reading %s failed (attempt %d/%d), retrying in %.1fs: %s",
                    kind.value,
                    attempt,
                    self._settings.max_retries + 1,
                    delay,
                    e,
                )
                time.sleep(delay)
                delay = min(delay * 2, MAX_RETRY_DELAY)

    def _push(
        self,
        results: Sequence[ReconcileResult],
        errors: list[str],
        unsaved: set[tuple[RecordKind, str]],
        pushed: list[tuple[RecordKind, str]],
    ) -> None:
        """Push outstanding records, appending (kind, id) of each to ``pushed``.

        Records written before a NetworkUnavailable are still recorded as
        synced locally.
        """
        self._set_state(SyncState.PUSHING)
        new_conflicts = [c for result in results for c in result.conflicts]
        held = {
            (c.kind, c.record_id)
            for c in merge_pending(self.pending_conflicts(), new_conflicts)
            if c.is_deletion
        }

        for result in results:
            synced: list[VersionedRecord] = []
            try:
                for record in result.push_records():
                    key = (result.kind, record.id)
                    if key in unsaved:
                        continue
                    if key in held:
                        logger.debug(
                            "Holding %s %s until its deletion conflict is resolved",
                            result.kind.value,
                            record.id,
                        )
                        continue
                    try:
                        self._remote.upsert(result.kind, record)
                    except RemoteWriteFailure as e:
                        logger.warning("%s", e)
                        errors.append(str(e))
                        continue
                    synced.append(mark_synced(record))
                    pushed.append(key)
            finally:
                self._persist(result.kind, synced, errors, unsaved)

    def _finish(
        self,
        results: Sequence[ReconcileResult],
        pushed: Sequence[tuple[RecordKind, str]],
        errors: list[str],
        *,
        completed: bool,
    ) -> SyncResult:
        """Record metadata and build the pass result."""
        new_conflicts = [c for result in results for c in result.conflicts]
        pending = merge_pending(self.pending_conflicts(), new_conflicts)
        self._store_pending_conflicts(pending)
        self._store_pending_changes()
        if completed:
            self._local.set_state(LAST_SYNC_KEY, format_instant(self._clock()) or "")

        touched: dict[tuple[RecordKind, str], None] = {}
        for result in results:
            for record_id in result.changed:
                touched.setdefault((result.kind, record_id), None)
        for key in pushed:
            touched.setdefault(key, None)

        for kind in RecordKind:
            ids = [record_id for (k, record_id) in touched if k is kind]
            if ids:
                self._invalidate(kind, ids)

        self._last_error = errors[-1] if errors else None
        self._settle_state()
        logger.info(
            "Sync pass %s: %d item(s) synced, %d conflict(s), %d error(s)",
            "completed" if completed else "aborted",
            len(touched),
            len(new_conflicts),
            len(errors),
        )
        return SyncResult(
            success=completed and not errors,
            items_synced=len(touched),
            conflicts=new_conflicts,
            errors=errors,
        )

    # === Metadata ===

    def _store_pending_conflicts(self, conflicts: Sequence[FieldConflict]) -> None:
        self._local.set_state(
            PENDING_CONFLICTS_KEY, json.dumps([c.to_dict() for c in conflicts])
        )

    def _store_pending_changes(self) -> None:
        count = sum(count_pending_changes(self._local.load_all(kind)) for kind in RecordKind)
        self._local.set_state(PENDING_CHANGES_KEY, str(count))

    def _invalidate(self, kind: RecordKind, record_ids: Sequence[str]) -> None:
        if self._cache is None:
            return
        self._cache.invalidate_pattern(kind.value)
        for record_id in record_ids:
            self._cache.invalidate_pattern(f"{kind.value}:{record_id}")

    # === Status ===

    def _settle_state(self) -> None:
        state = SyncState.CONFLICTS_PENDING if self.pending_conflicts() else SyncState.IDLE
        self._set_state(state)

    def _set_state(self, state: SyncState) -> None:
        if state is self._state:
            return
        logger.debug("Sync state %s -> %s", self._state.value, state.value)
        self._state = state
        self._notify()

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        if not listeners:
            return
        status = self.get_status()
        for callback in listeners:
            try:
                callback(status)
            except Exception:
                logger.exception("Status listener failed")
