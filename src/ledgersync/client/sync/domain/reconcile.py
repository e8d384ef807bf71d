"""Collection reconciliation for one record kind.

Rules:
- id only on the remote side: download it (merge-base = remote version)
- id only on the local side: keep it, it is an upload candidate
- id on both sides: three-way merge, conflicts accumulated
- tombstones are never filtered out

Output order is local order followed by remote-only records in remote
order, so the same inputs always produce the same output.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from ledgersync.client.sync.domain.conflicts import FieldConflict
from ledgersync.client.sync.domain.merge import MergeAction, merge_records
from ledgersync.core.records import MalformedRecordError, VersionedRecord, mark_synced
from ledgersync.core.types import RecordKind


@dataclass
class ReconcileResult:
    """Merged view of one kind (and scope).

    Attributes:
        kind: Record kind.
        records: Reconciled records, tombstones included.
        conflicts: Field conflicts found while merging.
        downloaded: Ids adopted from the remote side.
        merged: Ids that received a merge commit.
        push_candidates: Ids the remote store is missing or has older.
        changed: Ids whose local copy differs from the input.
    """

    kind: RecordKind
    records: list[VersionedRecord] = field(default_factory=list)
    conflicts: list[FieldConflict] = field(default_factory=list)
    downloaded: list[str] = field(default_factory=list)
    merged: list[str] = field(default_factory=list)
    push_candidates: list[str] = field(default_factory=list)
    changed: list[str] = field(default_factory=list)

    def get(self, record_id: str) -> VersionedRecord | None:
        """Find a reconciled record by id."""
        for record in self.records:
            if record.id == record_id:
                return record
        return None

    def changed_records(self) -> list[VersionedRecord]:
        """Records that must be written to the local store."""
        wanted = set(self.changed)
        return [r for r in self.records if r.id in wanted]

    def push_records(self) -> list[VersionedRecord]:
        """Records that must be written to the remote store."""
        wanted = set(self.push_candidates)
        return [r for r in self.records if r.id in wanted]


def _index(records: Iterable[VersionedRecord], kind: RecordKind, side: str) -> dict[str, VersionedRecord]:
    indexed: dict[str, VersionedRecord] = {}
    for record in records:
        if record.KIND is not kind:
            raise MalformedRecordError(
                f"{side} set for {kind.value} contains a {record.KIND.value} record ({record.id})"
            )
        if record.id in indexed:
            raise MalformedRecordError(f"Duplicate {kind.value} id {record.id} in {side} set")
        indexed[record.id] = record
    return indexed


def reconcile(
    kind: RecordKind,
    local_records: Sequence[VersionedRecord],
    remote_records: Sequence[VersionedRecord],
) -> ReconcileResult:
    """Reconcile a local and a remote set of records of one kind.

    Args:
        kind: Record kind of both sets.
        local_records: This replica's records.
        remote_records: The remote store's records.

    Returns:
        ReconcileResult with merged records and bookkeeping.

    Raises:
        MalformedRecordError: On duplicate ids or mixed kinds.
    """
    local = _index(local_records, kind, "local")
    remote = _index(remote_records, kind, "remote")
    result = ReconcileResult(kind=kind)

    for record_id, local_record in local.items():
        remote_record = remote.get(record_id)
        if remote_record is None:
            result.records.append(local_record)
            result.push_candidates.append(record_id)
            continue

        outcome = merge_records(local_record, remote_record)
        merged = outcome.record
        result.records.append(merged)
        result.conflicts.extend(outcome.conflicts)
        if outcome.action is MergeAction.MERGED:
            result.merged.append(record_id)
        if merged != local_record:
            result.changed.append(record_id)
        if merged.version > remote_record.version:
            result.push_candidates.append(record_id)

    for record_id, remote_record in remote.items():
        if record_id in local:
            continue
        result.records.append(mark_synced(remote_record))
        result.downloaded.append(record_id)
        result.changed.append(record_id)

    return result
