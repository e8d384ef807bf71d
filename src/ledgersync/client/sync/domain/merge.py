"""Pairwise three-way merge of one local and one remote record.

Merge-base:
    ``base_version = max(local.last_synced_version, remote.last_synced_version)``.
    A side "changed" when its version is above the merge-base.

Decision table (checked top to bottom):
    | Local     | Remote    | Changed          | Result                            |
    |-----------|-----------|------------------|-----------------------------------|
    | tombstone | tombstone | neither          | unchanged                         |
    | tombstone | tombstone | one side         | fast-forward to that tombstone    |
    | tombstone | tombstone | both             | keep local tombstone, max+1       |
    | tombstone | live      | remote changed   | conflict on "deleted", keep       |
    |           |           |                  | tombstone, max+1                  |
    | tombstone | live      | remote unchanged | fast-forward to the tombstone     |
    | live      | live      | neither          | unchanged                         |
    | live      | live      | one side         | fast-forward to that side         |
    | live      | live      | both             | field pass, max+1                 |

The live/tombstone case is symmetric when the remote holds the tombstone.

Field pass: equal values carry through. When a merge-base snapshot is
available and only one side moved away from it, that side's value is
taken. Otherwise the field is a conflict and the side with the strictly
higher version wins (ties go to local).

Every result carries ``last_synced_version = remote.version`` and
``base = remote's mergeable values``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Any, TypeVar

from ledgersync.client.sync.domain.conflicts import (
    DELETED,
    DELETION_FIELD,
    EDITED,
    FieldConflict,
)
from ledgersync.core.equality import values_equal
from ledgersync.core.records import (
    MalformedRecordError,
    VersionedRecord,
    mergeable_values,
)

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=VersionedRecord)


class MergeAction(Enum):
    """What the merge did with the pair."""

    UNCHANGED = auto()  # Neither side moved since the merge-base
    FAST_FORWARD = auto()  # Adopted the only side that moved
    MERGED = auto()  # Merge commit, version = max + 1


@dataclass
class MergeOutcome:
    """Result of merging one pair of records."""

    record: VersionedRecord
    action: MergeAction
    conflicts: list[FieldConflict] = field(default_factory=list)


def merge_records(local: R, remote: R) -> MergeOutcome:
    """Merge a local and a remote copy of the same record.

    Pure function: inputs are not modified.

    Args:
        local: This replica's copy.
        remote: The remote store's copy.

    Returns:
        Merged record, what was done, and any field conflicts.

    Raises:
        MalformedRecordError: If the pair does not describe the same record.
    """
    _validate_pair(local, remote)

    base_version = max(local.last_synced_version or 0, remote.last_synced_version or 0)
    local_changed = local.version > base_version
    remote_changed = remote.version > base_version

    if local.deleted or remote.deleted:
        return _merge_deletion(local, remote, local_changed, remote_changed)

    if not local_changed and not remote_changed:
        return _unchanged(local, remote)
    if local_changed and not remote_changed:
        return MergeOutcome(_settle(local, remote), MergeAction.FAST_FORWARD)
    if remote_changed and not local_changed:
        return MergeOutcome(_settle(remote, remote), MergeAction.FAST_FORWARD)

    return _merge_fields(local, remote)


def _validate_pair(local: VersionedRecord, remote: VersionedRecord) -> None:
    for side, record in (("local", local), ("remote", remote)):
        if not isinstance(record, VersionedRecord):
            raise MalformedRecordError(f"{side} is not a versioned record: {record!r}")
        if not record.id:
            raise MalformedRecordError(f"{side} record has no id")
        if not isinstance(record.version, int) or record.version < 1:
            raise MalformedRecordError(
                f"{side} record {record.id} has invalid version {record.version!r}"
            )
    if type(local) is not type(remote):
        raise MalformedRecordError(
            f"Cannot merge {local.KIND.value} {local.id} with {remote.KIND.value} {remote.id}"
        )
    if local.id != remote.id:
        raise MalformedRecordError(f"Cannot merge records {local.id} and {remote.id}")


def _settle(record: R, remote: VersionedRecord) -> R:
    """Stamp the merge-base: the counterpart is now ``remote``."""
    return replace(
        record,
        last_synced_version=remote.version,
        base=mergeable_values(remote),
    )


def _unchanged(local: R, remote: R) -> MergeOutcome:
    # A remote copy that is strictly newer while neither side moved only
    # happens when metadata was lost; keep last_synced_version <= version.
    chosen = local if local.version >= remote.version else remote
    return MergeOutcome(_settle(chosen, remote), MergeAction.UNCHANGED)


def _commit(record: R, local: VersionedRecord, remote: VersionedRecord) -> R:
    return _settle(
        replace(record, version=max(local.version, remote.version) + 1),
        remote,
    )


def _merge_deletion(
    local: R, remote: R, local_changed: bool, remote_changed: bool
) -> MergeOutcome:
    if local.deleted and remote.deleted:
        if local_changed and remote_changed:
            merged = replace(local, deleted_at=local.deleted_at or remote.deleted_at)
            return MergeOutcome(_commit(merged, local, remote), MergeAction.MERGED)
        if local_changed:
            return MergeOutcome(_settle(local, remote), MergeAction.FAST_FORWARD)
        if remote_changed:
            return MergeOutcome(_settle(remote, remote), MergeAction.FAST_FORWARD)
        return _unchanged(local, remote)

    tomb, live = (local, remote) if local.deleted else (remote, local)
    tomb_changed = local_changed if tomb is local else remote_changed
    live_changed = remote_changed if tomb is local else local_changed

    if live_changed:
        # Edits the tombstone side never saw
        conflict = FieldConflict(
            kind=local.KIND,
            record_id=local.id,
            field=DELETION_FIELD,
            local_value=DELETED if tomb is local else EDITED,
            remote_value=EDITED if tomb is local else DELETED,
            local_version=local.version,
            remote_version=remote.version,
            restore_values=_restore_values(live),
        )
        logger.info(
            "Delete/edit conflict on %s %s (local v%d, remote v%d)",
            local.KIND.value,
            local.id,
            local.version,
            remote.version,
        )
        return MergeOutcome(_commit(tomb, local, remote), MergeAction.MERGED, [conflict])

    if not tomb_changed:
        return _unchanged(local, remote)
    return MergeOutcome(_settle(tomb, remote), MergeAction.FAST_FORWARD)


def _restore_values(record: VersionedRecord) -> dict[str, Any]:
    values = mergeable_values(record)
    values.pop(DELETION_FIELD, None)
    return values


def _merge_base(local: VersionedRecord, remote: VersionedRecord) -> Mapping[str, Any] | None:
    """Pick the merge-base snapshot: the older common ancestor wins."""
    candidates = [r for r in (local, remote) if r.base is not None]
    if not candidates:
        return None
    # min() keeps the first of equal keys, so ties go to local
    return min(candidates, key=lambda r: r.last_synced_version).base


def _merge_fields(local: R, remote: R) -> MergeOutcome:
    base = _merge_base(local, remote)
    local_wins = local.version >= remote.version
    merged_values: dict[str, Any] = {}
    conflicts: list[FieldConflict] = []

    for spec in local.FIELDS:
        local_value = getattr(local, spec.name)
        remote_value = getattr(remote, spec.name)
        if values_equal(local_value, remote_value, spec.kind):
            merged_values[spec.name] = local_value
            continue

        if base is not None and spec.name in base:
            base_value = base[spec.name]
            if values_equal(local_value, base_value, spec.kind):
                merged_values[spec.name] = remote_value
                continue
            if values_equal(remote_value, base_value, spec.kind):
                merged_values[spec.name] = local_value
                continue
        else:
            base_value = None

        conflicts.append(
            FieldConflict(
                kind=local.KIND,
                record_id=local.id,
                field=spec.name,
                local_value=local_value,
                remote_value=remote_value,
                local_version=local.version,
                remote_version=remote.version,
                base_value=base_value,
            )
        )
        merged_values[spec.name] = local_value if local_wins else remote_value

    if conflicts:
        logger.info(
            "%d field conflict(s) on %s %s: %s",
            len(conflicts),
            local.KIND.value,
            local.id,
            ", ".join(c.field for c in conflicts),
        )

    merged = replace(local, **merged_values)
    return MergeOutcome(_commit(merged, local, remote), MergeAction.MERGED, conflicts)
