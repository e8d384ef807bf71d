"""Conflict descriptors produced by the three-way merge.

A conflict names one field of one record where both replicas diverged
from the merge-base. The merge still picks a value (version precedence)
so the conflict is metadata layered on top of a usable record; a human
or the "resolve all" default turns it into a final decision later.

Deletion conflicts use field ``deleted`` with the sentinel values
DELETED (the side that tombstoned the record) and EDITED (the side that
kept editing it).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from ledgersync.core.records import decode_values, encode_values, record_type
from ledgersync.core.types import RecordKind

DELETED = "DELETED"
EDITED = "EDITED"
DELETION_FIELD = "deleted"


def conflict_key(record_id: str, field_name: str) -> str:
    """Key used by resolution maps and the pending-conflict store."""
    return f"{record_id}-{field_name}"


@dataclass(frozen=True)
class FieldConflict:
    """One diverged field.

    Attributes:
        kind: Record kind.
        record_id: Id of the record.
        field: Mergeable field name, or "deleted" for delete-vs-edit.
        local_value: Value on the local side (DELETED/EDITED for deletions).
        remote_value: Value on the remote side (DELETED/EDITED for deletions).
        local_version: Local record version at merge time.
        remote_version: Remote record version at merge time.
        base_value: Merge-base value of the field, when known.
        restore_values: For deletion conflicts, the edited side's values,
            applied if the edit is kept.
    """

    kind: RecordKind
    record_id: str
    field: str
    local_value: Any
    remote_value: Any
    local_version: int
    remote_version: int
    base_value: Any = None
    restore_values: Mapping[str, Any] | None = None

    @property
    def key(self) -> str:
        """Resolution key ``"{id}-{field}"``."""
        return conflict_key(self.record_id, self.field)

    @property
    def is_deletion(self) -> bool:
        """True for a delete-vs-edit conflict."""
        return self.field == DELETION_FIELD

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        cls = record_type(self.kind)
        if self.is_deletion:
            encode = str
        else:
            encode = cls.field_spec(self.field).encode
        return {
            "kind": self.kind.value,
            "record_id": self.record_id,
            "field": self.field,
            "local_value": _apply_optional(encode, self.local_value),
            "remote_value": _apply_optional(encode, self.remote_value),
            "local_version": self.local_version,
            "remote_version": self.remote_version,
            "base_value": None if self.is_deletion else _apply_optional(encode, self.base_value),
            "restore_values": (
                encode_values(cls, self.restore_values) if self.restore_values is not None else None
            ),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FieldConflict:
        """Create from a dictionary produced by ``to_dict``."""
        kind = RecordKind(data["kind"])
        rtype = record_type(kind)
        field_name = data["field"]
        decode = (lambda v: v) if field_name == DELETION_FIELD else rtype.field_spec(field_name).decode
        restore = data.get("restore_values")
        return cls(
            kind=kind,
            record_id=data["record_id"],
            field=field_name,
            local_value=_apply_optional(decode, data.get("local_value")),
            remote_value=_apply_optional(decode, data.get("remote_value")),
            local_version=int(data["local_version"]),
            remote_version=int(data["remote_version"]),
            base_value=_apply_optional(decode, data.get("base_value")),
            restore_values=decode_values(rtype, restore) if restore is not None else None,
        )


def _apply_optional(codec: Any, value: Any) -> Any:
    return None if value is None else codec(value)


def format_conflict_message(conflict: FieldConflict) -> str:
    """Human-readable one-liner for a conflict."""
    if conflict.is_deletion:
        if conflict.local_value == DELETED:
            return (
                f"{conflict.kind.value.capitalize()} {conflict.record_id} was deleted here "
                f"but edited on another device"
            )
        return (
            f"{conflict.kind.value.capitalize()} {conflict.record_id} was edited here "
            f"but deleted on another device"
        )
    return (
        f"{conflict.kind.value.capitalize()} {conflict.record_id}: '{conflict.field}' is "
        f"{conflict.local_value!r} here (v{conflict.local_version}) and "
        f"{conflict.remote_value!r} remotely (v{conflict.remote_version})"
    )


def group_conflicts(
    conflicts: Iterable[FieldConflict],
) -> dict[tuple[RecordKind, str], list[FieldConflict]]:
    """Group conflicts per record, preserving first-seen order."""
    grouped: dict[tuple[RecordKind, str], list[FieldConflict]] = {}
    for conflict in conflicts:
        grouped.setdefault((conflict.kind, conflict.record_id), []).append(conflict)
    return grouped


def merge_pending(
    pending: Iterable[FieldConflict], new: Iterable[FieldConflict]
) -> list[FieldConflict]:
    """Combine stored conflicts with freshly detected ones.

    A new conflict replaces a stored one with the same key.
    """
    combined: dict[str, FieldConflict] = {c.key: c for c in pending}
    for conflict in new:
        combined[conflict.key] = conflict
    return list(combined.values())
