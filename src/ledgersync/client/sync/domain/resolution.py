"""Applying decisions to unresolved field conflicts.

A resolution map is keyed by ``"{record_id}-{field}"`` and holds one of:
- ``"use-local"``: keep the value recorded for the local side
- ``"use-remote"``: keep the value recorded for the remote side
- any other value: an explicit replacement value

Deletion conflicts accept the DELETED/EDITED sentinels (directly or via
use-local/use-remote). Every applied decision is a local mutation and
bumps the record version by exactly one.

When ``default_unresolved`` is set ("resolve all"), conflicts without a
decision resolve to the remote side and are reported as defaulted.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ledgersync.client.sync.domain.conflicts import DELETED, EDITED, FieldConflict
from ledgersync.core.records import VersionedRecord, mutate

logger = logging.getLogger(__name__)

USE_LOCAL = "use-local"
USE_REMOTE = "use-remote"
DEFAULT_CHOICE = USE_REMOTE


@dataclass(frozen=True)
class AppliedResolution:
    """One decision that was applied.

    Attributes:
        conflict: The conflict that was settled.
        choice: The raw decision (use-local, use-remote or a value).
        value: The value written to the record.
        defaulted: True when the default policy chose, not the user.
    """

    conflict: FieldConflict
    choice: Any
    value: Any
    defaulted: bool = False


@dataclass
class ResolutionOutcome:
    """Result of applying a resolution map."""

    records: list[VersionedRecord] = field(default_factory=list)
    applied: list[AppliedResolution] = field(default_factory=list)
    unresolved: list[FieldConflict] = field(default_factory=list)

    @property
    def defaulted(self) -> list[AppliedResolution]:
        """Decisions taken by the default policy."""
        return [a for a in self.applied if a.defaulted]

    @property
    def chosen(self) -> list[AppliedResolution]:
        """Decisions supplied by the caller."""
        return [a for a in self.applied if not a.defaulted]

    @property
    def changed_ids(self) -> list[str]:
        """Ids of records touched by at least one decision."""
        seen: dict[str, None] = {}
        for applied in self.applied:
            seen.setdefault(applied.conflict.record_id, None)
        return list(seen)


def chosen_value(conflict: FieldConflict, choice: Any) -> Any:
    """Translate a decision into the value to write."""
    if choice == USE_LOCAL:
        return conflict.local_value
    if choice == USE_REMOTE:
        return conflict.remote_value
    return choice


def apply_resolutions(
    records: Sequence[VersionedRecord],
    conflicts: Iterable[FieldConflict],
    resolutions: Mapping[str, Any],
    *,
    actor: str,
    now: datetime,
    default_unresolved: bool = False,
) -> ResolutionOutcome:
    """Apply decisions to the records their conflicts belong to.

    Args:
        records: Current records (any kinds mixed).
        conflicts: Conflicts to settle.
        resolutions: Decisions keyed by conflict key.
        actor: Replica applying the decisions.
        now: Time of the decisions (used as deleted_at for deletions).
        default_unresolved: Resolve undecided conflicts to the remote side.

    Returns:
        ResolutionOutcome with updated records in input order.

    Raises:
        ValueError: If a deletion conflict gets something other than
            DELETED/EDITED, or a choice names an unknown field.
    """
    by_key: dict[tuple[str, str], VersionedRecord] = {(r.KIND.value, r.id): r for r in records}
    order = [(r.KIND.value, r.id) for r in records]
    outcome = ResolutionOutcome()

    for conflict in conflicts:
        defaulted = False
        if conflict.key in resolutions:
            choice = resolutions[conflict.key]
        elif default_unresolved:
            choice = DEFAULT_CHOICE
            defaulted = True
        else:
            outcome.unresolved.append(conflict)
            continue

        key = (conflict.kind.value, conflict.record_id)
        record = by_key.get(key)
        if record is None:
            logger.warning(
                "No %s %s to resolve, keeping the conflict", conflict.kind.value, conflict.record_id
            )
            outcome.unresolved.append(conflict)
            continue

        value = chosen_value(conflict, choice)
        if conflict.is_deletion:
            by_key[key] = _resolve_deletion(record, conflict, value, actor=actor, now=now)
        else:
            by_key[key] = mutate(record, actor=actor, now=now, **{conflict.field: value})

        outcome.applied.append(
            AppliedResolution(conflict=conflict, choice=choice, value=value, defaulted=defaulted)
        )
        logger.info(
            "Resolved %s %s.%s -> %r%s",
            conflict.kind.value,
            conflict.record_id,
            conflict.field,
            value,
            " (default)" if defaulted else "",
        )

    outcome.records = [by_key[k] for k in order]
    return outcome


def _resolve_deletion(
    record: VersionedRecord,
    conflict: FieldConflict,
    value: Any,
    *,
    actor: str,
    now: datetime,
) -> VersionedRecord:
    if value == DELETED:
        return mutate(record, actor=actor, now=now, deleted=True, deleted_at=now)
    if value == EDITED:
        restored = dict(conflict.restore_values or {})
        return mutate(record, actor=actor, now=now, deleted=False, deleted_at=None, **restored)
    raise ValueError(
        f"Deletion conflict {conflict.key} must resolve to {DELETED} or {EDITED}, got {value!r}"
    )
