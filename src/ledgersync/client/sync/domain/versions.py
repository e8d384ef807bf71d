"""Version comparison and pending-change accounting.

Version rules:
- version starts at 1 and grows by one per local mutation
- last_synced_version is the counterpart's version at the last merge
- a record has pending changes while version > last_synced_version
"""

from __future__ import annotations

from collections.abc import Iterable

from ledgersync.core.records import VersionedRecord


def count_pending_changes(records: Iterable[VersionedRecord]) -> int:
    """Count records carrying edits the remote store has not confirmed."""
    return sum(1 for record in records if record.has_local_changes)


def describe_divergence(
    local_version: int,
    remote_version: int,
    has_local_changes: bool = False,
) -> str:
    """Describe how a local copy relates to the remote copy.

    Args:
        local_version: Version of the local copy.
        remote_version: Version of the remote copy.
        has_local_changes: Whether the local copy has unsynced edits.

    Returns:
        Short human-readable status.
    """
    if local_version == remote_version and not has_local_changes:
        return "Up to date"
    if local_version < remote_version and not has_local_changes:
        behind = remote_version - local_version
        return f"Behind by {behind} change{'s' if behind != 1 else ''}"
    if local_version > remote_version:
        ahead = local_version - remote_version
        return f"Ahead by {ahead} change{'s' if ahead != 1 else ''}"
    if local_version < remote_version:
        return "Diverged"
    return "Has local changes"
