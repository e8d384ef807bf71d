"""Domain modules for sync business rules.

This package centralizes the pure merge logic of the sync system:
- merge: pairwise three-way merge of one record
- reconcile: merge of a whole local/remote set of one kind
- resolution: applying decisions to field conflicts
- conflicts: conflict descriptors and helpers
- versions: pending-change accounting and status messages

Architecture:
    domain/ contains pure business logic without external dependencies.
    I/O (stores, network, metadata) stays in the orchestrator.
"""

from ledgersync.client.sync.domain.conflicts import (
    DELETED,
    DELETION_FIELD,
    EDITED,
    FieldConflict,
    conflict_key,
    format_conflict_message,
    group_conflicts,
    merge_pending,
)
from ledgersync.client.sync.domain.merge import MergeAction, MergeOutcome, merge_records
from ledgersync.client.sync.domain.reconcile import ReconcileResult, reconcile
from ledgersync.client.sync.domain.resolution import (
    USE_LOCAL,
    USE_REMOTE,
    AppliedResolution,
    ResolutionOutcome,
    apply_resolutions,
)
from ledgersync.client.sync.domain.versions import count_pending_changes, describe_divergence

__all__ = [
    # conflicts
    "DELETED",
    "EDITED",
    "DELETION_FIELD",
    "FieldConflict",
    "conflict_key",
    "format_conflict_message",
    "group_conflicts",
    "merge_pending",
    # merge
    "MergeAction",
    "MergeOutcome",
    "merge_records",
    # reconcile
    "ReconcileResult",
    "reconcile",
    # resolution
    "USE_LOCAL",
    "USE_REMOTE",
    "AppliedResolution",
    "ResolutionOutcome",
    "apply_resolutions",
    # versions
    "count_pending_changes",
    "describe_divergence",
]
