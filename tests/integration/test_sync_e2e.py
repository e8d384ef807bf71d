"""End-to-end sync tests: replicas syncing through a real server over HTTP."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from ledgersync.core.records import Category, Ledger, Transaction, mutate, tombstone
from ledgersync.core.types import RecordKind, SyncState

if TYPE_CHECKING:
    from tests.integration.conftest import LiveServer, Replica

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

MakeReplica = Callable[[str], "Replica"]


def edit(replica: Replica, kind: RecordKind, record_id: str, **changes: object) -> None:
    """Apply a local edit on a replica's store."""
    record = replica.store.get(kind, record_id)
    assert record is not None
    replica.store.put(mutate(record, actor=replica.name, now=NOW, **changes))


class TestEndToEnd:
    """Full passes between two replicas."""

    def test_records_travel_between_replicas(
        self, make_replica: MakeReplica, test_server: LiveServer
    ) -> None:
        laptop, phone = make_replica("laptop"), make_replica("phone")
        laptop.store.put(Ledger.create(actor="laptop", now=NOW, id="L1", name="Home"))
        laptop.store.put(
            Transaction.create(
                actor="laptop", now=NOW, id="T1", ledger_id="L1", amount=Decimal("42.10")
            )
        )
        laptop.store.put(Category.create(actor="laptop", now=NOW, id="C1", name="Food"))

        assert laptop.orchestrator.sync_all().success
        assert test_server.db.count_records() == 3

        result = phone.orchestrator.sync_all()

        assert result.success
        assert result.items_synced == 3
        tx = phone.store.get(RecordKind.TRANSACTION, "T1")
        assert tx is not None
        assert tx.amount == Decimal("42.10")  # type: ignore[attr-defined]
        assert not tx.has_local_changes

    def test_disjoint_edits_merge(self, make_replica: MakeReplica) -> None:
        laptop, phone = make_replica("laptop"), make_replica("phone")
        laptop.store.put(Ledger.create(actor="laptop", now=NOW, id="L1", name="Home"))
        laptop.orchestrator.sync_all()
        phone.orchestrator.sync_all()

        edit(laptop, RecordKind.LEDGER, "L1", name="House")
        edit(phone, RecordKind.LEDGER, "L1", description="Shared bills")
        laptop.orchestrator.sync_all()
        result = phone.orchestrator.sync_all()
        laptop.orchestrator.sync_all()

        assert result.conflicts == []
        for replica in (laptop, phone):
            ledger = replica.store.get(RecordKind.LEDGER, "L1")
            assert ledger.name == "House"  # type: ignore[union-attr]
            assert ledger.description == "Shared bills"  # type: ignore[union-attr]

    def test_conflict_resolution_round_trip(self, make_replica: MakeReplica) -> None:
        laptop, phone = make_replica("laptop"), make_replica("phone")
        laptop.store.put(Category.create(actor="laptop", now=NOW, id="C1", name="Food"))
        laptop.orchestrator.sync_all()
        phone.orchestrator.sync_all()

        edit(laptop, RecordKind.CATEGORY, "C1", name="Groceries")
        edit(phone, RecordKind.CATEGORY, "C1", name="Eating out")
        laptop.orchestrator.sync_all()
        result = phone.orchestrator.sync_all()

        assert [c.key for c in result.conflicts] == ["C1-name"]
        assert phone.orchestrator.state is SyncState.CONFLICTS_PENDING

        phone.orchestrator.resolve_conflicts({"C1-name": "use-remote"})
        phone.orchestrator.sync_all()
        laptop.orchestrator.sync_all()

        for replica in (laptop, phone):
            assert replica.store.get(RecordKind.CATEGORY, "C1").name == "Groceries"  # type: ignore[union-attr]
        assert phone.orchestrator.pending_conflicts() == []

    def test_deletion_propagates(self, make_replica: MakeReplica) -> None:
        laptop, phone = make_replica("laptop"), make_replica("phone")
        laptop.store.put(Category.create(actor="laptop", now=NOW, id="C1", name="Food"))
        laptop.orchestrator.sync_all()
        phone.orchestrator.sync_all()

        record = laptop.store.get(RecordKind.CATEGORY, "C1")
        laptop.store.put(tombstone(record, actor="laptop", now=NOW))  # type: ignore[type-var]
        laptop.orchestrator.sync_all()
        phone.orchestrator.sync_all()

        deleted = phone.store.get(RecordKind.CATEGORY, "C1")
        assert deleted is not None
        assert deleted.deleted is True

    def test_server_down_is_offline(self, make_replica: MakeReplica) -> None:
        laptop = make_replica("laptop")
        laptop.network.set_online(False)
        result = laptop.orchestrator.sync_all()
        assert result.success is False
        assert laptop.network.check_now() is True
