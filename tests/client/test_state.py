"""Tests for the SQLite local record store."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path

import pytest

from ledgersync.client.state import LocalRecordStore
from ledgersync.client.sync.types import LocalPersistFailure
from ledgersync.core.records import Category, Ledger, Transaction, mark_synced, tombstone
from ledgersync.core.types import RecordKind

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)


class TestStoreCreation:
    """Tests for LocalRecordStore initialization."""

    def test_creates_parent_dirs(self, tmp_path: Path) -> None:
        """Should create parent directories."""
        db_path = tmp_path / "subdir" / "nested" / "state.db"
        store = LocalRecordStore(db_path)

        assert db_path.exists()
        assert store.db_path == db_path
        store.close()

    def test_reopens_existing_db(self, tmp_path: Path) -> None:
        """Should reopen existing database with data preserved."""
        db_path = tmp_path / "state.db"

        store1 = LocalRecordStore(db_path)
        store1.put(Ledger(id="L1", version=3, name="Home"))
        store1.set_state("last_sync_at", "2025-01-01T00:00:00+00:00")
        store1.close()

        store2 = LocalRecordStore(db_path)
        ledger = store2.get(RecordKind.LEDGER, "L1")
        assert ledger is not None
        assert ledger.version == 3
        assert store2.get_state("last_sync_at") == "2025-01-01T00:00:00+00:00"
        store2.close()


class TestRecordOperations:
    """Tests for record storage."""

    def test_round_trip_keeps_envelope(self, local_store: LocalRecordStore) -> None:
        tx = mark_synced(
            Transaction(
                id="T1",
                version=2,
                ledger_id="L1",
                amount=Decimal("9.99"),
                created_at=NOW,
                last_modified_by="laptop",
            )
        )
        local_store.put(tx)
        assert local_store.get(RecordKind.TRANSACTION, "T1") == tx

    def test_load_all_sorted_and_includes_tombstones(self, local_store: LocalRecordStore) -> None:
        local_store.save_all(
            RecordKind.CATEGORY,
            [
                Category(id="B"),
                tombstone(Category(id="A"), actor="laptop", now=NOW),
            ],
        )
        records = local_store.load_all(RecordKind.CATEGORY)
        assert [r.id for r in records] == ["A", "B"]
        assert records[0].deleted is True

    def test_load_by_scope(self, local_store: LocalRecordStore) -> None:
        local_store.save_all(
            RecordKind.TRANSACTION,
            [
                Transaction(id="T1", ledger_id="L1"),
                Transaction(id="T2", ledger_id="L2"),
                Transaction(id="T3", ledger_id="L1"),
            ],
        )
        in_l1 = local_store.load_all(RecordKind.TRANSACTION, "L1")
        assert [r.id for r in in_l1] == ["T1", "T3"]
        assert len(local_store.load_all(RecordKind.TRANSACTION)) == 3

    def test_upsert_replaces(self, local_store: LocalRecordStore) -> None:
        local_store.put(Category(id="C1", version=1, name="Food"))
        local_store.put(Category(id="C1", version=2, name="Groceries"))
        assert local_store.count(RecordKind.CATEGORY) == 1
        assert local_store.get(RecordKind.CATEGORY, "C1").name == "Groceries"  # type: ignore[union-attr]

    def test_kinds_are_separate(self, local_store: LocalRecordStore) -> None:
        local_store.put(Ledger(id="same"))
        local_store.put(Category(id="same"))
        assert local_store.count(RecordKind.LEDGER) == 1
        assert local_store.count(RecordKind.CATEGORY) == 1

    def test_count_excluding_deleted(self, local_store: LocalRecordStore) -> None:
        local_store.put(Category(id="A"))
        local_store.put(tombstone(Category(id="B"), actor="x", now=NOW))
        assert local_store.count(RecordKind.CATEGORY) == 2
        assert local_store.count(RecordKind.CATEGORY, include_deleted=False) == 1

    def test_get_missing(self, local_store: LocalRecordStore) -> None:
        assert local_store.get(RecordKind.LEDGER, "nope") is None

    def test_partial_failure_saves_the_rest(self, local_store: LocalRecordStore) -> None:
        with pytest.raises(LocalPersistFailure) as exc_info:
            local_store.save_all(
                RecordKind.CATEGORY,
                [Category(id="ok"), Ledger(id="wrong-kind")],  # type: ignore[list-item]
            )
        assert exc_info.value.record_ids == ["wrong-kind"]
        assert exc_info.value.kind is RecordKind.CATEGORY
        assert local_store.get(RecordKind.CATEGORY, "ok") is not None


class TestSyncState:
    """Tests for key-value sync metadata."""

    def test_missing_key(self, local_store: LocalRecordStore) -> None:
        assert local_store.get_state("nothing") is None

    def test_set_and_overwrite(self, local_store: LocalRecordStore) -> None:
        local_store.set_state("pending_changes", "3")
        local_store.set_state("pending_changes", "0")
        assert local_store.get_state("pending_changes") == "0"
