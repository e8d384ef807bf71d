"""Local record store for the sync client.

This module provides:
- LocalRecordStore: SQLite-based storage of records and sync metadata

Architecture:
    Records are stored as JSON payloads keyed by (kind, id), with the
    scope, version and tombstone flag duplicated into columns for
    filtering. Tombstones are ordinary rows; nothing is ever deleted.

    Sync metadata (last sync time, pending conflicts, pending-change
    count) lives in a key-value table.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
from collections.abc import Sequence
from pathlib import Path

from ledgersync.client.sync.types import LocalPersistFailure
from ledgersync.core.records import VersionedRecord, record_type
from ledgersync.core.types import RecordKind

logger = logging.getLogger(__name__)


class LocalRecordStore:
    """SQLite-based local store.

    Thread-safe: all access goes through one connection guarded by a lock.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize local store database.

        Args:
            db_path: Path to SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        # Lock for thread-safe database access
        self._lock = threading.RLock()

        self._conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
            isolation_level=None,  # Autocommit mode
        )
        self._conn.row_factory = sqlite3.Row

        # Enable WAL mode for better concurrency
        self._conn.execute("PRAGMA journal_mode=WAL")

        self._create_tables()

    def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS records (
                kind TEXT NOT NULL,
                id TEXT NOT NULL,
                scope TEXT,
                version INTEGER NOT NULL,
                last_synced_version INTEGER NOT NULL DEFAULT 0,
                deleted INTEGER NOT NULL DEFAULT 0,
                payload TEXT NOT NULL,
                saved_at REAL NOT NULL,
                PRIMARY KEY (kind, id)
            );

            CREATE INDEX IF NOT EXISTS idx_records_scope ON records (kind, scope);

            -- Key-value sync state
            CREATE TABLE IF NOT EXISTS sync_state (
                key TEXT PRIMARY KEY,
                value TEXT
            );
        """)

    @property
    def db_path(self) -> Path:
        """Path of the database file."""
        return self._db_path

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # === Record operations ===

    def load_all(self, kind: RecordKind, scope: str | None = None) -> list[VersionedRecord]:
        """Load every record of a kind, tombstones included.

        Args:
            kind: Record kind.
            scope: Only records in this scope (e.g. one ledger's transactions).

        Returns:
            Records ordered by id.
        """
        query = "SELECT payload FROM records WHERE kind = ?"
        params: list[str] = [kind.value]
        if scope is not None:
            query += " AND scope = ?"
            params.append(scope)
        query += " ORDER BY id"

        with self._lock:
            rows = self._conn.execute(query, params).fetchall()
        cls = record_type(kind)
        return [cls.from_dict(json.loads(row["payload"])) for row in rows]

    def get(self, kind: RecordKind, record_id: str) -> VersionedRecord | None:
        """Get one record by id.

        Returns:
            The record if found, None otherwise.
        """
        with self._lock:
            row = self._conn.execute(
                "SELECT payload FROM records WHERE kind = ? AND id = ?",
                (kind.value, record_id),
            ).fetchone()
        if row is None:
            return None
        return record_type(kind).from_dict(json.loads(row["payload"]))

    def save_all(self, kind: RecordKind, records: Sequence[VersionedRecord]) -> None:
        """Upsert records.

        Every record is written independently; one bad record does not
        prevent the others from being saved.

        Raises:
            LocalPersistFailure: Naming the records that were not saved.
        """
        failed: list[str] = []
        last_error = ""
        now = time.time()

        with self._lock:
            for record in records:
                try:
                    if record.KIND is not kind:
                        raise ValueError(f"expected {kind.value}, got {record.KIND.value}")
                    payload = json.dumps(record.to_dict())
                    self._conn.execute(
                        """
                        INSERT OR REPLACE INTO records (
                            kind, id, scope, version, last_synced_version, deleted, payload, saved_at
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            kind.value,
                            record.id,
                            record.scope,
                            record.version,
                            record.last_synced_version,
                            int(record.deleted),
                            payload,
                            now,
                        ),
                    )
                except (sqlite3.Error, TypeError, ValueError) as e:
                    logger.error("Failed to save %s %s: %s", kind.value, record.id, e)
                    failed.append(record.id)
                    last_error = str(e)

        if failed:
            raise LocalPersistFailure(kind, failed, last_error)

    def put(self, record: VersionedRecord) -> None:
        """Save a single record (used for local edits)."""
        self.save_all(record.KIND, [record])

    def count(self, kind: RecordKind, include_deleted: bool = True) -> int:
        """Count records of a kind."""
        query = "SELECT COUNT(*) FROM records WHERE kind = ?"
        if not include_deleted:
            query += " AND deleted = 0"
        with self._lock:
            row = self._conn.execute(query, (kind.value,)).fetchone()
        return int(row[0])

    # === Sync state ===

    def get_state(self, key: str) -> str | None:
        """Get a sync state value."""
        with self._lock:
            cursor = self._conn.execute(
                "SELECT value FROM sync_state WHERE key = ?",
                (key,),
            )
            row = cursor.fetchone()
        return row["value"] if row else None

    def set_state(self, key: str, value: str) -> None:
        """Set a sync state value."""
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO sync_state (key, value) VALUES (?, ?)",
                (key, value),
            )
