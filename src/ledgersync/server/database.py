"""Server database using SQLAlchemy with SQLite.

This module provides:
- Replica registration and token-based authentication
- Storage of the remote copy of every record (last writer wins)
"""

from __future__ import annotations

import hashlib
import json
import secrets
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session

from ledgersync.server.models import Base, Replica, StoredRecord, Token

if TYPE_CHECKING:
    from sqlalchemy import Engine

TOKEN_PREFIX = "ls_"


def hash_token(token: str) -> str:
    """Hash a token using SHA-256.

    Args:
        token: Raw token string.

    Returns:
        Hex-encoded SHA-256 hash.
    """
    return hashlib.sha256(token.encode()).hexdigest()


class Database:
    """SQLAlchemy database for the remote record store.

    Uses SQLite with WAL mode for better concurrency with multiple readers.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the database.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        # Create engine with check_same_thread=False for multi-threaded access
        self._engine: Engine = create_engine(
            f"sqlite:///{self._db_path}",
            connect_args={"check_same_thread": False},
            echo=False,
        )

        # Enable WAL mode
        with self._engine.connect() as conn:
            conn.exec_driver_sql("PRAGMA journal_mode=WAL")
            conn.exec_driver_sql("PRAGMA foreign_keys=ON")

        # Create tables if they don't exist
        Base.metadata.create_all(self._engine)

    @property
    def db_path(self) -> Path:
        """Path of the database file."""
        return self._db_path

    def close(self) -> None:
        """Close the database connection."""
        self._engine.dispose()

    def _session(self) -> Session:
        """Create a new database session."""
        return Session(self._engine)

    # === Replica operations ===

    def create_replica(self, name: str) -> Replica:
        """Register a new replica.

        Args:
            name: Unique replica name.

        Returns:
            Created Replica object.

        Raises:
            IntegrityError: If name already exists.
        """
        with self._session() as session:
            replica = Replica(name=name)
            session.add(replica)
            session.commit()
            session.refresh(replica)
            # Expunge to detach from session
            session.expunge(replica)
            return replica

    def get_replica_by_name(self, name: str) -> Replica | None:
        """Get a replica by name."""
        with self._session() as session:
            replica = session.execute(
                select(Replica).where(Replica.name == name)
            ).scalar_one_or_none()
            if replica:
                session.expunge(replica)
            return replica

    def list_replicas(self) -> list[Replica]:
        """List all registered replicas."""
        with self._session() as session:
            replicas = list(session.execute(select(Replica).order_by(Replica.name)).scalars())
            for replica in replicas:
                session.expunge(replica)
            return replicas

    def update_replica_last_seen(self, replica_id: int) -> None:
        """Update replica's last_seen timestamp."""
        with self._session() as session:
            replica = session.get(Replica, replica_id)
            if replica:
                replica.last_seen = datetime.now(UTC)
                session.commit()

    # === Token operations ===

    def create_token(self, replica_id: int) -> tuple[str, Token]:
        """Create a new authentication token.

        Args:
            replica_id: Replica to associate with the token.

        Returns:
            Tuple of (raw_token, Token object).
        """
        raw_token = TOKEN_PREFIX + secrets.token_urlsafe(32)
        with self._session() as session:
            token = Token(replica_id=replica_id, token_hash=hash_token(raw_token))
            session.add(token)
            session.commit()
            session.refresh(token)
            session.expunge(token)
            return raw_token, token

    def validate_token(self, raw_token: str) -> Token | None:
        """Validate a token and return it if valid.

        Args:
            raw_token: Raw token string.

        Returns:
            Token if valid, None otherwise.
        """
        token_hash = hash_token(raw_token)
        with self._session() as session:
            stmt = select(Token).where(Token.token_hash == token_hash, Token.revoked == False)  # noqa: E712
            token = session.execute(stmt).scalar_one_or_none()
            if token is None:
                return None
            session.expunge(token)
            return token

    def revoke_token(self, token_id: int) -> None:
        """Revoke a token."""
        with self._session() as session:
            token = session.get(Token, token_id)
            if token:
                token.revoked = True
                session.commit()

    # === Record operations ===

    def list_records(self, kind: str, scope: str | None = None) -> list[dict[str, Any]]:
        """List the stored payloads of one kind, tombstones included.

        Args:
            kind: Record kind.
            scope: Optional scope filter.

        Returns:
            Record payloads ordered by id.
        """
        with self._session() as session:
            stmt = select(StoredRecord).where(StoredRecord.kind == kind)
            if scope is not None:
                stmt = stmt.where(StoredRecord.scope == scope)
            stmt = stmt.order_by(StoredRecord.record_id)
            return [json.loads(row.payload) for row in session.execute(stmt).scalars()]

    def get_record(self, kind: str, record_id: str) -> dict[str, Any] | None:
        """Get one stored payload."""
        with self._session() as session:
            row = session.get(StoredRecord, (kind, record_id))
            return json.loads(row.payload) if row else None

    def upsert_record(
        self,
        kind: str,
        record_id: str,
        payload: dict[str, Any],
        scope: str | None = None,
        replica_id: int | None = None,
    ) -> dict[str, Any]:
        """Store a record, replacing whatever was there.

        Writes are unconditional: the last writer wins.

        Args:
            kind: Record kind.
            record_id: Record id.
            payload: Full record dictionary.
            scope: Scope the record belongs to.
            replica_id: Replica that wrote it.

        Returns:
            The stored payload.
        """
        now = datetime.now(UTC)
        with self._session() as session:
            row = session.get(StoredRecord, (kind, record_id))
            if row is None:
                row = StoredRecord(kind=kind, record_id=record_id)
                session.add(row)
            row.scope = scope
            row.version = int(payload["version"])
            row.deleted = bool(payload.get("deleted", False))
            row.payload = json.dumps(payload)
            row.updated_at = now
            row.updated_by = replica_id
            session.commit()
        return payload

    def count_records(self, kind: str | None = None) -> int:
        """Count stored records, optionally of one kind."""
        with self._session() as session:
            stmt = select(func.count()).select_from(StoredRecord)
            if kind is not None:
                stmt = stmt.where(StoredRecord.kind == kind)
            return session.execute(stmt).scalar_one()
