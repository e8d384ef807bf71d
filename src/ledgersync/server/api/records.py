"""Record store API routes."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from ledgersync.core.records import MalformedRecordError, VersionedRecord, record_type
from ledgersync.server.api.auth import get_db, replica_token
from ledgersync.server.database import Database
from ledgersync.server.models import Token
from ledgersync.server.schemas import RecordUpsertRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["records"])


def _record_class(kind: str) -> type[VersionedRecord]:
    try:
        return record_type(kind)
    except KeyError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown record kind: {kind}",
        ) from e


@router.get("/records/{kind}", response_model=list[dict[str, Any]])
def list_records(
    kind: str,
    scope: str | None = None,
    db: Database = Depends(get_db),
    _auth: Token = Depends(replica_token),
) -> list[dict[str, Any]]:
    """List every record of a kind, tombstones included."""
    _record_class(kind)
    return db.list_records(kind, scope=scope)


@router.get("/records/{kind}/{record_id}", response_model=dict[str, Any])
def get_record(
    kind: str,
    record_id: str,
    db: Database = Depends(get_db),
    _auth: Token = Depends(replica_token),
) -> dict[str, Any]:
    """Get one record."""
    _record_class(kind)
    payload = db.get_record(kind, record_id)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{kind} not found: {record_id}",
        )
    return payload


@router.put("/records/{kind}/{record_id}", response_model=dict[str, Any])
def upsert_record(
    kind: str,
    record_id: str,
    request: RecordUpsertRequest,
    db: Database = Depends(get_db),
    auth: Token = Depends(replica_token),
) -> dict[str, Any]:
    """Store a record unconditionally (last writer wins)."""
    cls = _record_class(kind)
    try:
        record = cls.from_dict(request.record)
    except (MalformedRecordError, ValueError, TypeError) as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid {kind} record: {e}",
        ) from e
    if record.id != record_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Record id {record.id} does not match path {record_id}",
        )

    stored = db.upsert_record(
        kind,
        record_id,
        record.to_dict(),
        scope=record.scope,
        replica_id=auth.replica_id,
    )
    logger.info("Stored %s %s v%d", kind, record_id, record.version)
    return stored
