"""Replica API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ledgersync.server.api.auth import get_db, replica_token
from ledgersync.server.database import Database
from ledgersync.server.models import Token
from ledgersync.server.schemas import ReplicaResponse, replica_to_response

router = APIRouter(prefix="/api", tags=["replicas"])


@router.get("/replicas", response_model=list[ReplicaResponse])
def list_replicas(
    db: Database = Depends(get_db),
    _auth: Token = Depends(replica_token),
) -> list[ReplicaResponse]:
    """List registered replicas."""
    return [replica_to_response(r) for r in db.list_replicas()]
