"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from ledgersync.server.models import Replica

# === Record schemas ===


class RecordUpsertRequest(BaseModel):
    """Request body for writing one record."""

    record: dict[str, Any]


# === Replica schemas ===


class ReplicaResponse(BaseModel):
    """Replica data in responses."""

    id: int
    name: str
    created_at: str
    last_seen: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: str


# === Converters ===


def replica_to_response(replica: Replica) -> ReplicaResponse:
    """Convert Replica to response model."""
    return ReplicaResponse(
        id=replica.id,
        name=replica.name,
        created_at=replica.created_at.isoformat(),
        last_seen=replica.last_seen.isoformat(),
    )
