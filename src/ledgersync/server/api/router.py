"""Top-level router: the unauthenticated health probe plus the /api routes."""

from __future__ import annotations

from fastapi import APIRouter

from ledgersync.server.api import records, replicas
from ledgersync.server.schemas import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse, tags=["health"])
def health() -> HealthResponse:
    """Liveness probe polled by each replica's network monitor."""
    return HealthResponse(status="ok")


for api in (replicas, records):
    router.include_router(api.router)
