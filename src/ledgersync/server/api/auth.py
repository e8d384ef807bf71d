"""Request dependencies shared by the record and replica routes.

Every route under ``/api`` needs the server database and a replica
identified by its bearer token. Tokens are stored hashed, so the raw
value only ever appears in the Authorization header.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ledgersync.server.database import Database
from ledgersync.server.models import Token

bearer_scheme = HTTPBearer(auto_error=False)


def get_db(request: Request) -> Database:
    """Database attached to the app by ``create_app``."""
    db: Database = request.app.state.db
    return db


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def replica_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Database = Depends(get_db),
) -> Token:
    """Resolve the calling replica from its bearer token.

    Also stamps the replica's last_seen, reported by GET /api/replicas.

    Raises:
        HTTPException: 401 when the header is absent or the token is
            unknown or revoked.
    """
    if credentials is None:
        raise _unauthorized("Missing replica token")
    token = db.validate_token(credentials.credentials)
    if token is None:
        raise _unauthorized("Unknown or revoked replica token")
    db.update_replica_last_seen(token.replica_id)
    return token
