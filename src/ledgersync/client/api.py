"""HTTP client for the ledgersync server API.

This module provides:
- HTTPClient: remote store over HTTP (fetch_all, upsert, health_check)
- APIError and subclasses: HTTP-level errors

HTTP errors are translated to the sync error taxonomy at this boundary:
transport failures become NetworkUnavailable, failed reads become
RemoteReadFailure and failed writes become RemoteWriteFailure.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ledgersync.client.sync.types import (
    NetworkUnavailable,
    RemoteReadFailure,
    RemoteWriteFailure,
)
from ledgersync.core.config import ServerConfig
from ledgersync.core.records import MalformedRecordError, VersionedRecord, record_type
from ledgersync.core.types import RecordKind

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(APIError):
    """Authentication failed."""


class NotFoundError(APIError):
    """Resource not found."""


class HTTPClient:
    """HTTP client for the ledgersync server API."""

    def __init__(self, config: ServerConfig) -> None:
        """Initialize the client.

        Args:
            config: Server URL, token and timeout.
        """
        self._config = config
        headers = {}
        if config.token:
            headers["Authorization"] = f"Bearer {config.token}"
        self._client = httpx.Client(
            base_url=config.server_url,
            timeout=config.timeout,
            verify=config.verify_ssl,
            headers=headers,
        )

    @property
    def config(self) -> ServerConfig:
        """Connection settings."""
        return self._config

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> HTTPClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code == 401:
            raise AuthenticationError("Invalid or missing token", 401)
        if response.status_code == 404:
            raise NotFoundError(_detail(response, "Resource not found"), 404)
        if response.status_code >= 400:
            raise APIError(_detail(response, "Unknown error"), response.status_code)
        return response

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise NetworkUnavailable(f"{method} {url}: {e}") from e
        return self._handle_response(response)

    # === Health check ===

    def health_check(self) -> bool:
        """Check if the server is healthy.

        Returns:
            True if server is healthy.
        """
        try:
            response = self._client.get("/health")
            return response.status_code == 200
        except httpx.RequestError:
            return False

    # === Records ===

    def fetch_all(self, kind: RecordKind, scope: str | None = None) -> list[VersionedRecord]:
        """Fetch every record of a kind, tombstones included.

        Args:
            kind: Record kind.
            scope: Optional scope (ledger id for transactions).

        Raises:
            NetworkUnavailable: If the server cannot be reached.
            RemoteReadFailure: On an error response or bad payload.
        """
        params = {"scope": scope} if scope is not None else {}
        try:
            response = self._request("GET", f"/api/records/{kind.value}", params=params)
            cls = record_type(kind)
            return [cls.from_dict(item) for item in response.json()]
        except APIError as e:
            raise RemoteReadFailure(kind, str(e), scope) from e
        except (ValueError, KeyError, TypeError, MalformedRecordError) as e:
            raise RemoteReadFailure(kind, f"invalid payload: {e}", scope) from e

    def upsert(self, kind: RecordKind, record: VersionedRecord) -> None:
        """Write one record (last writer wins).

        Raises:
            NetworkUnavailable: If the server cannot be reached.
            RemoteWriteFailure: On an error response.
        """
        try:
            self._request(
                "PUT",
                f"/api/records/{kind.value}/{record.id}",
                json={"record": record.to_dict()},
            )
        except APIError as e:
            raise RemoteWriteFailure(kind, record.id, str(e)) from e
        logger.debug("Pushed %s %s v%d", kind.value, record.id, record.version)


def _detail(response: httpx.Response, default: str) -> str:
    try:
        detail = response.json().get("detail", default)
    except ValueError:
        return default
    return str(detail)
