"""Tests for FastAPI server endpoints."""

from collections.abc import Generator
from decimal import Decimal
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from ledgersync.core.records import Category, Ledger, Transaction
from ledgersync.server.app import create_app
from ledgersync.server.database import Database


@pytest.fixture
def db(tmp_path: Path) -> Generator[Database, None, None]:
    """Create a test database."""
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


@pytest.fixture
def client(db: Database) -> TestClient:
    """Create a test client with the app."""
    app = create_app(db)
    return TestClient(app)


@pytest.fixture
def auth_headers(db: Database) -> dict[str, str]:
    """Create auth headers with a valid token."""
    replica = db.create_replica("test-replica")
    raw_token, _ = db.create_token(replica.id)
    return {"Authorization": f"Bearer {raw_token}"}


class TestHealthEndpoint:
    """Tests for health check endpoint."""

    def test_health_check(self, client: TestClient) -> None:
        """Health endpoint should return OK."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestAuthentication:
    """Tests for bearer token authentication."""

    def test_missing_token(self, client: TestClient) -> None:
        response = client.get("/api/records/ledger")
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_valid_token_marks_replica_seen(
        self, client: TestClient, db: Database, auth_headers: dict[str, str]
    ) -> None:
        before = db.list_replicas()[0].last_seen
        response = client.get("/api/records/ledger", headers=auth_headers)
        assert response.status_code == 200
        assert db.list_replicas()[0].last_seen >= before

    def test_invalid_token(self, client: TestClient) -> None:
        response = client.get(
            "/api/records/ledger", headers={"Authorization": "Bearer ls_bogus"}
        )
        assert response.status_code == 401

    def test_revoked_token(self, client: TestClient, db: Database) -> None:
        replica = db.create_replica("revoked")
        raw_token, token = db.create_token(replica.id)
        db.revoke_token(token.id)
        response = client.get(
            "/api/records/ledger", headers={"Authorization": f"Bearer {raw_token}"}
        )
        assert response.status_code == 401


class TestReplicaEndpoints:
    """Tests for replica endpoints."""

    def test_list_replicas(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        response = client.get("/api/replicas", headers=auth_headers)
        assert response.status_code == 200
        assert [r["name"] for r in response.json()] == ["test-replica"]


class TestRecordEndpoints:
    """Tests for record endpoints."""

    def test_empty_list(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        response = client.get("/api/records/category", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == []

    def test_put_then_get(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        record = Category(id="C1", version=2, name="Food")
        response = client.put(
            "/api/records/category/C1", json={"record": record.to_dict()}, headers=auth_headers
        )
        assert response.status_code == 200

        response = client.get("/api/records/category/C1", headers=auth_headers)
        assert response.status_code == 200
        assert Category.from_dict(response.json()) == record

    def test_last_writer_wins(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        newer = Category(id="C1", version=5, name="New")
        older = Category(id="C1", version=3, name="Old")
        for record in (newer, older):
            client.put(
                "/api/records/category/C1", json={"record": record.to_dict()}, headers=auth_headers
            )
        response = client.get("/api/records/category/C1", headers=auth_headers)
        assert response.json()["version"] == 3

    def test_list_includes_tombstones(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        for record in (Ledger(id="L1"), Ledger(id="L2", version=2, deleted=True)):
            client.put(
                f"/api/records/ledger/{record.id}",
                json={"record": record.to_dict()},
                headers=auth_headers,
            )
        response = client.get("/api/records/ledger", headers=auth_headers)
        assert [r["id"] for r in response.json()] == ["L1", "L2"]
        assert response.json()[1]["deleted"] is True

    def test_list_by_scope(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        for record in (
            Transaction(id="T1", ledger_id="L1", amount=Decimal("1")),
            Transaction(id="T2", ledger_id="L2", amount=Decimal("2")),
        ):
            client.put(
                f"/api/records/transaction/{record.id}",
                json={"record": record.to_dict()},
                headers=auth_headers,
            )
        response = client.get(
            "/api/records/transaction", params={"scope": "L2"}, headers=auth_headers
        )
        assert [r["id"] for r in response.json()] == ["T2"]
        assert response.json()[0]["amount"] == "2"

    def test_unknown_kind(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        response = client.get("/api/records/budget", headers=auth_headers)
        assert response.status_code == 404

    def test_missing_record(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        response = client.get("/api/records/ledger/nope", headers=auth_headers)
        assert response.status_code == 404

    def test_malformed_record(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        response = client.put(
            "/api/records/ledger/L1",
            json={"record": {"id": "L1", "version": 0}},
            headers=auth_headers,
        )
        assert response.status_code == 422

    def test_id_mismatch(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        response = client.put(
            "/api/records/ledger/L1",
            json={"record": Ledger(id="L2").to_dict()},
            headers=auth_headers,
        )
        assert response.status_code == 400
