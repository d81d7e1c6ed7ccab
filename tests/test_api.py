"""HTTP-level tests for the compliance tracker API.

Each test gets a fresh application on the in-memory backend with the
reminder scheduler disabled and the log-only email sink.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from config.settings import Settings
from src.main import create_app


def _settings(**overrides) -> Settings:
    values = {
        "storage_backend": "memory",
        "enable_reminder_scheduler": False,
        "email_provider": "log",
        "bcrypt_rounds": 4,
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def client() -> Iterator[TestClient]:
    with TestClient(create_app(_settings())) as test_client:
        yield test_client


def _signup(client: TestClient, email: str = "alice@example.com") -> dict[str, str]:
    response = client.post("/auth/signup", json={"email": email, "password": "s3cret-pass"})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


def _yesterday() -> str:
    return (datetime.now(UTC).date() - timedelta(days=1)).isoformat()


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class TestHealth:
    def test_liveness_needs_no_auth(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_readiness_reports_storage(self, client: TestClient) -> None:
        body = client.get("/health/ready").json()
        assert body["status"] == "ready"
        assert body["checks"]["storage"].startswith("ok")
        assert body["checks"]["reminders"] == "stopped"


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class TestAuthEndpoints:
    def test_signup_then_current_user(self, client: TestClient) -> None:
        headers = _signup(client)
        response = client.get("/auth/user", headers=headers)
        assert response.status_code == 200
        assert response.json()["user"]["email"] == "alice@example.com"

    def test_duplicate_signup_is_400(self, client: TestClient) -> None:
        _signup(client)
        response = client.post(
            "/auth/signup", json={"email": "alice@example.com", "password": "other-pass"}
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "User already exists"

    def test_login(self, client: TestClient) -> None:
        _signup(client)
        ok = client.post("/auth/login", json={"email": "alice@example.com", "password": "s3cret-pass"})
        assert ok.status_code == 200
        assert ok.json()["token"]

        bad = client.post("/auth/login", json={"email": "alice@example.com", "password": "wrong-pass"})
        assert bad.status_code == 401
        assert bad.json()["detail"] == "Invalid credentials"

    @pytest.mark.parametrize(
        "body",
        [
            {"email": "nobody@example.com", "password": "abc"},
            {"email": "not-an-email", "password": "s3cret-pass"},
        ],
    )
    def test_malformed_login_is_401(self, client: TestClient, body: dict[str, str]) -> None:
        response = client.post("/auth/login", json=body)
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    def test_login_missing_password_is_422(self, client: TestClient) -> None:
        response = client.post("/auth/login", json={"email": "alice@example.com"})
        assert response.status_code == 422

    def test_logout_revokes_token(self, client: TestClient) -> None:
        headers = _signup(client)
        assert client.post("/auth/logout", headers=headers).json() == {"message": "Logged out"}
        assert client.get("/auth/user", headers=headers).status_code == 401

    @pytest.mark.parametrize(
        "path", ["/auth/user", "/categories", "/items", "/items/export", "/notifications/log"]
    )
    def test_protected_routes_require_token(self, client: TestClient, path: str) -> None:
        missing = client.get(path)
        assert missing.status_code == 401
        assert missing.headers["WWW-Authenticate"] == "Bearer"

        invalid = client.get(path, headers={"Authorization": "Bearer nope"})
        assert invalid.status_code == 401


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


class TestCategoryEndpoints:
    def test_default_categories_seeded(self, client: TestClient) -> None:
        categories = client.get("/categories", headers=_signup(client)).json()
        assert len(categories) == 7
        assert {c["id"] for c in categories} == {str(i) for i in range(1, 8)}
        names = [c["name"] for c in categories]
        assert names == sorted(names)

    def test_create_category(self, client: TestClient) -> None:
        headers = _signup(client)
        response = client.post(
            "/categories",
            json={"name": "Data Privacy", "description": "GDPR", "color": "#123456"},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["name"] == "Data Privacy"
        assert len(client.get("/categories", headers=headers).json()) == 8


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


class TestItemEndpoints:
    def test_create_and_list_with_category(self, client: TestClient) -> None:
        headers = _signup(client)
        created = client.post(
            "/items",
            json={"title": "Corporate tax filing", "category_id": "2", "due_date": "2030-04-15"},
            headers=headers,
        )
        assert created.status_code == 200
        body = created.json()
        assert body["status"] == "pending"
        assert body["owner_email"] == ""

        items = client.get("/items", headers=headers).json()
        assert len(items) == 1
        assert items[0]["category"]["name"] == "Tax Compliance"

    def test_missing_title_is_422(self, client: TestClient) -> None:
        response = client.post("/items", json={"notes": "no title"}, headers=_signup(client))
        assert response.status_code == 422

    def test_items_are_private(self, client: TestClient) -> None:
        alice = _signup(client, "alice@example.com")
        bob = _signup(client, "bob@example.com")
        item_id = client.post("/items", json={"title": "Alice only"}, headers=alice).json()["id"]

        assert client.get("/items", headers=bob).json() == []

        patched = client.patch("/items", json={"id": item_id, "title": "Bob was here"}, headers=bob)
        assert patched.status_code == 404

        deleted = client.delete("/items", params={"id": item_id}, headers=bob)
        assert deleted.status_code == 200
        assert deleted.json() == {"message": "Deleted"}

        remaining = client.get("/items", headers=alice).json()
        assert [i["title"] for i in remaining] == ["Alice only"]

    def test_patch_applies_only_sent_fields(self, client: TestClient) -> None:
        headers = _signup(client)
        item = client.post(
            "/items",
            json={"title": "Audit", "notes": "keep", "priority": "high"},
            headers=headers,
        ).json()

        response = client.patch(
            "/items", json={"id": item["id"], "status": "compliant"}, headers=headers
        )
        assert response.status_code == 200
        updated = response.json()
        assert updated["status"] == "compliant"
        assert updated["notes"] == "keep"
        assert updated["priority"] == "high"
        assert updated["created_at"] == item["created_at"]

    def test_patch_blank_title_is_422(self, client: TestClient) -> None:
        headers = _signup(client)
        item_id = client.post("/items", json={"title": "x"}, headers=headers).json()["id"]
        response = client.patch("/items", json={"id": item_id, "title": " "}, headers=headers)
        assert response.status_code == 422

    def test_delete_own_item(self, client: TestClient) -> None:
        headers = _signup(client)
        item_id = client.post("/items", json={"title": "x"}, headers=headers).json()["id"]
        assert client.delete("/items", params={"id": item_id}, headers=headers).status_code == 200
        assert client.get("/items", headers=headers).json() == []

    def test_list_order_and_filters(self, client: TestClient) -> None:
        headers = _signup(client)
        client.post("/items", json={"title": "undated"}, headers=headers)
        client.post("/items", json={"title": "later", "due_date": "2031-01-01"}, headers=headers)
        client.post(
            "/items",
            json={"title": "sooner", "due_date": "2030-01-01", "status": "in_progress"},
            headers=headers,
        )

        titles = [i["title"] for i in client.get("/items", headers=headers).json()]
        assert titles == ["sooner", "later", "undated"]

        filtered = client.get("/items", params={"status": "in_progress"}, headers=headers).json()
        assert [i["title"] for i in filtered] == ["sooner"]

    def test_export_csv(self, client: TestClient) -> None:
        headers = _signup(client)
        client.post("/items", json={"title": 'Quarterly, "Q3" Review'}, headers=headers)

        response = client.get("/items/export", headers=headers)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "compliance-registry-" in response.headers["content-disposition"]

        rows = list(csv.reader(io.StringIO(response.text)))
        assert rows[0][0] == "Compliance ID"
        assert rows[1][:2] == ["COMP-001", 'Quarterly, "Q3" Review']

    def test_metrics(self, client: TestClient) -> None:
        headers = _signup(client)
        client.post("/items", json={"title": "done", "status": "compliant"}, headers=headers)
        client.post("/items", json={"title": "late", "due_date": _yesterday()}, headers=headers)

        metrics = client.get("/items/metrics", headers=headers).json()
        assert metrics["total"] == 2
        assert metrics["compliant"] == 1
        assert metrics["overdue"] == 1
        assert metrics["compliance_rate"] == 50


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class TestNotificationEndpoints:
    def test_status_check_and_log(self, client: TestClient) -> None:
        headers = _signup(client)
        client.post(
            "/items",
            json={"title": "Late filing", "due_date": _yesterday(), "owner_email": "cfo@example.com"},
            headers=headers,
        )
        client.post("/items", json={"title": "No email", "due_date": _yesterday()}, headers=headers)

        statuses = {s["title"]: s for s in client.get("/notifications/status", headers=headers).json()}
        assert statuses["Late filing"]["kind"] == "overdue"
        assert statuses["No email"]["needs_notification"] is False

        first = client.post("/notifications/check", headers=headers).json()
        assert len(first) == 1
        assert first[0]["to"] == "cfo@example.com"
        assert first[0]["state"] == "logged"
        assert first[0]["alert_title"] == "URGENT: Late filing is overdue"

        assert client.post("/notifications/check", headers=headers).json() == []

        log = client.get("/notifications/log", headers=headers).json()
        assert len(log) == 1
        assert client.get("/notifications/log", headers=_signup(client, "bob@example.com")).json() == []


# ---------------------------------------------------------------------------
# Storage failures
# ---------------------------------------------------------------------------


class TestStorageFailure:
    def test_corrupt_collection_is_503(self, tmp_path: Path) -> None:
        (tmp_path / "items.json").write_text("{broken", encoding="utf-8")
        app = create_app(_settings(storage_backend="file", data_dir=str(tmp_path)))

        with TestClient(app) as client:
            headers = _signup(client)
            response = client.get("/items", headers=headers)

        assert response.status_code == 503
        assert response.json()["detail"] == "Storage unavailable"
