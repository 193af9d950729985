"""Route tests for the sandbox API (sandbox/routes.py).

Uses the module-scoped sandbox_client fixture from conftest.py, backed by a
named shared-memory SQLite store seeded with an admin and an auditor.
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from tests.conftest import ADMIN_PASSWORD, ADMIN_USERNAME, AUDITOR_PASSWORD, AUDITOR_USERNAME


def _login(client: TestClient, username: str = ADMIN_USERNAME, password: str = ADMIN_PASSWORD) -> str:
    resp = client.post("/api/v2/authtoken/", json={"username": username, "password": password})
    assert resp.status_code == 201, resp.text
    return resp.json()["token"]


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Token {token}"}


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


class TestPing:
    def test_ping_is_public(self, sandbox_client: TestClient) -> None:
        resp = sandbox_client.get("/api/v2/ping/")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["version"]


class TestCreateToken:
    def test_missing_fields_get_per_field_errors(self, sandbox_client: TestClient) -> None:
        resp = sandbox_client.post("/api/v2/authtoken/", json={"username": "", "password": ""})
        assert resp.status_code == 400
        assert resp.json() == {
            "username": ["This field is required."],
            "password": ["This field is required."],
        }

    def test_absent_password_key(self, sandbox_client: TestClient) -> None:
        resp = sandbox_client.post("/api/v2/authtoken/", json={"username": ADMIN_USERNAME})
        assert resp.status_code == 400
        assert resp.json() == {"password": ["This field is required."]}

    def test_wrong_password_is_non_field_error(self, sandbox_client: TestClient) -> None:
        resp = sandbox_client.post(
            "/api/v2/authtoken/", json={"username": ADMIN_USERNAME, "password": "wrong-password"}
        )
        assert resp.status_code == 400
        assert resp.json() == {"non_field_errors": ["Unable to login with provided credentials."]}

    def test_unknown_user_gets_same_error(self, sandbox_client: TestClient) -> None:
        """Username existence must not be distinguishable from the response."""
        resp = sandbox_client.post("/api/v2/authtoken/", json={"username": "ghost", "password": "whatever"})
        assert resp.status_code == 400
        assert resp.json() == {"non_field_errors": ["Unable to login with provided credentials."]}

    def test_valid_credentials_issue_token(self, sandbox_client: TestClient) -> None:
        resp = sandbox_client.post(
            "/api/v2/authtoken/", json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD}
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["token"]
        assert body["expires"]
        assert resp.headers["cache-control"] == "no-store"


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


class TestMe:
    def test_requires_token(self, sandbox_client: TestClient) -> None:
        resp = sandbox_client.get("/api/v2/me/")
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Authentication credentials were not provided."

    def test_rejects_garbage_token(self, sandbox_client: TestClient) -> None:
        resp = sandbox_client.get("/api/v2/me/", headers=_auth("not-a-jwt"))
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid token."

    def test_returns_list_envelope_for_admin(self, sandbox_client: TestClient, sandbox_app) -> None:
        _app, ids = sandbox_app
        resp = sandbox_client.get("/api/v2/me/", headers=_auth(_login(sandbox_client)))
        assert resp.status_code == 200
        body = resp.json()
        assert body["count"] == 1
        user = body["results"][0]
        assert user["id"] == ids[ADMIN_USERNAME]
        assert user["username"] == ADMIN_USERNAME
        assert user["is_superuser"] is True
        assert user["is_system_auditor"] is False

    def test_auditor_flags(self, sandbox_client: TestClient) -> None:
        token = _login(sandbox_client, AUDITOR_USERNAME, AUDITOR_PASSWORD)
        user = sandbox_client.get("/api/v2/me/", headers=_auth(token)).json()["results"][0]
        assert user["is_superuser"] is False
        assert user["is_system_auditor"] is True

    def test_bearer_scheme_also_accepted(self, sandbox_client: TestClient) -> None:
        token = _login(sandbox_client)
        resp = sandbox_client.get("/api/v2/me/", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200


class TestConfig:
    def test_requires_token(self, sandbox_client: TestClient) -> None:
        assert sandbox_client.get("/api/v2/config/").status_code == 401

    def test_returns_version_and_license(self, sandbox_client: TestClient) -> None:
        resp = sandbox_client.get("/api/v2/config/", headers=_auth(_login(sandbox_client)))
        assert resp.status_code == 200
        body = resp.json()
        assert body["version"]
        assert body["license_info"]["license_type"] == "open"


class TestRevokeToken:
    def test_revoked_token_is_rejected(self, sandbox_client: TestClient) -> None:
        token = _login(sandbox_client)
        assert sandbox_client.get("/api/v2/me/", headers=_auth(token)).status_code == 200

        resp = sandbox_client.delete("/api/v2/authtoken/", headers=_auth(token))
        assert resp.status_code == 204

        resp = sandbox_client.get("/api/v2/me/", headers=_auth(token))
        assert resp.status_code == 401

    def test_other_tokens_stay_valid(self, sandbox_client: TestClient) -> None:
        keep = _login(sandbox_client)
        drop = _login(sandbox_client)
        sandbox_client.delete("/api/v2/authtoken/", headers=_auth(drop))
        assert sandbox_client.get("/api/v2/me/", headers=_auth(keep)).status_code == 200

    def test_revoke_requires_token(self, sandbox_client: TestClient) -> None:
        assert sandbox_client.delete("/api/v2/authtoken/").status_code == 401
