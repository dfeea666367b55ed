"""
Authentication and authorization tests.

Verifies:
- Unauthenticated requests return 401
- Client role denied admin operations (403)
- Session lifecycle: login, logout, deactivation
- Account self-service: profile, password, deletion
"""

import pytest

from conftest import PASSWORD, get_auth_token, auth_headers


# =============================================================================
# UNAUTHENTICATED ACCESS - 401
# =============================================================================


class TestUnauthenticatedAccess:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/users"),
            ("GET", "/api/users/1"),
            ("GET", "/api/categories"),
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/cart"),
            ("POST", "/api/cart/items"),
            ("GET", "/api/invoices"),
            ("POST", "/api/invoices/checkout"),
            ("POST", "/api/auth/logout"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/cart", headers=auth_headers("not-a-real-token"))
        assert resp.status_code == 401

    def test_public_endpoints(self, client, db_session):
        assert client.get("/api/ping").status_code == 200
        health = client.get("/api/health")
        assert health.status_code == 200
        assert health.json["checks"]["database"]["status"] == "healthy"
        assert health.json["checks"]["setup"]["status"] == "degraded"


# =============================================================================
# REGISTRATION / LOGIN / LOGOUT
# =============================================================================


class TestAuthFlow:

    def _register(self, client, **overrides):
        payload = {
            "name": "Carol",
            "surname": "Smith",
            "username": "carol",
            "email": "carol@example.com",
            "password": PASSWORD,
        }
        payload.update(overrides)
        return client.post("/api/auth/register", json=payload)

    def test_register_creates_client(self, client, db_session):
        resp = self._register(client)
        assert resp.status_code == 201
        assert resp.json["user"]["role"] == "CLIENT_ROLE"
        assert "password_hash" not in resp.json["user"]

    def test_register_rejects_role(self, client, db_session):
        resp = self._register(client, role="ADMIN_ROLE")
        assert resp.status_code == 400

    def test_register_duplicate(self, client, client_user):
        resp = self._register(client, username=client_user.username)
        assert resp.status_code == 409

    def test_register_weak_password(self, client, db_session):
        resp = self._register(client, password="short")
        assert resp.status_code == 400

    def test_register_bad_phone(self, client, db_session):
        resp = self._register(client, phone="555-1234")
        assert resp.status_code == 400

    def test_login_by_email_and_logout(self, client, client_user):
        token = get_auth_token(client, client_user.email)
        assert token

        headers = auth_headers(token)
        assert client.get("/api/auth/me", headers=headers).json["user"]["id"] == client_user.id
        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/cart", headers=headers).status_code == 401

    def test_bad_password(self, client, client_user):
        resp = client.post("/api/auth/login", json={"username": client_user.username, "password": "Wrong123!"})
        assert resp.status_code == 401

    def test_missing_credentials(self, client, db_session):
        assert client.post("/api/auth/login", json={}).status_code == 400


# =============================================================================
# CLIENT DENIED ADMIN OPERATIONS - 403
# =============================================================================


class TestRoleChecks:

    def test_client_cannot_list_users(self, client, client_headers):
        assert client.get("/api/users", headers=client_headers).status_code == 403

    def test_client_cannot_change_roles(self, client, client_headers, client_user):
        resp = client.patch(f"/api/users/{client_user.id}/role", json={"role": "ADMIN_ROLE"}, headers=client_headers)
        assert resp.status_code == 403

    def test_client_cannot_read_other_user(self, client, client_headers, other_user):
        assert client.get(f"/api/users/{other_user.id}", headers=client_headers).status_code == 403

    def test_admin_lists_and_promotes(self, client, admin_headers, client_user):
        listed = client.get("/api/users", headers=admin_headers).json
        assert listed["count"] == 2

        resp = client.patch(f"/api/users/{client_user.id}/role", json={"role": "ADMIN_ROLE"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["user"]["role"] == "ADMIN_ROLE"

        bad = client.patch(f"/api/users/{client_user.id}/role", json={"role": "ROOT"}, headers=admin_headers)
        assert bad.status_code == 400

    def test_admin_deactivation_revokes_sessions(self, client, admin_headers, client_headers, client_user):
        assert client.delete(f"/api/users/{client_user.id}", headers=admin_headers).status_code == 200
        assert client.get("/api/cart", headers=client_headers).status_code == 401
        assert get_auth_token(client, client_user.username) is None

        assert client.delete(f"/api/users/{client_user.id}", headers=admin_headers).status_code == 409


# =============================================================================
# ACCOUNT SELF-SERVICE
# =============================================================================


class TestAccountSelfService:

    def test_update_profile(self, client, client_headers, client_user, other_user):
        resp = client.put(f"/api/users/{client_user.id}", json={"phone": "5551234", "name": "Alicia"}, headers=client_headers)
        assert resp.status_code == 200
        assert resp.json["user"]["phone"] == "5551234"
        assert resp.json["user"]["name"] == "Alicia"

        taken = client.put(f"/api/users/{client_user.id}", json={"email": other_user.email}, headers=client_headers)
        assert taken.status_code == 409

        blocked = client.put(f"/api/users/{client_user.id}", json={"role": "ADMIN_ROLE"}, headers=client_headers)
        assert blocked.status_code == 400

    def test_change_own_password(self, client, client_headers, client_user):
        wrong = client.patch(
            f"/api/users/{client_user.id}/password",
            json={"current_password": "Nope1234!", "new_password": "NewPassword1!"},
            headers=client_headers,
        )
        assert wrong.status_code == 400

        resp = client.patch(
            f"/api/users/{client_user.id}/password",
            json={"current_password": PASSWORD, "new_password": "NewPassword1!"},
            headers=client_headers,
        )
        assert resp.status_code == 200
        assert client.get("/api/cart", headers=client_headers).status_code == 401
        assert get_auth_token(client, client_user.username, "NewPassword1!")

    def test_admin_resets_password_without_current(self, client, admin_headers, client_user):
        resp = client.patch(
            f"/api/users/{client_user.id}/password",
            json={"new_password": "ResetPass1!"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert get_auth_token(client, client_user.username, "ResetPass1!")

    def test_delete_own_account(self, client, client_headers, client_user):
        wrong = client.delete("/api/users/me", json={"password": "Nope1234!"}, headers=client_headers)
        assert wrong.status_code == 400

        resp = client.delete("/api/users/me", json={"password": PASSWORD}, headers=client_headers)
        assert resp.status_code == 200
        assert client.get("/api/cart", headers=client_headers).status_code == 401
