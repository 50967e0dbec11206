"""Tests for registration, login, sessions and permission discovery."""
from datetime import datetime, timedelta

from agency_core import models
from agency_core.security import hash_token

from conftest import API, PASSWORD


def _register(client, email="new@agency.test", password="s3cret-pass", name="New Person"):
    return client.post(
        f"{API}/auth/register",
        json={"name": name, "email": email, "password": password},
    )


def _login(client, email, password=PASSWORD):
    return client.post(f"{API}/auth/login", json={"email": email, "password": password})


class TestRegistration:
    """Test self-service registration."""

    def test_register_assigns_default_user_role(self, client):
        response = _register(client)

        assert response.status_code == 201
        body = response.json()
        assert body["email"] == "new@agency.test"
        assert body["roles"] == ["User"]
        assert body["role_level"] == 0
        assert "password" not in body
        assert "password_hash" not in body
        assert body["id"].startswith("user_")

    def test_password_stored_hashed(self, client, db):
        _register(client, password="plain-text-pw")

        user = db.query(models.User).filter(models.User.email == "new@agency.test").one()
        assert user.password_hash != "plain-text-pw"
        assert user.password_hash.startswith("$2")

    def test_duplicate_email_rejected(self, client):
        assert _register(client).status_code == 201

        response = _register(client, email="NEW@agency.test")
        assert response.status_code == 400
        assert "already exists" in response.json()["detail"]

    def test_short_password_rejected(self, client):
        response = _register(client, password="short")
        assert response.status_code == 400

    def test_invalid_email_rejected(self, client):
        response = _register(client, email="not-an-email")
        assert response.status_code == 400

    def test_missing_fields_rejected(self, client):
        response = client.post(f"{API}/auth/register", json={"email": "x@agency.test"})
        assert response.status_code == 400


class TestLogin:
    """Test credential login and sessions."""

    def test_login_returns_bearer_token(self, client, manager):
        response = _login(client, "manager@agency.test")

        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["access_token"].startswith("agy_")
        assert body["user"]["roles"] == ["Manager"]
        assert body["user"]["role_level"] == 2

    def test_token_stored_as_hash(self, client, db, manager):
        token = _login(client, "manager@agency.test").json()["access_token"]

        session = (
            db.query(models.SessionToken)
            .filter(models.SessionToken.token_hash == hash_token(token))
            .one()
        )
        assert session.user_id == manager[0].id
        assert db.query(models.SessionToken).filter(models.SessionToken.token_hash == token).first() is None

    def test_login_email_case_insensitive(self, client, manager):
        assert _login(client, "Manager@Agency.TEST").status_code == 200

    def test_wrong_password(self, client, manager):
        response = _login(client, "manager@agency.test", password="wrong-password")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_unknown_email(self, client):
        response = _login(client, "ghost@agency.test")
        assert response.status_code == 401

    def test_inactive_user_cannot_login(self, client, db, manager):
        user = manager[0]
        user.is_active = False
        db.commit()

        assert _login(client, "manager@agency.test").status_code == 401

    def test_login_token_resolves_session(self, client, manager):
        token = _login(client, "manager@agency.test").json()["access_token"]

        response = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["email"] == "manager@agency.test"


class TestSessionResolution:
    """Test that only live sessions authenticate."""

    def test_missing_header(self, client):
        response = client.get(f"{API}/auth/me")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_unknown_token(self, client):
        response = client.get(f"{API}/auth/me", headers={"Authorization": "Bearer agy_nope"})
        assert response.status_code == 401

    def test_wrong_scheme(self, client, manager_headers):
        token = manager_headers["Authorization"].split(" ", 1)[1]
        response = client.get(f"{API}/auth/me", headers={"Authorization": f"Basic {token}"})
        assert response.status_code == 401

    def test_expired_session(self, client, db, manager, manager_headers):
        for session in db.query(models.SessionToken).all():
            session.expires_at = datetime.utcnow() - timedelta(minutes=1)
        db.commit()

        assert client.get(f"{API}/auth/me", headers=manager_headers).status_code == 401

    def test_logout_revokes_session(self, client, manager_headers):
        response = client.post(f"{API}/auth/logout", headers=manager_headers)
        assert response.status_code == 204

        assert client.get(f"{API}/auth/me", headers=manager_headers).status_code == 401

    def test_logout_requires_session(self, client):
        assert client.post(f"{API}/auth/logout").status_code == 401

    def test_me_reports_highest_level(self, client, make_user):
        _, headers = make_user("multi@agency.test", [models.RoleName.USER, models.RoleName.MANAGER])

        body = client.get(f"{API}/auth/me", headers=headers).json()
        assert body["roles"] == ["Manager", "User"]
        assert body["role_level"] == 2


class TestPermissionDiscovery:
    """Test the policy exposure endpoints used for client-side gating."""

    def test_permissions_for_client_role(self, client, client_headers):
        response = client.get(f"{API}/auth/permissions", headers=client_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["roles"] == ["Client"]
        assert body["role_level"] == 1
        assert body["allowed"]["client"] == ["list", "read"]
        assert "financial_record" not in body["allowed"]

        policy = {(e["action"], e["resource"]): e["minimum_role"] for e in body["policy"]}
        assert policy[("delete", "project")] == "Admin"
        assert policy[("list", "financial_record")] == "Manager"

    def test_permissions_require_session(self, client):
        assert client.get(f"{API}/auth/permissions").status_code == 401

    def test_gate_without_session(self, client):
        response = client.get(f"{API}/auth/gate", params={"required_role": "Manager"})

        assert response.status_code == 200
        assert response.json() == {
            "decision": "login",
            "redirect_to": "/auth/login",
            "user_level": None,
            "required_level": 2,
        }

    def test_gate_insufficient_role(self, client, user_headers):
        response = client.get(
            f"{API}/auth/gate", params={"required_role": "Admin"}, headers=user_headers
        )
        body = response.json()
        assert body["decision"] == "unauthorized"
        assert body["redirect_to"] == "/unauthorized"
        assert body["user_level"] == 0

    def test_gate_allows(self, client, admin_headers):
        response = client.get(
            f"{API}/auth/gate", params={"required_role": "Manager"}, headers=admin_headers
        )
        assert response.json()["decision"] == "allow"

    def test_gate_defaults_to_user_role(self, client, user_headers):
        response = client.get(f"{API}/auth/gate", headers=user_headers)
        assert response.json()["decision"] == "allow"
        assert response.json()["required_level"] == 0


class TestServiceEndpoints:
    """Test unauthenticated service endpoints."""

    def test_root(self, client):
        body = client.get("/").json()
        assert body["name"] == "Agency Core API"

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}
