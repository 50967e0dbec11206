"""Shared fixtures: in-memory database, API client and users of each role."""
import os

# Must be set before agency_core reads its settings
os.environ["AGENCY_DATABASE_URL"] = "sqlite://"
os.environ["AGENCY_BCRYPT_ROUNDS"] = "4"
os.environ.pop("AGENCY_BOOTSTRAP_ADMIN_EMAIL", None)
os.environ.pop("AGENCY_BOOTSTRAP_ADMIN_PASSWORD", None)

import pytest
from fastapi.testclient import TestClient

from agency_core import crud, models
from agency_core.api.main import app
from agency_core.database import SessionLocal, engine

API = "/api/v1"
PASSWORD = "correct-horse-battery"


@pytest.fixture
def client():
    """API client against a freshly created schema."""
    models.Base.metadata.create_all(bind=engine)
    with TestClient(app) as test_client:
        yield test_client
    models.Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(client):
    """Database session for direct setup and assertions."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    """Factory creating a user with the given roles and returning (user, auth headers)."""

    def _make_user(email: str, roles: list[models.RoleName], name: str = None):
        user = crud.create_user(
            db,
            name=name or email.split("@")[0].title(),
            email=email,
            password=PASSWORD,
            roles=roles,
        )
        token, _ = crud.create_session(db, user, ttl_hours=1)
        return user, {"Authorization": f"Bearer {token}"}

    return _make_user


@pytest.fixture
def admin(make_user):
    return make_user("admin@agency.test", [models.RoleName.ADMIN], name="Ada Admin")


@pytest.fixture
def manager(make_user):
    return make_user("manager@agency.test", [models.RoleName.MANAGER], name="Max Manager")


@pytest.fixture
def client_user(make_user):
    return make_user("client@agency.test", [models.RoleName.CLIENT], name="Cleo Client")


@pytest.fixture
def plain_user(make_user):
    return make_user("user@agency.test", [models.RoleName.USER], name="Uma User")


@pytest.fixture
def admin_headers(admin):
    return admin[1]


@pytest.fixture
def manager_headers(manager):
    return manager[1]


@pytest.fixture
def client_headers(client_user):
    return client_user[1]


@pytest.fixture
def user_headers(plain_user):
    return plain_user[1]


@pytest.fixture
def acme(client, manager_headers):
    """A client record created through the API."""
    response = client.post(
        f"{API}/clients/",
        json={"name": "Acme Corp", "contact_email": "ops@acme.test"},
        headers=manager_headers,
    )
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def website(client, manager_headers, acme):
    """A project for the Acme client."""
    response = client.post(
        f"{API}/projects/",
        json={
            "client_id": acme["id"],
            "name": "Website Relaunch",
            "start_date": "2024-01-01",
            "end_date": "2024-06-30",
        },
        headers=manager_headers,
    )
    assert response.status_code == 201
    return response.json()
