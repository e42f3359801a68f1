"""
tests/conftest.py -- Shared fixtures for the sigstudio API tests.

Environment is set before any sigstudio import: get_settings() is cached
and the engine, upload mount and rate limiter read it at import time.

- In-memory SQLite (one shared connection, see database._engine_options),
  tables recreated for every test
- Rate limiting off; the limiter has its own unit tests
- Uploads go to a throwaway directory
- bcrypt at minimum cost so registrations stay fast
"""
import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="sigstudio-uploads-")
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["REFRESH_SECRET_KEY"] = "test-refresh-secret-key"

import pytest
from fastapi.testclient import TestClient

import sigstudio.models  # noqa: F401
from sigstudio.database import Base, SessionLocal, engine
from sigstudio.main import app

PASSWORD = "Secret123"


@pytest.fixture(autouse=True)
def fresh_tables():
    """Every test starts from an empty schema."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def registration_payload(
    organization_name: str = "Acme",
    domain: str = "acme.com",
    email: str = "a@acme.com",
    password: str = PASSWORD,
) -> dict:
    return {
        "organization_name": organization_name,
        "domain": domain,
        "first_name": "Ada",
        "last_name": "Admin",
        "email": email,
        "password": password,
        "confirm_password": password,
    }


class Org:
    """A registered tenant and its admin, as seen by the API."""

    def __init__(self, client: TestClient, body: dict):
        self.client = client
        self.token = body["access_token"]
        self.user = body["user"]
        self.tenant = body["tenant"]

    @property
    def headers(self) -> dict:
        return bearer(self.token)

    def invite(self, email: str, role: str = "member", password: str = PASSWORD) -> dict:
        resp = self.client.post(
            "/api/team/invite",
            json={
                "email": email,
                "first_name": "Mia",
                "last_name": "Member",
                "role": role,
                "password": password,
            },
            headers=self.headers,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["user"]

    def login(self, email: str, password: str = PASSWORD) -> str:
        resp = self.client.post("/api/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.text
        return resp.json()["access_token"]

    def create_template(self, name: str = "Standard", token: str = None, **fields) -> dict:
        payload = {"name": name, "html_content": f"<p>{name}</p>", **fields}
        resp = self.client.post("/api/templates", json=payload, headers=bearer(token or self.token))
        assert resp.status_code == 201, resp.text
        return resp.json()


@pytest.fixture
def register(client):
    """Register an organization; returns an Org."""

    def _register(**overrides) -> Org:
        resp = client.post("/api/auth/register", json=registration_payload(**overrides))
        assert resp.status_code == 200, resp.text
        return Org(client, resp.json())

    return _register


@pytest.fixture
def acme(register) -> Org:
    return register()


@pytest.fixture
def globex(register) -> Org:
    return register(organization_name="Globex", domain="globex.com", email="g@globex.com")
