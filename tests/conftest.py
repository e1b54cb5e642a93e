import pytest
from fastapi.testclient import TestClient

from dashboard.config import Settings
from dashboard.main import create_app


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'dashboard.db'}",
        jwt_secret="test-secret",
        log_level="WARNING",
    )


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as c:
        yield c


def signup(client, email: str, role: str | None = None, password: str = "s3cret-pass", name: str = "Tester"):
    body = {"name": name, "email": email, "password": password}
    if role is not None:
        body["role"] = role
    return client.post("/api/auth/signup", json=body)


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_token(client) -> str:
    return signup(client, "admin@example.com", role="admin").json()["data"]["token"]


@pytest.fixture
def user_token(client) -> str:
    return signup(client, "viewer@example.com", role="user").json()["data"]["token"]
