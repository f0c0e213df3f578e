from datetime import datetime, timezone

import pytest

from fulfillment_api.api.routes import auth
from fulfillment_api.core.security import REFRESH_TOKEN, decode_token
from tests.conftest import PLATFORM_ID, make_user


class FakeUserRepo:
    users = {}

    def __init__(self, _session):
        pass

    async def get_by_email(self, platform_id, email):
        user = self.users.get(email.lower())
        return user if user is not None and user.platform_id == platform_id else None

    async def get(self, platform_id, user_id):
        return next((u for u in self.users.values() if u.id == user_id), None)

    async def touch_last_login(self, user):
        user.last_login_at = datetime.now(tz=timezone.utc)
        return user

    async def commit(self):
        return None


@pytest.fixture
def users(monkeypatch):
    active = make_user("ADMIN", email="admin@example.com")
    inactive = make_user("LOGISTICS", email="ops@example.com", is_active=False)
    FakeUserRepo.users = {active.email: active, inactive.email: inactive}
    monkeypatch.setattr(auth, "UserRepository", FakeUserRepo, raising=True)
    monkeypatch.setattr(auth, "verify_password", lambda plain, hashed: plain == "s3cret-pass", raising=True)
    return FakeUserRepo.users


@pytest.mark.anyio
async def test_login_issues_token_pair(client_for, users):
    async with client_for() as ac:
        resp = await ac.post("/api/v1/auth/login", json={"email": "Admin@Example.com", "password": "s3cret-pass"})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["user"]["email"] == "admin@example.com"
    assert data["user"]["last_login_at"] is not None
    claims = decode_token(data["refresh_token"], token_type=REFRESH_TOKEN)
    assert claims["platform_id"] == str(PLATFORM_ID)
    assert claims["role"] == "ADMIN"


@pytest.mark.anyio
@pytest.mark.parametrize(
    "email,password,status_code,message",
    [
        ("nobody@example.com", "s3cret-pass", 404, "User not found"),
        ("ops@example.com", "s3cret-pass", 403, "User account is not active"),
        ("admin@example.com", "wrong", 401, "Invalid password"),
    ],
)
async def test_login_failures(client_for, users, email, password, status_code, message):
    async with client_for() as ac:
        resp = await ac.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert resp.status_code == status_code
    assert resp.json()["message"] == message


@pytest.mark.anyio
async def test_refresh_rejects_access_token(client_for, users):
    async with client_for() as ac:
        login = await ac.post("/api/v1/auth/login", json={"email": "admin@example.com", "password": "s3cret-pass"})
        access = login.json()["data"]["access_token"]
        resp = await ac.post("/api/v1/auth/refresh", json={"refresh_token": access})
        assert resp.status_code == 401

        refresh = login.json()["data"]["refresh_token"]
        resp = await ac.post("/api/v1/auth/refresh", json={"refresh_token": refresh})
    assert resp.status_code == 200
    assert resp.json()["data"]["access_token"]
