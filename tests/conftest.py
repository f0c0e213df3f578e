import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import IntegrityError

from fulfillment_api.api.main import app
from fulfillment_api.core.deps import get_current_user, get_db_session

PLATFORM_ID = uuid.uuid4()


class FakeSession:
    """Stands in for AsyncSession; counts transaction calls so tests can assert on them."""

    def __init__(self):
        self.commits = 0
        self.rollbacks = 0

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1

    async def flush(self):
        return None

    async def close(self):
        return None


class DriverError(Exception):
    """Carries sqlstate and constraint_name the way asyncpg errors do."""

    def __init__(self, sqlstate, constraint_name):
        super().__init__(f"{sqlstate} on {constraint_name}")
        self.sqlstate = sqlstate
        self.constraint_name = constraint_name


def integrity_error(sqlstate: str, constraint_name: str) -> IntegrityError:
    orig = Exception("driver error")
    orig.__cause__ = DriverError(sqlstate, constraint_name)
    return IntegrityError("DELETE", {}, orig)


def make_user(role: str = "ADMIN", company_id=None, **extra):
    now = datetime.now(tz=timezone.utc)
    fields = dict(
        id=uuid.uuid4(),
        platform_id=PLATFORM_ID,
        company_id=company_id,
        name=f"{role.title()} User",
        email=f"{role.lower()}@example.com",
        role=role,
        is_active=True,
        password="hashed",
        password_changed_at=None,
        last_login_at=None,
        created_at=now,
        updated_at=now,
    )
    fields.update(extra)
    return SimpleNamespace(**fields)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def client_for(fake_session):
    """Build an AsyncClient whose requests run as `user` against the fake session."""

    def _make(user=None, headers=None):
        app.dependency_overrides[get_db_session] = lambda: fake_session
        if user is not None:
            app.dependency_overrides[get_current_user] = lambda: user
        default_headers = {"X-Platform": str(PLATFORM_ID)}
        default_headers.update(headers or {})
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test", headers=default_headers)

    yield _make
    app.dependency_overrides.clear()
