"""Fixtures for API unit tests: async session adapter over SQLite, overridden app, AsyncClient."""

import pytest
from httpx import ASGITransport, AsyncClient

from audit_trail.main import app


class FakeAsyncSession:
    """Exposes the AsyncSession surface the routers use on top of a sync Session."""

    def __init__(self, session):
        self._session = session

    async def run_sync(self, fn, *args, **kwargs):
        return fn(self._session, *args, **kwargs)

    async def commit(self):
        self._session.commit()

    async def rollback(self):
        self._session.rollback()


@pytest.fixture
def fake_db(session):
    return FakeAsyncSession(session)


@pytest.fixture
def app_with_overrides(fake_db, audited_registry):
    """App with DB session and audited registry overridden for testing."""
    from audit_trail.api import dependencies
    from audit_trail.infrastructure.database import session as db_session

    app.dependency_overrides[db_session.get_db] = lambda: fake_db
    app.dependency_overrides[dependencies.get_registry] = lambda: audited_registry
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(app_with_overrides):
    """Async HTTP client for testing; uses overridden app."""
    transport = ASGITransport(app=app_with_overrides)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
