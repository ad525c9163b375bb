"""Test fixtures: a fresh on-disk SQLite database per test.

Settings are pinned through TENANTGATE_* env vars before anything from
tenantgate is imported: a known JWT secret and the cheapest bcrypt cost.

Each test gets its own database file under tmp_path with the full schema,
so units of work commit and roll back for real and the unique and partial
indexes behave as they do in production. The app's get_uow dependency is
overridden to point at that database.
"""

import os
import uuid

os.environ["TENANTGATE_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["TENANTGATE_JWT_SECRET"] = "test-secret-do-not-use-in-production"
os.environ["TENANTGATE_ENVIRONMENT"] = "test"
os.environ["TENANTGATE_BCRYPT_ROUNDS"] = "4"

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from tenantgate.db.engine import build_engine, build_session_factory, get_uow  # noqa: E402
from tenantgate.db.models import Base  # noqa: E402
from tenantgate.main import app  # noqa: E402
from tenantgate.repositories.unit_of_work import UnitOfWork  # noqa: E402
from tenantgate.services.tenant_auth_service import TenantAuthService  # noqa: E402

PASSWORD = "Str0ng!Pass"


def unique_email(prefix: str = "tenant") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}@example.com"


@pytest_asyncio.fixture()
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'tenantgate.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture()
async def uow(engine):
    return UnitOfWork(build_session_factory(engine))


@pytest_asyncio.fixture()
async def tenant(uow):
    """A registered, active tenant (AuthResult with .tenant and .token)."""
    return await TenantAuthService(uow).register(
        f"Tenant {uuid.uuid4().hex[:8]}", unique_email(), PASSWORD
    )


@pytest_asyncio.fixture()
async def other_tenant(uow):
    return await TenantAuthService(uow).register(
        f"Other {uuid.uuid4().hex[:8]}", unique_email("other"), PASSWORD
    )


@pytest_asyncio.fixture()
async def client(uow):
    """HTTP client against the app, with get_uow bound to the test database."""
    app.dependency_overrides[get_uow] = lambda: uow

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
