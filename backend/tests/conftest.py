"""
Test fixtures for the clearing organization RBAC tests.

Every test gets its own SQLite database (aiosqlite) with the full schema;
API tests drive the FastAPI app in-process through httpx's ASGI transport
with ``get_db`` overridden to the per-test database.
"""
import os

# Must be set before clearing_api.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("AUTO_CREATE_SCHEMA", "false")

from types import SimpleNamespace

import httpx
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import clearing_api.models  # noqa: F401
from clearing_api.database import Base, get_db
from clearing_api.main import app
from clearing_api.middleware.auth import SECOND_FACTOR_CLAIM, create_access_token
from clearing_api.rbac import PERMISSION_CATALOG, Scope
from clearing_api.services.organization_service import OrganizationService
from clearing_api.services.role_service import RoleService

BASE_URL = "http://test"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_token(user_id: str, second_factor=True) -> str:
    """Sign a JWT for *user_id*; ``second_factor=None`` omits the claim."""
    claims = {"sub": user_id}
    if second_factor is not None:
        claims[SECOND_FACTOR_CLAIM] = second_factor
    return create_access_token(claims)


def auth_headers(user_id: str, second_factor=True) -> dict:
    """Return auth header dict for a given user."""
    return {"Authorization": f"Bearer {make_token(user_id, second_factor)}"}


async def make_clearer_admin(db: AsyncSession, username: str = "root"):
    """A platform operator holding every clearer permission."""
    orgs = OrganizationService(db)
    user = await orgs.create_user(username, "Clearer Operator")
    role = await RoleService(db).create_role(
        Scope.CLEARER, "Clearer Administrator", PERMISSION_CATALOG[Scope.CLEARER], user
    )
    await RoleService(db).assign_role(user, role, assigned_by=None)
    return user


# ---------------------------------------------------------------------------
# Database fixtures (one SQLite file per test)
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'rbac.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    """Session for arranging data and calling services directly."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    """Async HTTP client bound to the app and the per-test database."""
    async def _get_test_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_test_db
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=BASE_URL) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def world(db):
    """Two organizations with one desk each, and users at every level.

    - root:  clearer operator, creator (and default-role holder) of both orgs
    - alice: org1 user with the org1 default role and the "Rates" desk default role
    - dave:  org2 user with the org2 default role and the "Credit" desk default role
    - bob:   org1 user without any role
    - erin:  org2 user without any role

    Only ids are exposed; tests load fresh objects through their own session.
    """
    orgs = OrganizationService(db)
    root = await make_clearer_admin(db)
    org1 = await orgs.create_organization("Acme Clearing", root)
    org2 = await orgs.create_organization("Globex Markets", root)

    alice = await orgs.create_organization_user(org1, "alice", "Alice", "alice@acme.test", assigned_by=root)
    dave = await orgs.create_organization_user(org2, "dave", "Dave", None, assigned_by=root)
    bob = await orgs.create_user("bob", "Bob", organization=org1)
    erin = await orgs.create_user("erin", "Erin", organization=org2)

    desk1 = await orgs.create_desk(org1, "Rates", alice)
    desk2 = await orgs.create_desk(org2, "Credit", dave)
    await db.commit()

    return SimpleNamespace(
        root=root.id,
        alice=alice.id,
        dave=dave.id,
        bob=bob.id,
        erin=erin.id,
        org1=org1.id,
        org2=org2.id,
        desk1=desk1.id,
        desk2=desk2.id,
    )
