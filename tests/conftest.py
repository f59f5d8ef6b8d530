"""Shared test fixtures for the crewplan API test suite."""

import uuid
from collections.abc import AsyncGenerator
from datetime import datetime

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from crewplan.auth.dependencies import get_current_user
from crewplan.core.database import Base, get_db
from crewplan.main import app
from crewplan.models.core import User
from crewplan.models.enums import ProjectStatus, UserRole
from crewplan.models.projects import Project
from crewplan.models.workforce import Worker
from crewplan.modules.catalog.seed_templates import seed_default_templates
from crewplan.schemas.auth import CurrentUser

import crewplan.models  # noqa: F401 (register all models so create_all sees them)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def _enable_savepoints(engine) -> None:
    # aiosqlite needs SQLAlchemy to own BEGIN for SAVEPOINT to work
    @event.listens_for(engine.sync_engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession]:
    """A fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    _enable_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()
    await engine.dispose()


# ── Sample data ──────────────────────────────────────────────────────────────

MANAGER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
OWNER_B_ID = uuid.UUID("00000000-0000-0000-0000-000000000002")
VIEWER_ID = uuid.UUID("00000000-0000-0000-0000-000000000003")
WORKER_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000004")
ADMIN_ID = uuid.UUID("00000000-0000-0000-0000-000000000005")

ALICE_ID = uuid.UUID("00000000-0000-0000-0000-0000000000a1")
BOB_ID = uuid.UUID("00000000-0000-0000-0000-0000000000b0")

PROJECT_A_ID = uuid.UUID("00000000-0000-0000-0000-00000000000a")
PROJECT_B_ID = uuid.UUID("00000000-0000-0000-0000-00000000000b")

MANAGER = CurrentUser(user_id=MANAGER_ID, role=UserRole.MANAGER, email="manager@example.com")
ADMIN = CurrentUser(user_id=ADMIN_ID, role=UserRole.ADMIN, email="admin@example.com")
VIEWER = CurrentUser(user_id=VIEWER_ID, role=UserRole.VIEWER, email="viewer@example.com")
WORKER_USER = CurrentUser(user_id=WORKER_USER_ID, role=UserRole.WORKER, email="alice@example.com")


def dt(day: int, hour: int = 8) -> datetime:
    """Naive UTC timestamp in March 2026."""
    return datetime(2026, 3, day, hour, 0)


@pytest.fixture
async def seed_data(db: AsyncSession) -> None:
    """Users, two workers, two projects and the default templates."""
    db.add_all([
        User(id=MANAGER_ID, email="manager@example.com", full_name="Mia Manager", role=UserRole.MANAGER),
        User(id=OWNER_B_ID, email="owner.b@example.com", full_name="Ben Owner", role=UserRole.MANAGER),
        User(id=VIEWER_ID, email="viewer@example.com", full_name="Val Viewer", role=UserRole.VIEWER),
        User(id=WORKER_USER_ID, email="alice@example.com", full_name="Alice Mason", role=UserRole.WORKER),
        User(id=ADMIN_ID, email="admin@example.com", full_name="Ada Admin", role=UserRole.ADMIN),
    ])
    await db.flush()
    db.add_all([
        Worker(id=ALICE_ID, display_name="Alice", user_id=WORKER_USER_ID),
        Worker(id=BOB_ID, display_name="Bob"),
        Project(
            id=PROJECT_A_ID, name="Riverside Houses", project_number="P-100",
            status=ProjectStatus.ACTIVE, assigned_to_id=MANAGER_ID,
        ),
        Project(
            id=PROJECT_B_ID, name="Hilltop School", project_number="P-200",
            status=ProjectStatus.ACTIVE, assigned_to_id=OWNER_B_ID,
        ),
    ])
    await db.flush()
    await seed_default_templates(db)
    await db.commit()


def _override_auth(user: CurrentUser):
    async def _override():
        return user
    return _override


async def _client_for(db: AsyncSession, user: CurrentUser) -> AsyncGenerator[AsyncClient]:
    app.dependency_overrides[get_current_user] = _override_auth(user)
    app.dependency_overrides[get_db] = lambda: db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def manager_client(db: AsyncSession, seed_data) -> AsyncGenerator[AsyncClient]:
    async for ac in _client_for(db, MANAGER):
        yield ac


@pytest.fixture
async def viewer_client(db: AsyncSession, seed_data) -> AsyncGenerator[AsyncClient]:
    async for ac in _client_for(db, VIEWER):
        yield ac


@pytest.fixture
async def worker_client(db: AsyncSession, seed_data) -> AsyncGenerator[AsyncClient]:
    async for ac in _client_for(db, WORKER_USER):
        yield ac


@pytest.fixture
async def admin_client(db: AsyncSession, seed_data) -> AsyncGenerator[AsyncClient]:
    async for ac in _client_for(db, ADMIN):
        yield ac
