"""
Centralized Test Configuration.
"""

from types import SimpleNamespace

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from travel_backend.app.main import app
from travel_backend.app.core.dependencies import get_file_store
from travel_backend.app.core.jwt import create_access_token
from travel_backend.app.db.session import get_db, Base
from travel_backend.app.domain.authorization import Actor
from travel_backend.app.models.enums import UserRole
from travel_backend.app.models.user import User
from travel_backend.app.services.file_storage import LocalFileStore

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine.sync_engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign keys and let SQLAlchemy drive transactions (needed for SAVEPOINT)."""
    dbapi_conn.isolation_level = None
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@event.listens_for(engine.sync_engine, "begin")
def do_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def file_store(tmp_path):
    return LocalFileStore(tmp_path / "receipts")


@pytest.fixture
def apply_overrides(file_store):
    async def override_get_db():
        async with TestingSessionLocal() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_file_store] = lambda: file_store
    yield
    app.dependency_overrides = {}


@pytest.fixture
async def client(apply_overrides):
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def session_factory():
    return TestingSessionLocal


# Shared session for service-level tests
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
async def users():
    """One account per role; two areas (JKT and SBY)."""
    accounts = SimpleNamespace(
        employee=User(name="Budi Santoso", email="budi@example.com", role=UserRole.EMPLOYEE, area_code="JKT"),
        other_employee=User(name="Siti Rahma", email="siti@example.com", role=UserRole.EMPLOYEE, area_code="SBY"),
        finance_area=User(name="Andi Finance", email="andi@example.com", role=UserRole.FINANCE_AREA, area_code="JKT"),
        other_finance_area=User(name="Dewi Finance", email="dewi@example.com", role=UserRole.FINANCE_AREA, area_code="SBY"),
        finance_regional=User(name="Rina Regional", email="rina@example.com", role=UserRole.FINANCE_REGIONAL, area_code=None),
    )
    async with TestingSessionLocal() as session:
        session.add_all(list(vars(accounts).values()))
        await session.commit()
    return accounts


def actor_of(user: User) -> Actor:
    return Actor(id=user.id, role=user.role, area_code=user.area_code)


@pytest.fixture
def actors(users):
    return SimpleNamespace(**{name: actor_of(user) for name, user in vars(users).items()})


@pytest.fixture
def tokens(users):
    """Bearer headers per role."""
    def header(user: User):
        token = create_access_token({"sub": user.email, "user_id": user.id, "role": user.role.value})
        return {"Authorization": f"Bearer {token}"}
    return SimpleNamespace(**{name: header(user) for name, user in vars(users).items()})

