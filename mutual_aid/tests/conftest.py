"""
Shared fixtures.

Store and API tests run against an in-memory SQLite database so no server is
needed. A StaticPool keeps every session on the one connection that owns the
in-memory database.
"""
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from mutual_aid.config.settings import settings

# Minimum bcrypt cost keeps password tests fast
settings.BCRYPT_ROUNDS = 4

from mutual_aid.api.main import create_app
from mutual_aid.core.security import get_token_service, hash_password
from mutual_aid.core.user_store import UserStore
from mutual_aid.integrations.geocoder import GeocodingClient
from mutual_aid.models.dtos import GeocodeResult
from mutual_aid.models.enums import UserRole
from mutual_aid.utils.db_session import create_all_tables, get_db_session

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_PASSWORD = "Passw0rdOK"


@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory database with every table created."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_all_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(bind=db_engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Session for direct store tests. Do not hold it open across API calls."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_geocoder():
    geocoder = AsyncMock(spec=GeocodingClient)
    geocoder.geocode.return_value = GeocodeResult(latitude=40.7128, longitude=-74.006)
    return geocoder


@pytest.fixture
def app(session_factory, mock_geocoder):
    application = create_app()

    async def override_get_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db_session] = override_get_db_session
    application.state.geocoder = mock_geocoder
    return application


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def create_user(session_factory):
    """Factory inserting a user directly and returning its id."""

    async def _create(username: str, role: UserRole = UserRole.CONTRIBUTOR, password: str = TEST_PASSWORD) -> int:
        async with session_factory() as session:
            user_id = await UserStore(session).create(
                username=username,
                email=f"{username}@example.org",
                password_hash=hash_password(password),
                role=role,
            )
            await session.commit()
        return user_id

    return _create


@pytest_asyncio.fixture
async def coordinator_headers(create_user):
    user_id = await create_user("coord_one", role=UserRole.COORDINATOR)
    token = get_token_service().issue(user_id=user_id, role=UserRole.COORDINATOR, username="coord_one")
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def contributor_headers(create_user):
    user_id = await create_user("helper_one")
    token = get_token_service().issue(user_id=user_id, role=UserRole.CONTRIBUTOR, username="helper_one")
    return {"Authorization": f"Bearer {token}"}

