import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from aetherra.core.database import Base, get_db, import_models
from aetherra.dependencies.cache import TTLCache
from aetherra.dependencies.rate_limiter import FixedWindowRateLimiter
from main import app

TEST_PASSWORD = "testpassword"


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    import_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.dashboard_cache = TTLCache("dashboard", default_ttl=60)
    app.state.rate_limiter = FixedWindowRateLimiter(window_seconds=60)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


async def register_and_login(client: AsyncClient, email: str) -> dict:
    response = await client.post(
        "/api/v1/auth/register",
        json={"email": email, "full_name": "Test User", "password": TEST_PASSWORD},
    )
    assert response.status_code == 201
    login_response = await client.post(
        "/api/v1/auth/login",
        json={"email": email, "password": TEST_PASSWORD},
    )
    assert login_response.status_code == 200
    return {"Authorization": f"Bearer {login_response.json()['access_token']}"}


@pytest_asyncio.fixture
async def auth_headers(client):
    return await register_and_login(client, "alice@example.com")


@pytest_asyncio.fixture
async def other_headers(client):
    return await register_and_login(client, "bob@example.com")


@pytest.fixture
def electricity_payload():
    return {"inputs": {"type": "electricity", "kwh": 5000, "source": "grid"}}
