import os

# Settings are read at import time, so the environment goes first.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["LONG_TOKEN_SECRET"] = "test-long-token-secret"
os.environ["SHORT_TOKEN_SECRET"] = "test-short-token-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["CREATE_TABLES_ON_STARTUP"] = "false"
os.environ.pop("REDIS_URL", None)

from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, List, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient, Response  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.core.rate_limit import FixedWindowRateLimiter, MemoryRateLimitStore  # noqa: E402
from app.db.schema_check import ensure_tables  # noqa: E402
from app.db.session import get_db  # noqa: E402
from app.main import create_app  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite://"

ApiCall = Callable[..., Awaitable[Response]]


@pytest.fixture()
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory SQLite database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await ensure_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
def rate_limiter() -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(MemoryRateLimitStore(), max_requests=1000, window_seconds=60)


@pytest.fixture()
def fatal_errors() -> List[BaseException]:
    """Faults the app treated as fatal; stands in for stopping the process."""
    return []


@pytest.fixture()
def app(
    session_factory: async_sessionmaker,
    rate_limiter: FixedWindowRateLimiter,
    fatal_errors: List[BaseException],
) -> FastAPI:
    application = create_app(rate_limiter=rate_limiter, on_fatal=fatal_errors.append)

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db] = override_get_db
    return application


@pytest.fixture()
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def api(client: AsyncClient) -> ApiCall:
    """Call ``/api/{path}`` with an optional ``token`` header."""

    async def call(
        method: str,
        path: str,
        token: Optional[str] = None,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Response:
        headers = {"token": token} if token else {}
        return await client.request(method, f"/api/{path}", headers=headers, json=json, params=params)

    return call


async def _register(api: ApiCall, **payload: Any) -> Dict[str, Any]:
    response = await api("POST", "user/register", json=payload)
    assert response.status_code == 200, response.text
    return response.json()["data"]


@pytest.fixture()
async def superadmin(api: ApiCall) -> Dict[str, Any]:
    """Registered superadmin: ``user``, ``longToken`` and ``shortToken``."""
    return await _register(
        api, username="root", email="root@example.com", password="RootPass123", role="superadmin"
    )


@pytest.fixture()
async def superadmin_token(superadmin: Dict[str, Any]) -> str:
    return superadmin["shortToken"]


@pytest.fixture()
def create_school(api: ApiCall, superadmin_token: str) -> Callable[..., Awaitable[Dict[str, Any]]]:
    async def factory(name: str = "Springfield High", email: str = "office@springfield.example.com") -> Dict[str, Any]:
        response = await api(
            "POST",
            "school/createSchool",
            token=superadmin_token,
            json={"name": name, "address": "1 Main Street", "email": email},
        )
        assert response.status_code == 200, response.text
        return response.json()["data"]["school"]

    return factory


@pytest.fixture()
async def school(create_school) -> Dict[str, Any]:
    return await create_school()


@pytest.fixture()
def login_school_admin(api: ApiCall, superadmin_token: str) -> Callable[..., Awaitable[str]]:
    """Create a school admin for a school, log in and return the session token."""

    async def factory(school_id: str, username: str = "principal", email: str = "principal@example.com") -> str:
        created = await api(
            "POST",
            "user/createSchoolAdmin",
            token=superadmin_token,
            json={"username": username, "email": email, "password": "AdminPass123", "schoolId": school_id},
        )
        assert created.status_code == 200, created.text
        response = await api("POST", "user/login", json={"email": email, "password": "AdminPass123"})
        assert response.status_code == 200, response.text
        return response.json()["data"]["shortToken"]

    return factory


@pytest.fixture()
async def school_admin_token(school: Dict[str, Any], login_school_admin) -> str:
    return await login_school_admin(school["id"])


@pytest.fixture()
def create_classroom(api: ApiCall, superadmin_token: str) -> Callable[..., Awaitable[Dict[str, Any]]]:
    async def factory(school_id: str, name: str = "Room 101", capacity: int = 30) -> Dict[str, Any]:
        response = await api(
            "POST",
            "classroom/createClassroom",
            token=superadmin_token,
            json={"schoolId": school_id, "name": name, "capacity": capacity},
        )
        assert response.status_code == 200, response.text
        return response.json()["data"]["classroom"]

    return factory


@pytest.fixture()
def create_student(api: ApiCall, superadmin_token: str) -> Callable[..., Awaitable[Dict[str, Any]]]:
    async def factory(school_id: str, email: str, classroom_id: Optional[str] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "schoolId": school_id,
            "firstName": "Lisa",
            "lastName": "Simpson",
            "email": email,
        }
        if classroom_id:
            payload["classroomId"] = classroom_id
        response = await api("POST", "student/createStudent", token=superadmin_token, json=payload)
        assert response.status_code == 200, response.text
        return response.json()["data"]["student"]

    return factory
