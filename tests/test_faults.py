from pathlib import Path
from typing import AsyncGenerator, Iterator, List

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from loguru import logger

from app.api.v1.schools import service as school_service
from app.auth import services as auth_services
from app.core import logging_config
from app.main import stop_process


@pytest.fixture()
async def faulty_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Client that receives the 500 response instead of the re-raised exception."""
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def log_file(tmp_path: Path) -> Iterator[Path]:
    """Route application logging through a real file sink for one test."""
    path = tmp_path / "app.log"
    logging_config._configured = False
    logging_config.setup_logging(level="DEBUG", log_file=str(path))
    yield path
    logger.remove()
    logging_config._configured = False
    logging_config.setup_logging()


async def test_unhandled_error_returns_500_and_is_fatal(
    faulty_client: AsyncClient, superadmin_token, school, fatal_errors: List[BaseException], monkeypatch
) -> None:
    async def broken_lookup(db, school_id):
        raise RuntimeError("database went away")

    monkeypatch.setattr(school_service, "get_active_school", broken_lookup)
    response = await faulty_client.get(
        "/api/school/getSchool", params={"schoolId": school["id"]}, headers={"token": superadmin_token}
    )

    assert response.status_code == 500
    assert response.json() == {"ok": False, "errors": "Internal server error"}
    assert len(fatal_errors) == 1
    assert isinstance(fatal_errors[0], RuntimeError)


async def test_business_failures_are_not_fatal(api, superadmin_token, fatal_errors: List[BaseException]) -> None:
    response = await api("GET", "school/getSchool", token=superadmin_token)
    assert response.status_code == 400
    assert fatal_errors == []


def test_stop_process_signals_shutdown(monkeypatch) -> None:
    sent = []
    monkeypatch.setattr("app.main.os.kill", lambda pid, sig: sent.append((pid, sig)))
    stop_process(RuntimeError("boom"))
    assert len(sent) == 1
    assert sent[0][1].name == "SIGTERM"


async def test_fault_traceback_does_not_log_password(
    faulty_client: AsyncClient, superadmin, log_file: Path, monkeypatch
) -> None:
    def broken_verify(plain_password: str, password_hash: str) -> bool:
        raise RuntimeError("bcrypt backend unavailable")

    monkeypatch.setattr(auth_services, "verify_password", broken_verify)
    response = await faulty_client.post(
        "/api/user/login", json={"email": "root@example.com", "password": "RootPass123"}
    )
    assert response.status_code == 500

    await logger.complete()
    text = log_file.read_text()
    assert "Unhandled error on POST /api/user/login" in text
    assert "bcrypt backend unavailable" in text
    assert "RootPass123" not in text
