from __future__ import annotations

import pytest
from tenacity import wait_none

from tablemap.config import Settings
from tablemap.errors import RetryExhausted
from tablemap.infrastructure import db_factory

from tests.fakes import FakeClient


@pytest.fixture
def no_wait(monkeypatch) -> None:
    monkeypatch.setattr(db_factory, "CONNECT_WAIT", wait_none())


def test_build_dsn_from_settings() -> None:
    settings = Settings(db_user="u", db_password="p", db_host="db", db_port=6543, db_name="app")

    assert db_factory.build_dsn(settings) == "postgresql://u:p@db:6543/app"


@pytest.mark.asyncio
async def test_transient_failures_are_retried(monkeypatch, no_wait) -> None:
    calls = []
    client = FakeClient()

    async def flaky(driver, dsn, min_size, max_size):
        calls.append(driver)
        if len(calls) < 2:
            raise ConnectionRefusedError("starting up")
        return client

    monkeypatch.setattr(db_factory, "_connect", flaky)

    opened = await db_factory.create_client(settings=Settings(), driver="asyncpg")

    assert opened is client
    assert calls == ["asyncpg", "asyncpg"]


@pytest.mark.asyncio
async def test_exhausted_retries_raise_retry_exhausted(monkeypatch, no_wait) -> None:
    calls = []

    async def down(driver, dsn, min_size, max_size):
        calls.append(driver)
        raise ConnectionRefusedError("no server")

    monkeypatch.setattr(db_factory, "_connect", down)

    with pytest.raises(RetryExhausted) as excinfo:
        await db_factory.create_client(settings=Settings(), driver="psycopg")

    assert len(calls) == db_factory.CONNECT_ATTEMPTS
    assert excinfo.value.code == 503
    assert isinstance(excinfo.value.__cause__, ConnectionRefusedError)


@pytest.mark.asyncio
async def test_non_transient_errors_are_not_retried(monkeypatch, no_wait) -> None:
    calls = []

    async def misconfigured(driver, dsn, min_size, max_size):
        calls.append(driver)
        raise ValueError("bad dsn")

    monkeypatch.setattr(db_factory, "_connect", misconfigured)

    with pytest.raises(ValueError, match="bad dsn"):
        await db_factory.create_client(settings=Settings(), driver="psycopg")

    assert len(calls) == 1


@pytest.mark.asyncio
async def test_unknown_driver_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown driver"):
        await db_factory.create_client(settings=Settings(), driver="sqlite3")
