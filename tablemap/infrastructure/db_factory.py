"""
Database client factory for tablemap.

Builds a connected ``PsycopgClient`` or ``AsyncpgClient`` from settings (or an
explicit DSN). Opening the pool is retried with exponential backoff for
transient connection failures using tenacity; when every attempt fails the
caller gets ``RetryExhausted`` (503) chained from the last driver error.

Clients are not cached here: register them on a ``tablemap.Context`` and let
the context own their lifecycle.
"""

from __future__ import annotations

from typing import Optional

import psycopg
from tenacity import AsyncRetrying, RetryError, retry_if_exception_type, stop_after_attempt, wait_exponential

from tablemap.config import Settings, get_settings
from tablemap.errors import RetryExhausted
from tablemap.infrastructure.clients import AsyncpgClient, Client, PsycopgClient
from tablemap.utils.logging import get_logger

log = get_logger(__name__)

DRIVERS = ("psycopg", "asyncpg")

CONNECT_ATTEMPTS = 3
CONNECT_WAIT = wait_exponential(multiplier=1, min=1, max=10)
TRANSIENT_ERRORS = (psycopg.OperationalError, psycopg.InterfaceError, OSError, ConnectionError)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


async def _connect(driver: str, dsn: str, min_size: int, max_size: int) -> Client:
    if driver == "asyncpg":
        return await AsyncpgClient.connect(dsn, min_size=min_size, max_size=max_size)
    client = PsycopgClient(conninfo=dsn, min_size=min_size, max_size=max_size)
    return await client.open()


async def _connect_with_retry(driver: str, dsn: str, min_size: int, max_size: int) -> Client:
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(CONNECT_ATTEMPTS),
            wait=CONNECT_WAIT,
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
        ):
            with attempt:
                client = await _connect(driver, dsn, min_size, max_size)
    except RetryError as exc:
        log.error(
            "Could not open database client",
            extra={"driver": driver, "attempts": CONNECT_ATTEMPTS},
        )
        raise RetryExhausted(
            f"Could not connect with {driver} after {CONNECT_ATTEMPTS} attempts"
        ) from exc.last_attempt.exception()
    return client


async def create_client(
    settings: Optional[Settings] = None,
    dsn: Optional[str] = None,
    driver: Optional[str] = None,
) -> Client:
    """
    Create and open a database client with automatic retry.

    Parameters
    ----------
    settings : Settings, optional
        Source of connection parameters and pool sizes. Defaults to get_settings().
    dsn : str, optional
        Explicit connection string; overrides the DSN composed from settings.
    driver : str, optional
        "psycopg" or "asyncpg". Defaults to settings.db_driver.

    Returns
    -------
    Client
        An opened client ready for ``Context.add_client``.

    Raises
    ------
    ValueError
        If the driver name is unknown.
    RetryExhausted
        If a transient connection failure persists through every attempt.
    """
    settings = settings or get_settings()
    driver = driver or settings.db_driver
    if driver not in DRIVERS:
        raise ValueError(f"Unknown driver '{driver}'. Available: {', '.join(DRIVERS)}")

    client = await _connect_with_retry(
        driver,
        dsn or build_dsn(settings),
        settings.db_pool_min_size,
        settings.db_pool_max_size,
    )
    log.info(
        "Database client opened",
        extra={"driver": driver, "host": settings.db_host, "database": settings.db_name},
    )
    return client


__all__ = ["DRIVERS", "build_dsn", "create_client"]
