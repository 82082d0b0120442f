from __future__ import annotations

import asyncio
import sys
from typing import Optional

import typer

from tablemap.config import get_settings
from tablemap.infrastructure import create_client
from tablemap.sql import Raw
from tablemap.utils.logging import configure_logging

app = typer.Typer(help="tablemap CLI.")


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"driver={settings.db_driver} pool={settings.db_pool_min_size}-{settings.db_pool_max_size} "
        f"strict_where={settings.strict_where} log_queries={settings.log_queries}"
    )


async def _ping(dsn: Optional[str], driver: Optional[str]) -> int:
    client = await create_client(dsn=dsn, driver=driver)
    try:
        result = await client.execute(Raw("SELECT 1 AS ok"))
    finally:
        await client.close()
    return result.rows[0]["ok"]


@app.command()
def ping(
    dsn: Optional[str] = typer.Option(None, "--dsn", help="Connection string (default from settings)."),
    driver: Optional[str] = typer.Option(
        None, "--driver", "-d", help="Driver to use: psycopg or asyncpg (default from settings)."
    ),
) -> None:
    """
    Open a client and run SELECT 1.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    try:
        ok = asyncio.run(_ping(dsn, driver))
    except Exception as exc:
        typer.echo(f"Ping failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"OK ({ok})")


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
