"""
Infrastructure package for tablemap.

Centralizes database connectivity concerns (drivers, pooling, dialect error
predicates). Keep this layer focused on I/O and resource management, decoupled
from the record lifecycle engine.
"""

from tablemap.infrastructure.clients import (
    AsyncpgClient,
    Client,
    Executor,
    PsycopgClient,
    Result,
)
from tablemap.infrastructure.db_factory import build_dsn, create_client
from tablemap.infrastructure.dialect import is_duplicate_key_error, parse_duplicate_key_error

__all__ = [
    "AsyncpgClient",
    "Client",
    "Executor",
    "PsycopgClient",
    "Result",
    "build_dsn",
    "create_client",
    "is_duplicate_key_error",
    "parse_duplicate_key_error",
]
