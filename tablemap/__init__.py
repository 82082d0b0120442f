"""
tablemap - an asynchronous table-mapping layer for PostgreSQL.

Models are declared once against a ``Context`` and expose a small record
lifecycle surface:

- get / mget / first / all for reads, with batched relation includes
- save with validation, hooks, a transaction envelope and an optimistic guard
- remove, modify and a raw query escape hatch

Records are plain dicts keyed by friendly column names; the snapshot used to
compute change-sets is kept out of band.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from tablemap.config import Settings, get_settings
from tablemap.domain import ColumnSpec, ModelDescriptor, Record, RelationSpec
from tablemap.errors import (
    Conflict,
    ConfigurationError,
    GuardConflict,
    NotFound,
    RetryExhausted,
    TablemapError,
    TimedOut,
    Unknown,
    UnknownColumn,
    UnknownOperator,
    UnsupportedInclude,
    ValidationFailed,
    status_code_for,
)
from tablemap.infrastructure import create_client
from tablemap.model import Model
from tablemap.registry import Context, create
from tablemap.sql import Condition, Increment, Now, Raw, Table
from tablemap.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Models
    "Context",
    "Model",
    "create",
    "create_client",
    # Domain types
    "ColumnSpec",
    "ModelDescriptor",
    "Record",
    "RelationSpec",
    # Statements
    "Condition",
    "Increment",
    "Now",
    "Raw",
    "Table",
    # Errors
    "TablemapError",
    "NotFound",
    "Conflict",
    "GuardConflict",
    "ValidationFailed",
    "TimedOut",
    "RetryExhausted",
    "UnsupportedInclude",
    "UnknownColumn",
    "UnknownOperator",
    "ConfigurationError",
    "Unknown",
    "status_code_for",
    # Logging
    "configure_logging",
    "get_logger",
]
