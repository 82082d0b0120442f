"""
Utilities package for tablemap.

Exports shared helpers for logging and naming conventions. Keep this package
lightweight and free of engine logic.
"""

from tablemap.utils.logging import configure_logging, get_logger
from tablemap.utils.naming import pluralize, singularize, table_name_for, to_underscore

__all__ = [
    "configure_logging",
    "get_logger",
    "pluralize",
    "singularize",
    "table_name_for",
    "to_underscore",
]
