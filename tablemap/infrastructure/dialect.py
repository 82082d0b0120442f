"""
PostgreSQL error predicates.

Both psycopg and asyncpg expose the five-character SQLSTATE on their
exceptions as ``sqlstate``; the human-readable detail lives in
``err.diag.message_detail`` (psycopg) or ``err.detail`` (asyncpg).
"""

from __future__ import annotations

import re
from typing import Optional, Tuple

UNIQUE_VIOLATION = "23505"

# Key (name)=(Jim) already exists.
_DETAIL_RE = re.compile(r"\(([^)]+)\)=\(([^)]*)\)")


def is_duplicate_key_error(err: BaseException) -> bool:
    return getattr(err, "sqlstate", None) == UNIQUE_VIOLATION


def _detail(err: BaseException) -> Optional[str]:
    diag = getattr(err, "diag", None)
    detail = getattr(diag, "message_detail", None) if diag is not None else None
    return detail or getattr(err, "detail", None)


def parse_duplicate_key_error(err: BaseException) -> Optional[Tuple[str, str]]:
    """Return ``(key, value)`` from a unique violation's detail, if it can be parsed."""
    detail = _detail(err)
    if not detail:
        return None
    match = _DETAIL_RE.search(detail)
    if match is None:
        return None
    return match.group(1), match.group(2)


__all__ = ["UNIQUE_VIOLATION", "is_duplicate_key_error", "parse_duplicate_key_error"]
