"""
Error taxonomy for tablemap.

Every failure the engine produces carries a machine-readable ``code`` that
mirrors HTTP status semantics so a calling application can forward it as a
transport-level status. Driver errors that the engine does not recognise are
not wrapped; ``status_code_for`` classifies them as 500.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class TablemapError(Exception):
    """Base class for all classified engine errors."""

    code: int = 500
    kind: str = "Unknown"

    def __init__(self, message: str = "", code: Optional[int] = None) -> None:
        if code is not None:
            self.code = code
        super().__init__(f"({self.code}) {message}" if message else f"({self.code})")
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "code": self.code, "message": self.message}


class NotFound(TablemapError):
    code = 404
    kind = "NotFound"


class Conflict(TablemapError):
    """
    Optimistic guard mismatch on update, or a unique-constraint violation.

    For unique violations ``conflicts`` holds one ``{key, value, expected}``
    entry describing the offending column.
    """

    code = 409
    kind = "Conflict"

    def __init__(self, message: str = "", conflicts: Optional[List[Dict[str, Any]]] = None) -> None:
        super().__init__(message)
        self.conflicts: List[Dict[str, Any]] = conflicts or []

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["conflicts"] = self.conflicts
        return payload


class GuardConflict(Conflict):
    """The guarded UPDATE matched no row: the record is stale or the where clause failed."""


class ValidationFailed(TablemapError):
    code = 403
    kind = "ValidationFailed"

    def __init__(self, errors: List[Dict[str, Any]], message: str = "Validation did not pass.") -> None:
        super().__init__(message)
        self.errors = errors

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["errors"] = self.errors
        return payload


class TimedOut(TablemapError):
    code = 504
    kind = "TimedOut"


class RetryExhausted(TablemapError):
    """A transient failure persisted through every retry, e.g. opening a connection."""

    code = 503
    kind = "RetryExhausted"


class UnsupportedInclude(TablemapError):
    code = 400
    kind = "UnsupportedInclude"


class UnknownColumn(TablemapError):
    code = 400
    kind = "UnknownColumn"


class UnknownOperator(TablemapError):
    code = 400
    kind = "UnknownOperator"


class ConfigurationError(TablemapError):
    """A model descriptor or registry lookup is malformed."""

    code = 500
    kind = "ConfigurationError"


class Unknown(TablemapError):
    code = 500
    kind = "Unknown"


def status_code_for(exc: BaseException) -> int:
    """Map any exception to its kind code; unclassified errors are 500."""
    if isinstance(exc, TablemapError):
        return exc.code
    return Unknown.code


__all__ = [
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
]
