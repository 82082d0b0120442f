"""
Domain package for tablemap.

Exports the descriptor types and the record container used across the engine.
Keep this package focused on data definitions.
"""

from tablemap.domain.models import (
    GLOBAL_NAMESPACE,
    HOOK_NAMES,
    ColumnSpec,
    CustomRule,
    ModelDescriptor,
    NamedRule,
    RelationSpec,
)
from tablemap.domain.record import Record, clone, get_snapshot, set_snapshot

__all__ = [
    "GLOBAL_NAMESPACE",
    "HOOK_NAMES",
    "ColumnSpec",
    "CustomRule",
    "ModelDescriptor",
    "NamedRule",
    "RelationSpec",
    "Record",
    "clone",
    "get_snapshot",
    "set_snapshot",
]
