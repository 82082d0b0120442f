"""
Records and their hidden original-value snapshots.

A ``Record`` is a plain ``dict`` of friendly field names, so it serializes and
compares like any mapping. The values it had when it was last loaded from or
written to storage live in a side table keyed by record identity; the entry is
dropped automatically when the record is garbage collected.
"""

from __future__ import annotations

import copy
import weakref
from typing import Any, Dict, Mapping, Optional


class Record(dict):
    """One table row keyed by friendly field names."""

    __slots__ = ("__weakref__",)


_snapshots: Dict[int, Dict[str, Any]] = {}


def _forget(key: int) -> None:
    _snapshots.pop(key, None)


def set_snapshot(record: Record, snapshot: Mapping[str, Any]) -> None:
    key = id(record)
    if key not in _snapshots:
        weakref.finalize(record, _forget, key)
    _snapshots[key] = copy.deepcopy(dict(snapshot))


def get_snapshot(record: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """Return the snapshot for ``record`` or None for caller-built mappings."""
    if not isinstance(record, Record):
        return None
    return _snapshots.get(id(record))


def carry_snapshot(source: Mapping[str, Any], target: Record) -> None:
    snapshot = get_snapshot(source)
    if snapshot is not None:
        set_snapshot(target, snapshot)


def clone(record: Mapping[str, Any]) -> Record:
    """Deep copy of the values that keeps the snapshot; nothing nested is shared."""
    copied = Record((key, copy.deepcopy(value)) for key, value in record.items())
    carry_snapshot(record, copied)
    return copied


__all__ = ["Record", "carry_snapshot", "clone", "get_snapshot", "set_snapshot"]
