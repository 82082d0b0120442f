"""
Column mapping between friendly field names and physical column names.

Only columns present in the input are copied; absent columns are omitted rather
than defaulted so partial (column-pruned) rows map cleanly in both directions.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, Mapping, Optional

from tablemap.domain.models import ColumnSpec, ModelDescriptor


def to_source(descriptor: ModelDescriptor, record: Mapping[str, Any]) -> Dict[str, Any]:
    """Friendly-keyed record -> physical-keyed row."""
    return {c.source: record[c.name] for c in descriptor.columns if c.name in record}


def from_source(descriptor: ModelDescriptor, row: Mapping[str, Any]) -> Dict[str, Any]:
    """Physical-keyed row -> friendly-keyed record."""
    return {c.name: row[c.source] for c in descriptor.columns if c.source in row}


def prune_to_columns(descriptor: ModelDescriptor, obj: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Keep only mapped columns, accepting either naming scheme.

    Friendly names win when both are present. Values are deep-copied so the
    result never shares a nested list or dict with the input.
    """
    pruned: Dict[str, Any] = {}
    for column in descriptor.columns:
        if column.name in obj:
            value = obj[column.name]
        elif column.source in obj:
            value = obj[column.source]
        else:
            continue
        pruned[column.name] = copy.deepcopy(value)
    return pruned


def column_by_name(descriptor: ModelDescriptor, name: str) -> Optional[ColumnSpec]:
    return descriptor.column(name)


def column_source(descriptor: ModelDescriptor, name: str) -> Optional[str]:
    column = descriptor.column(name)
    return column.source if column else None


def source_to_name(descriptor: ModelDescriptor, source: str) -> str:
    """Friendly name for a physical column; unknown sources come back unchanged."""
    for column in descriptor.columns:
        if column.source == source:
            return column.name
    return source


__all__ = [
    "column_by_name",
    "column_source",
    "from_source",
    "prune_to_columns",
    "source_to_name",
    "to_source",
]
