"""
Declarative predicate -> statement conditions.

    {"name": "Jim"}                     -> name = 'Jim'
    {"age": {"gt": 20, "lt": 32}}       -> age > 20 AND age < 32
    {"deleted_at": None}                -> deleted_at IS NULL
    {"deleted_at": {"eq": None}}        -> deleted_at IS NULL
    {"deleted_at": {"not": None}}       -> deleted_at IS NOT NULL
    {"id": [1, 2, 3]}                   -> id IN (1, 2, 3)

Fields are friendly names and are translated to physical columns. Fields that
do not map to a column are skipped with a warning unless strict mode is on
(``Settings.strict_where`` or ``strict=True``), which raises ``UnknownColumn``.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, TypeVar

from tablemap.config import get_settings
from tablemap.domain.models import ModelDescriptor
from tablemap.errors import UnknownColumn, UnknownOperator
from tablemap.sql import Condition
from tablemap.utils.logging import get_logger

log = get_logger(__name__)

OPERATOR_ALIASES = {
    "eq": "eq",
    "is": "eq",
    "eql": "eq",
    "equals": "eq",
    "not": "ne",
    "ne": "ne",
    "not_equals": "ne",
    "notEquals": "ne",
    "gt": "gt",
    "gte": "gte",
    "lt": "lt",
    "lte": "lte",
    "like": "like",
    "not_like": "not_like",
    "notLike": "not_like",
    "in": "in",
    "not_in": "not_in",
    "notIn": "not_in",
}

S = TypeVar("S")


def _condition(source: str, operator: str, value: Any) -> Condition:
    op = OPERATOR_ALIASES.get(operator)
    if op is None:
        raise UnknownOperator(f"Unknown operator '{operator}' on column '{source}'")
    if value is None and op in ("eq", "ne"):
        return Condition(source, "is_null" if op == "eq" else "is_not_null")
    if op in ("in", "not_in"):
        return Condition(source, op, list(value))
    return Condition(source, op, value)


def conditions_for(
    descriptor: ModelDescriptor,
    predicate: Optional[Mapping[str, Any]],
    strict: Optional[bool] = None,
) -> List[Condition]:
    if strict is None:
        strict = get_settings().strict_where

    conditions: List[Condition] = []
    for field, value in (predicate or {}).items():
        column = descriptor.column(field)
        if column is None:
            if strict:
                raise UnknownColumn(f"Column '{field}' is not defined on model '{descriptor.name}'")
            log.warning(
                "Skipping unknown column in where clause",
                extra={"model": descriptor.name, "field": field},
            )
            continue

        if isinstance(value, Mapping):
            for operator, operand in value.items():
                conditions.append(_condition(column.source, operator, operand))
        elif isinstance(value, (list, tuple, set, frozenset)):
            conditions.append(Condition(column.source, "in", list(value)))
        else:
            conditions.append(_condition(column.source, "eq", value))
    return conditions


def apply(
    descriptor: ModelDescriptor,
    statement: S,
    predicate: Optional[Mapping[str, Any]],
    strict: Optional[bool] = None,
) -> S:
    """Add the predicate's conditions to ``statement`` (mutated and returned)."""
    statement.where(*conditions_for(descriptor, predicate, strict))  # type: ignore[attr-defined]
    return statement


__all__ = ["OPERATOR_ALIASES", "apply", "conditions_for"]
