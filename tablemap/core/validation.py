"""
Record validation.

Rules are a tagged variant: ``NamedRule`` entries dispatch through the static
``NAMED_RULES`` table, ``CustomRule`` entries call ``fn(record, field, context)``.
Failures coalesce into one entry per field:

    {"field": "age", "value": None, "expected": ["is_int", "not_null"],
     "failed": ["is_int", "not_null"]}

After the per-field rules, the descriptor's ``validate_record(record, context)``
callback runs for cross-field checks and reports through the same context.
"""

from __future__ import annotations

import re
import uuid
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from tablemap.domain.models import CustomRule, ModelDescriptor, NamedRule, Rule
from tablemap.errors import ConfigurationError, ValidationFailed
from tablemap.utils.naming import to_underscore

_INT_RE = re.compile(r"^[-+]?\d+$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_URL_RE = re.compile(r"^(https?|ftp)://[^\s/$.?#].[^\s]*$", re.IGNORECASE)


def _is_int(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, str) and bool(_INT_RE.match(value))


def _is_float(value: Any) -> bool:
    if isinstance(value, bool) or value is None:
        return False
    if isinstance(value, (int, float, Decimal)):
        return True
    try:
        float(value)
    except (TypeError, ValueError):
        return False
    return True


def _is_decimal(value: Any) -> bool:
    if isinstance(value, bool) or value is None:
        return False
    try:
        Decimal(str(value))
    except InvalidOperation:
        return False
    return True


def _is_uuid(value: Any) -> bool:
    if isinstance(value, uuid.UUID):
        return True
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


def _length(value: Any, minimum: int, maximum: Optional[int] = None) -> bool:
    if value is None:
        return False
    size = len(value) if isinstance(value, (str, list, tuple, dict)) else len(str(value))
    return size >= minimum and (maximum is None or size <= maximum)


def _bounded(compare: Callable[[float, float], bool]) -> Callable[[Any, Any], bool]:
    def check(value: Any, limit: Any) -> bool:
        if not _is_float(value):
            return False
        return compare(float(value), float(limit))

    return check


def _text(predicate: Callable[[str], bool]) -> Callable[[Any], bool]:
    def check(value: Any) -> bool:
        return isinstance(value, str) and predicate(value)

    return check


NAMED_RULES: Dict[str, Callable[..., bool]] = {
    "not_null": lambda value: value is not None,
    "is_null": lambda value: value is None,
    "not_empty": lambda value: value is not None and str(value).strip() != "",
    "is_int": _is_int,
    "is_numeric": _is_int,
    "is_float": _is_float,
    "is_decimal": _is_decimal,
    "is_alpha": _text(str.isalpha),
    "is_alphanumeric": _text(str.isalnum),
    "is_email": _text(lambda v: bool(_EMAIL_RE.match(v))),
    "is_url": _text(lambda v: bool(_URL_RE.match(v))),
    "is_uuid": _is_uuid,
    "len": _length,
    "min": _bounded(lambda v, limit: v >= limit),
    "max": _bounded(lambda v, limit: v <= limit),
    "is_in": lambda value, options: value in options,
    "not_in": lambda value, options: value not in options,
    "equals": lambda value, expected: value == expected,
    "contains": lambda value, part: isinstance(value, str) and part in value,
    "not_contains": lambda value, part: not (isinstance(value, str) and part in value),
    "matches": lambda value, pattern, flags=0: isinstance(value, str)
    and re.search(pattern, value, flags) is not None,
}


def canonical_rule_name(name: str) -> str:
    """Accept ``isInt`` as well as ``is_int``."""
    canonical = to_underscore(name)
    if canonical not in NAMED_RULES:
        raise ConfigurationError(
            f"Unknown validation rule '{name}'. Available: {', '.join(sorted(NAMED_RULES))}"
        )
    return canonical


def normalize_rule(spec: Any) -> Rule:
    """
    Turn a rule shorthand into a tagged rule.

    ``"not_null"`` -> NamedRule, ``("len", 1, 10)`` -> NamedRule with args,
    a callable -> CustomRule.
    """
    if isinstance(spec, (NamedRule, CustomRule)):
        return spec
    if isinstance(spec, str):
        return NamedRule(name=canonical_rule_name(spec))
    if isinstance(spec, (list, tuple)) and spec and isinstance(spec[0], str):
        return NamedRule(name=canonical_rule_name(spec[0]), args=tuple(spec[1:]))
    if callable(spec):
        return CustomRule(fn=spec)
    raise ConfigurationError(f"Unsupported validation rule: {spec!r}")


class ValidationContext:
    """
    Accumulates failures for one record.

    Custom rules and the descriptor-level ``validate_record`` callback report
    through ``fail`` or ``check``.
    """

    def __init__(self, descriptor: ModelDescriptor, record: Mapping[str, Any]) -> None:
        self.descriptor = descriptor
        self.record = record
        self.errors: List[Dict[str, Any]] = []
        self._field: Optional[str] = None
        self._rule: Any = None

    def _expected(self, field: str) -> List[Any]:
        return [rule.label for rule in self.descriptor.validations.get(field, ())]

    def fail(self, message: Optional[str] = None, field: Optional[str] = None, rule: Any = None) -> None:
        field = field or self._field
        rule = rule if rule is not None else self._rule
        if field is None:
            self.errors.append({"message": message or "Validation failed."})
            return

        for entry in self.errors:
            if entry.get("field") == field:
                if rule is not None and rule not in entry["failed"]:
                    entry["failed"].append(rule)
                if message:
                    entry.setdefault("messages", []).append(message)
                return

        entry: Dict[str, Any] = {
            "field": field,
            "value": self.record.get(field),
            "expected": self._expected(field) or ([rule] if rule is not None else []),
            "failed": [rule] if rule is not None else [],
        }
        if message:
            entry["messages"] = [message]
        self.errors.append(entry)

    def check(self, field: str, spec: Any, message: Optional[str] = None) -> bool:
        """Evaluate one rule shorthand against ``record[field]``; record a failure if it fails."""
        rule = normalize_rule(spec)
        previous = (self._field, self._rule)
        self._field, self._rule = field, rule.label
        try:
            passed = _apply(rule, self.record, field, self)
            if not passed:
                self.fail(message, field=field, rule=rule.label)
            return passed
        finally:
            self._field, self._rule = previous


def _apply(rule: Rule, record: Mapping[str, Any], field: str, context: ValidationContext) -> bool:
    if isinstance(rule, NamedRule):
        return bool(NAMED_RULES[rule.name](record.get(field), *rule.args))
    errors_before = sum(len(e.get("failed", ())) + len(e.get("messages", ())) for e in context.errors)
    result = rule.fn(record, field, context)
    errors_after = sum(len(e.get("failed", ())) + len(e.get("messages", ())) for e in context.errors)
    # A custom rule fails by returning False or by reporting through the context.
    return result is not False and errors_after == errors_before


def collect_errors(descriptor: ModelDescriptor, record: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Run every declared rule and the record-level callback; return the failure list."""
    context = ValidationContext(descriptor, record)

    for field, rules in descriptor.validations.items():
        for rule in rules:
            context._field, context._rule = field, rule.label
            if not _apply(rule, record, field, context):
                context.fail(field=field, rule=rule.label)

    context._field, context._rule = None, None
    if descriptor.validate_record is not None:
        descriptor.validate_record(record, context)

    return context.errors


def validate(descriptor: ModelDescriptor, record: Mapping[str, Any]) -> None:
    """Raise ``ValidationFailed`` carrying every failure when the record is invalid."""
    errors = collect_errors(descriptor, record)
    if errors:
        raise ValidationFailed(errors)


def normalize_rules(specs: Sequence[Any]) -> tuple:
    return tuple(normalize_rule(spec) for spec in specs)


__all__ = [
    "NAMED_RULES",
    "ValidationContext",
    "canonical_rule_name",
    "collect_errors",
    "normalize_rule",
    "normalize_rules",
    "validate",
]
