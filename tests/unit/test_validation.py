from __future__ import annotations

import pytest

from tablemap.core.validation import (
    NAMED_RULES,
    canonical_rule_name,
    collect_errors,
    normalize_rule,
    validate,
)
from tablemap.domain.models import CustomRule, NamedRule
from tablemap.errors import ConfigurationError, ValidationFailed
from tablemap.registry import build_descriptor


def _descriptor(validations, validate_record=None):
    config = {"name": "person", "columns": ["name", "age", "email"], "validations": validations}
    if validate_record is not None:
        config["validate"] = validate_record
    return build_descriptor(config)


def test_rule_shorthands_normalize_to_tagged_variants() -> None:
    assert normalize_rule("isInt") == NamedRule(name="is_int")
    assert normalize_rule(("len", 1, 10)) == NamedRule(name="len", args=(1, 10))

    def positive(record, field, context):
        return record.get(field, 0) > 0

    rule = normalize_rule(positive)
    assert isinstance(rule, CustomRule)
    assert rule.label == "positive"


def test_unknown_rule_name_is_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        canonical_rule_name("isPrime")
    with pytest.raises(ConfigurationError):
        normalize_rule(42)


def test_failures_coalesce_per_field() -> None:
    descriptor = _descriptor({"age": ["is_int", "not_null", ("min", 0)], "name": [("len", 2)]})

    errors = collect_errors(descriptor, {"name": "J"})

    assert errors == [
        {
            "field": "age",
            "value": None,
            "expected": ["is_int", "not_null", ["min", 0]],
            "failed": ["is_int", "not_null", ["min", 0]],
        },
        {"field": "name", "value": "J", "expected": [["len", 2]], "failed": [["len", 2]]},
    ]


def test_passing_record_has_no_errors() -> None:
    descriptor = _descriptor({"age": ["is_int"], "email": ["is_email"]})

    validate(descriptor, {"age": 30, "email": "jim@example.com"})


def test_custom_rule_can_fail_by_return_or_by_reporting() -> None:
    def returns_false(record, field, context):
        return False

    def reports(record, field, context):
        context.fail("too loud")

    descriptor = _descriptor({"name": [returns_false], "email": [reports]})

    errors = collect_errors(descriptor, {"name": "Jim", "email": "x"})

    assert errors[0]["failed"] == ["returns_false"]
    assert errors[1]["field"] == "email"
    assert errors[1]["failed"] == ["reports"]
    assert errors[1]["messages"] == ["too loud"]


def test_record_level_callback_reports_through_context() -> None:
    def cross_field(record, context):
        if record.get("name") == record.get("email"):
            context.fail("name and email must differ", field="email", rule="differs")
        context.check("age", "not_null")
        context.fail("always")

    descriptor = _descriptor({}, validate_record=cross_field)

    with pytest.raises(ValidationFailed) as excinfo:
        validate(descriptor, {"name": "a", "email": "a"})

    errors = excinfo.value.errors
    assert errors[0] == {
        "field": "email",
        "value": "a",
        "expected": ["differs"],
        "failed": ["differs"],
        "messages": ["name and email must differ"],
    }
    assert errors[1]["field"] == "age"
    assert errors[1]["failed"] == ["not_null"]
    assert errors[2] == {"message": "always"}


@pytest.mark.parametrize(
    ("name", "args", "value", "expected"),
    [
        ("is_int", (), "12", True),
        ("is_int", (), "1.5", False),
        ("is_int", (), True, False),
        ("is_float", (), "1.5", True),
        ("is_decimal", (), "nope", False),
        ("is_alpha", (), "abc", True),
        ("is_alphanumeric", (), "ab-1", False),
        ("is_url", (), "https://example.com/x", True),
        ("is_uuid", (), "6f1c1a7e-4c8b-4b3e-9a55-2f8d1c0b9e11", True),
        ("not_empty", (), "  ", False),
        ("len", (2, 3), "abcd", False),
        ("max", (10,), 11, False),
        ("is_in", (("a", "b"),), "a", True),
        ("not_in", (("a", "b"),), "a", False),
        ("equals", (3,), 3, True),
        ("contains", ("ll",), "hello", True),
        ("not_contains", ("ll",), "hello", False),
        ("matches", (r"^\d{3}$",), "123", True),
    ],
)
def test_named_rules(name, args, value, expected) -> None:
    assert bool(NAMED_RULES[name](value, *args)) is expected
