from __future__ import annotations

import pytest

from tablemap.core.where import apply, conditions_for
from tablemap.errors import UnknownColumn, UnknownOperator
from tablemap.registry import build_descriptor
from tablemap.sql import Condition, Table


@pytest.fixture
def descriptor():
    return build_descriptor({"name": "person", "columns": ["name", "age", "deletedAt"]})


def test_scalar_is_equality(descriptor) -> None:
    assert conditions_for(descriptor, {"name": "Jim"}, strict=True) == [Condition("name", "eq", "Jim")]


def test_operator_mapping_translates_friendly_names(descriptor) -> None:
    conditions = conditions_for(descriptor, {"age": {"gt": 20, "lte": 32}, "deletedAt": {"not": None}})

    assert conditions == [
        Condition("age", "gt", 20),
        Condition("age", "lte", 32),
        Condition("deleted_at", "is_not_null"),
    ]


@pytest.mark.parametrize("operator", ["eq", "is", "eql", "equals"])
def test_equality_aliases_with_none_become_is_null(descriptor, operator: str) -> None:
    assert conditions_for(descriptor, {"deletedAt": {operator: None}}) == [
        Condition("deleted_at", "is_null")
    ]


def test_scalar_none_becomes_is_null(descriptor) -> None:
    assert conditions_for(descriptor, {"deletedAt": None}) == [Condition("deleted_at", "is_null")]


def test_list_values_and_set_operators(descriptor) -> None:
    conditions = conditions_for(
        descriptor,
        {"id": [1, 2], "age": {"notIn": (3, 4)}, "name": {"notLike": "J%"}},
    )

    assert conditions == [
        Condition("id", "in", [1, 2]),
        Condition("age", "not_in", [3, 4]),
        Condition("name", "not_like", "J%"),
    ]


def test_unknown_field_skipped_or_rejected(descriptor) -> None:
    assert conditions_for(descriptor, {"nmae": "Jim"}, strict=False) == []

    with pytest.raises(UnknownColumn):
        conditions_for(descriptor, {"nmae": "Jim"}, strict=True)


def test_unknown_operator_raises(descriptor) -> None:
    with pytest.raises(UnknownOperator):
        conditions_for(descriptor, {"age": {"between": (1, 2)}})


def test_apply_renders_parameterized_sql(descriptor) -> None:
    table = Table(descriptor.table_name, descriptor.column_sources)

    statement = apply(descriptor, table.select(), {"age": {"gt": 20, "lt": 32}}, strict=True)
    query = statement.render("asyncpg")

    text = " ".join(query.text.split())
    assert text.startswith("SELECT * FROM people WHERE people.age > $1")
    assert "people.age < $2" in text
    assert query.values == (20, 32)
