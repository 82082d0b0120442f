from __future__ import annotations

import pytest

from tablemap.sql import Condition, Increment, Now, Raw, Table

people = Table("people", ("id", "name", "age", "revision"))


def _flat(text: str) -> str:
    return " ".join(text.split())


def test_select_with_filters_order_and_paging() -> None:
    statement = (
        people.select("id", "name")
        .where(Condition("age", "gte", 18), Condition("name", "like", "J%"))
        .order_by("age", "desc")
        .limit(10)
        .offset(20)
    )

    query = statement.render("asyncpg")
    text = _flat(query.text)

    assert text.startswith("SELECT people.id, people.name FROM people WHERE people.age >= $1")
    assert "people.name LIKE $2" in text
    assert "ORDER BY people.age DESC" in text
    assert "LIMIT $3" in text and "OFFSET $4" in text
    assert query.values == (18, "J%", 10, 20)


def test_psycopg_uses_named_parameters() -> None:
    query = people.select().where(Condition("name", "eq", "Jim")).render("psycopg")

    assert _flat(query.text).startswith("SELECT * FROM people WHERE people.name = %(name_1)s")
    assert query.values == {"name_1": "Jim"}


def test_in_and_null_conditions() -> None:
    statement = people.select().where(
        Condition("id", "in", [1, 2]),
        Condition("age", "not_in", [3]),
        Condition("name", "is_not_null"),
    )

    query = statement.render("asyncpg")
    text = _flat(query.text)

    assert "people.id IN ($1" in text
    assert "NOT IN ($3" in text
    assert "people.name IS NOT NULL" in text
    assert query.values == (1, 2, 3)


def test_insert_uses_server_clock() -> None:
    query = people.insert({"name": "Jim", "created_at": Now(), "revision": 1}).render("asyncpg")
    text = _flat(query.text)

    assert text.startswith("INSERT INTO people (")
    assert "now()" in text
    assert text.endswith("RETURNING *")
    assert query.values == ("Jim", 1)


def test_insert_without_values_uses_defaults() -> None:
    assert _flat(people.insert({}).render().text) == "INSERT INTO people DEFAULT VALUES RETURNING *"


def test_update_with_increment_and_guard() -> None:
    statement = people.update({"age": 26, "revision": Increment("revision")}).where(
        Condition("id", "eq", 1), Condition("revision", "eq", 1)
    )

    query = statement.render("asyncpg")
    text = _flat(query.text)

    assert text.startswith("UPDATE people SET age=$1")
    assert "revision=(people.revision + $2" in text
    assert "WHERE people.id = $3" in text and "people.revision = $4" in text
    assert text.endswith("RETURNING *")
    assert query.values == (26, 1, 1, 1)


def test_update_requires_values() -> None:
    with pytest.raises(ValueError):
        people.update({})


def test_delete_returns_rows() -> None:
    query = people.delete().where(Condition("id", "eq", 3)).render("asyncpg")
    text = _flat(query.text)

    assert text.startswith("DELETE FROM people WHERE people.id = $1")
    assert text.endswith("RETURNING *")
    assert query.values == (3,)


def test_identifiers_are_quoted_when_needed() -> None:
    assert _flat(Table('we"ird', ("a",)).select().render().text) == 'SELECT * FROM "we""ird"'

    accounts = Table("accounts", ("accountId",))
    assert _flat(accounts.select("accountId").render().text) == 'SELECT accounts."accountId" FROM accounts'


def test_raw_binds_named_parameters_per_driver() -> None:
    raw = Raw("SELECT :a + :b AS total", {"a": 1, "b": 2})

    numeric = raw.render("asyncpg")
    assert "$1" in numeric.text and "$2" in numeric.text
    assert numeric.values == (1, 2)

    named = raw.render("psycopg")
    assert "%(a)s" in named.text and "%(b)s" in named.text
    assert named.values == {"a": 1, "b": 2}


def test_raw_escapes_percent_for_psycopg() -> None:
    assert Raw("SELECT 'a%b' AS v").render("psycopg").text == "SELECT 'a%%b' AS v"


def test_unknown_operator_driver_and_direction_rejected() -> None:
    with pytest.raises(ValueError):
        Condition("age", "between", (1, 2))
    with pytest.raises(ValueError):
        people.select().render("sqlite3")
    with pytest.raises(ValueError):
        people.select().order_by("age", "sideways")
