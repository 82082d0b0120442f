from __future__ import annotations

from types import SimpleNamespace

from tablemap.infrastructure.dialect import is_duplicate_key_error, parse_duplicate_key_error


class _PsycopgStyleError(Exception):
    sqlstate = "23505"
    diag = SimpleNamespace(message_detail="Key (email)=(jim@example.com) already exists.")


class _AsyncpgStyleError(Exception):
    sqlstate = "23505"
    detail = "Key (first_name, last_name)=(Jim, Smith) already exists."


class _OtherError(Exception):
    sqlstate = "23503"


def test_detects_unique_violations_by_sqlstate() -> None:
    assert is_duplicate_key_error(_PsycopgStyleError())
    assert is_duplicate_key_error(_AsyncpgStyleError())
    assert not is_duplicate_key_error(_OtherError())
    assert not is_duplicate_key_error(ValueError("plain"))


def test_parses_key_and_value_from_detail() -> None:
    assert parse_duplicate_key_error(_PsycopgStyleError()) == ("email", "jim@example.com")
    assert parse_duplicate_key_error(_AsyncpgStyleError()) == ("first_name, last_name", "Jim, Smith")
    assert parse_duplicate_key_error(_OtherError()) is None
