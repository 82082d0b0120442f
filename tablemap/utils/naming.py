"""
Name derivation helpers: column sources, table names, foreign keys.

The inflection rules are deliberately small; anything irregular should be
configured explicitly on the model (``source``, ``table_name``, ``foreign_key``).
"""

from __future__ import annotations

import re

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")

_IRREGULAR = {
    "person": "people",
    "child": "children",
    "man": "men",
    "woman": "women",
    "mouse": "mice",
}
_IRREGULAR_SINGULAR = {v: k for k, v in _IRREGULAR.items()}


def to_underscore(name: str) -> str:
    """``accountId`` / ``account-id`` -> ``account_id``."""
    return _CAMEL_RE.sub("_", name).replace("-", "_").lower()


def pluralize(word: str) -> str:
    head, _, last = word.rpartition("_")
    prefix = head + "_" if head else ""
    if last in _IRREGULAR:
        return prefix + _IRREGULAR[last]
    if re.search(r"[^aeiou]y$", last):
        return prefix + last[:-1] + "ies"
    if re.search(r"(s|x|z|ch|sh)$", last):
        return prefix + last + "es"
    return prefix + last + "s"


def singularize(word: str) -> str:
    head, _, last = word.rpartition("_")
    prefix = head + "_" if head else ""
    if last in _IRREGULAR_SINGULAR:
        return prefix + _IRREGULAR_SINGULAR[last]
    if last.endswith("ies") and len(last) > 3:
        return prefix + last[:-3] + "y"
    if re.search(r"(ses|xes|zes|ches|shes)$", last):
        return prefix + last[:-2]
    if last.endswith("s") and not last.endswith("ss"):
        return prefix + last[:-1]
    return word


def table_name_for(name: str, namespace: str | None = None) -> str:
    """``person`` in namespace ``sqlTest`` -> ``sql_test_people``."""
    table = pluralize(to_underscore(name))
    if namespace:
        return f"{to_underscore(namespace)}_{table}"
    return table


__all__ = ["pluralize", "singularize", "table_name_for", "to_underscore"]
