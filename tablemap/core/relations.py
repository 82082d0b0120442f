"""
Batched relation loading.

One secondary query per relation name per inclusion level, regardless of how
many owning records are being resolved:

    belongs_to   SELECT target WHERE id          IN (<owner foreign keys>)
    has_many     SELECT target WHERE foreign_key IN (<owner ids>)
    has_one      same as has_many, first match only

Include specs:
    "posts"                      one relation
    ["posts", "comments"]        siblings, resolved against the same records
    {"posts": "comments"}        nested, resolved against the fetched posts

Sibling branches touch disjoint relation names and run concurrently. When one
branch fails the others are cancelled before the error reaches the caller.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Dict, List, Mapping

from tablemap.domain.models import RelationSpec
from tablemap.errors import ConfigurationError, UnsupportedInclude
from tablemap.utils.logging import get_logger

if TYPE_CHECKING:
    from tablemap.model import Model

log = get_logger(__name__)


def _relation(model: "Model", name: str) -> RelationSpec:
    relation = model.descriptor.relation(name)
    if relation is None:
        raise ConfigurationError(f"Relation '{name}' is not defined on model '{model.name}'")
    return relation


def _unique(values: List[Any]) -> List[Any]:
    seen: List[Any] = []
    for value in values:
        if value is not None and value not in seen:
            seen.append(value)
    return seen


async def _fetch(target: "Model", relation: RelationSpec, key: str, values: List[Any]) -> List[Any]:
    options = dict(relation.options)
    predicate = dict(options.pop("where", None) or {})
    predicate[key] = values
    return await target.all(predicate, **options)


async def _include_one(model: "Model", records: List[Any], name: str) -> List[Any]:
    relation = _relation(model, name)
    target = model.context.lookup(model.descriptor.namespace, relation.model)
    foreign_key = relation.foreign_key

    if relation.type == "belongs_to":
        ids = _unique([r.get(foreign_key) for r in records])
        associated = await _fetch(target, relation, "id", ids) if ids else []
        by_id = {a["id"]: a for a in associated}
        for record in records:
            record[name] = by_id.get(record.get(foreign_key))
    else:
        ids = _unique([r.get("id") for r in records])
        associated = await _fetch(target, relation, foreign_key, ids) if ids else []
        groups: Dict[Any, List[Any]] = {}
        for child in associated:
            groups.setdefault(child.get(foreign_key), []).append(child)
        for record in records:
            group = groups.get(record.get("id"), [])
            if relation.type == "has_one":
                record[name] = group[0] if group else None
            else:
                record[name] = group

    log.debug(
        "Relation included",
        extra={"model": model.name, "relation": name, "owners": len(records), "fetched": len(associated)},
    )
    return associated


async def _gather(coroutines: List[Any]) -> List[Any]:
    tasks = [asyncio.ensure_future(c) for c in coroutines]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def _include_nested(model: "Model", records: List[Any], name: str, nested: Any) -> List[Any]:
    associated = await _include_one(model, records, name)
    if not nested:
        return associated
    relation = _relation(model, name)
    target = model.context.lookup(model.descriptor.namespace, relation.model)
    return await _resolve(target, associated, nested)


async def _resolve(model: "Model", records: List[Any], spec: Any) -> List[Any]:
    if not records:
        return []

    if isinstance(spec, str):
        return await _include_one(model, records, spec)

    if isinstance(spec, (list, tuple)):
        tiers = await _gather([_resolve(model, records, s) for s in spec])
    elif isinstance(spec, Mapping):
        tiers = await _gather(
            [_include_nested(model, records, name, nested) for name, nested in spec.items()]
        )
    else:
        raise UnsupportedInclude(f"Unsupported include: {spec!r}")

    return tiers[-1] if tiers else []


def _validate_shape(spec: Any) -> None:
    if isinstance(spec, str):
        return
    if isinstance(spec, (list, tuple)):
        for item in spec:
            _validate_shape(item)
    elif isinstance(spec, Mapping):
        for name, nested in spec.items():
            if not isinstance(name, str):
                raise UnsupportedInclude(f"Unsupported include key: {name!r}")
            if nested:
                _validate_shape(nested)
    else:
        raise UnsupportedInclude(f"Unsupported include: {spec!r}")


async def include(model: "Model", records: Any, spec: Any) -> List[Any]:
    """
    Attach related records onto ``records`` in place.

    Parameters
    ----------
    model : Model
        Owner of the relations named in ``spec``.
    records : Record | list[Record]
        Owning records; a single mapping is treated as a one-element list.
    spec : str | list | dict
        Inclusion spec (see module docstring).

    Returns
    -------
    list
        The associated records of the last tier fetched.

    Raises
    ------
    UnsupportedInclude
        ``spec`` is not a string, list or mapping of those.
    ConfigurationError
        A relation or its target model is not defined.
    """
    _validate_shape(spec)
    if isinstance(records, Mapping):
        records = [records]
    return await _resolve(model, list(records or ()), spec)


__all__ = ["include"]
