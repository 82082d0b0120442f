"""
Record lifecycle engine.

Reads (get/mget/first/all/query) build Records from rows; writes (save) run
inside one transaction through a fixed pipeline:

    BEGIN
      before_validation -> validate -> after_validation
      no changes?  -> ROLLBACK, return the untouched clone (zero writes)
      before_save
      INSERT ... RETURNING *   |   UPDATE ... WHERE <guard> RETURNING *
      after_fetch -> after_create | after_update -> after_save
    COMMIT

Any failure after BEGIN rolls back. The guard of an UPDATE is ``{id} ∪ where``
plus ``revision = <submitted>`` when the model has a revision column; an UPDATE
that matches no row raises ``Conflict``. Concurrency between independent
callers is detected solely by that guard: the row-level atomicity of the
guarded UPDATE makes check-and-write atomic.
"""

from __future__ import annotations

import inspect
import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional

from tenacity import AsyncRetrying, RetryError, retry_if_exception_type, stop_after_attempt

from tablemap.core import hooks, relations, validation
from tablemap.core import where as where_builder
from tablemap.core.columns import column_source, prune_to_columns, source_to_name, to_source
from tablemap.domain.models import ModelDescriptor
from tablemap.domain.record import Record, carry_snapshot, clone, get_snapshot, set_snapshot
from tablemap.errors import Conflict, GuardConflict, NotFound, TimedOut, Unknown, UnknownColumn
from tablemap.infrastructure import dialect
from tablemap.infrastructure.clients import Executor, Result
from tablemap.sql import Condition, Increment, Now, Statement
from tablemap.utils.logging import get_logger

if TYPE_CHECKING:
    from tablemap.model import Model

log = get_logger(__name__)

MANAGED_COLUMNS = ("id", "created_at", "updated_at")

_MISSING = object()


class _NotModified(Exception):
    """Raised inside the save transaction to roll back a no-op save."""


async def _execute(model: "Model", executor: Executor, statement: Statement) -> Result:
    start = time.perf_counter()
    result = await executor.execute(statement)
    elapsed_ms = (time.perf_counter() - start) * 1000

    verbose = model.descriptor.log_queries or model.context.settings.log_queries
    level = logging.INFO if verbose else logging.DEBUG
    if log.isEnabledFor(level):
        log.log(
            level,
            f"[{elapsed_ms:.1f}ms] {statement}",
            extra={
                "model": model.name,
                "table": model.descriptor.table_name,
                "elapsed_ms": round(elapsed_ms, 2),
                "rows": result.row_count,
            },
        )
    return result


def _coerce_id(value: Any) -> Any:
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value)
    return value


def _strict(model: "Model") -> bool:
    return model.context.settings.strict_where


def _map_row(descriptor: ModelDescriptor, row: Mapping[str, Any]) -> Record:
    record = Record(prune_to_columns(descriptor, row))
    set_snapshot(record, prune_to_columns(descriptor, record))
    return record


async def build(model: "Model", row: Mapping[str, Any]) -> Record:
    """Map a raw row (either naming scheme) to a Record, snapshot it and run after_fetch."""
    record = _map_row(model.descriptor, row)
    await hooks.run(model.descriptor, record, "after_fetch")
    return record


def changes(
    descriptor: ModelDescriptor,
    record: Mapping[str, Any],
    snapshot: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Column values of ``record`` that differ from its snapshot.

    Without a snapshot (caller-built mappings) every mapped column counts as changed.
    """
    if snapshot is None:
        snapshot = get_snapshot(record)
    if snapshot is None:
        return prune_to_columns(descriptor, record)
    return {
        c.name: record[c.name]
        for c in descriptor.columns
        if c.name in record and record[c.name] != snapshot.get(c.name, _MISSING)
    }


def has_changes(descriptor: ModelDescriptor, record: Mapping[str, Any]) -> bool:
    if get_snapshot(record) is None:
        return True
    return bool(changes(descriptor, record))


async def get(model: "Model", id_or_where: Any, **opts: Any) -> Record:
    """
    Fetch one record by id or predicate; raise ``NotFound`` when nothing matches.

    A Record instance is returned as is, so callers holding either an id or an
    already-loaded record can pass it through.
    """
    if isinstance(id_or_where, Record):
        return id_or_where

    if isinstance(id_or_where, Mapping):
        predicate = dict(id_or_where)
    else:
        predicate = {"id": _coerce_id(id_or_where)}

    opts.pop("limit", None)
    opts["offset"] = None
    record = await first(model, predicate, **opts)
    if record is None:
        raise NotFound(f"Row with id {id_or_where} was not found in {model.name}")
    return record


async def mget(model: "Model", ids: List[Any], **opts: Any) -> List[Record]:
    """Fetch many records by id; missing ids are simply absent from the result."""
    if not ids:
        return []
    return await all(model, {"id": {"in": [_coerce_id(i) for i in ids]}}, **opts)


async def first(model: "Model", where: Optional[Mapping[str, Any]] = None, **opts: Any) -> Optional[Record]:
    opts["limit"] = 1
    records = await all(model, where, **opts)
    return records[0] if records else None


async def all(
    model: "Model",
    where: Optional[Mapping[str, Any]] = None,
    *,
    select: Optional[List[str]] = None,
    order: Any = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    include: Any = None,
    strict: Optional[bool] = None,
) -> List[Record]:
    """
    Fetch every record matching ``where``.

    Parameters
    ----------
    select : list[str], optional
        Friendly column names to fetch. Records from a column-pruned fetch must
        not be saved back: without an ``id`` they would be inserted as new rows.
    order : mapping | callable, optional
        ``{"age": "desc", "name": "asc"}`` applied in key order, or
        ``fn(statement, table) -> statement`` for full control.
    limit, offset : int, optional
        Passed through verbatim.
    include : str | list | dict, optional
        Relations to batch-load onto the results (see ``tablemap.core.relations``).
    strict : bool, optional
        Raise on unknown where-clause fields instead of skipping them.
    """
    descriptor = model.descriptor

    if select:
        sources = []
        for name in select:
            source = column_source(descriptor, name)
            if source is None:
                raise UnknownColumn(
                    f"Select clause failed to select '{name}' from table '{descriptor.table_name}'"
                )
            sources.append(source)
        statement = model.table.select(*sources)
    else:
        statement = model.table.select()

    where_builder.apply(descriptor, statement, where, _strict(model) if strict is None else strict)

    if callable(order):
        statement = order(statement, model.table)
    elif order:
        for name, direction in order.items():
            source = column_source(descriptor, name)
            if source is None:
                raise UnknownColumn(f"Cannot order by unknown column '{name}' on '{descriptor.name}'")
            statement.order_by(source, direction)

    if limit is not None:
        statement.limit(limit)
    if offset is not None:
        statement.offset(offset)

    result = await _execute(model, model.client(), statement)
    records = [await build(model, row) for row in result.rows]

    if include:
        await relations.include(model, records, include)
    return records


def _duplicate_conflict(descriptor: ModelDescriptor, err: BaseException) -> Conflict:
    conflict = Conflict("Duplicate key violates unique constraint.")
    parsed = dialect.parse_duplicate_key_error(err)
    if parsed:
        key, value = parsed
        conflict.conflicts = [
            {"key": source_to_name(descriptor, key), "value": value, "expected": "unique"}
        ]
    return conflict


async def _insert(model: "Model", session: Executor, draft: Record) -> Record:
    descriptor = model.descriptor
    revision = descriptor.revision_column
    skipped = set(MANAGED_COLUMNS) | {revision}

    values = to_source(descriptor, {k: v for k, v in draft.items() if k not in skipped})
    values[column_source(descriptor, "created_at")] = Now()
    values[column_source(descriptor, "updated_at")] = Now()
    if revision:
        values[column_source(descriptor, revision)] = 1

    result = await _execute(model, session, model.table.insert(values))
    if not result.rows:
        raise Unknown("Insert returned no error, but no row was returned.")

    record = await build(model, result.rows[0])
    await hooks.run_many(descriptor, record, ("after_create", "after_save"))
    return record


async def _update(
    model: "Model", session: Executor, draft: Record, where: Optional[Mapping[str, Any]]
) -> Record:
    descriptor = model.descriptor
    revision = descriptor.revision_column

    guard = dict(where or {})
    guard["id"] = draft["id"]

    changed = changes(descriptor, draft)
    for name in (*MANAGED_COLUMNS, revision):
        changed.pop(name, None)

    values: Dict[str, Any] = to_source(descriptor, changed)
    values[column_source(descriptor, "updated_at")] = Now()
    if revision:
        source = column_source(descriptor, revision)
        guard[revision] = draft.get(revision)
        values[source] = Increment(source)

    statement = where_builder.apply(descriptor, model.table.update(values), guard, _strict(model))
    result = await _execute(model, session, statement)
    if not result.rows:
        raise GuardConflict(
            f"Row with id {draft['id']} was not found in {model.name}, "
            "or the where clause did not pass."
        )

    record = await build(model, result.rows[0])
    await hooks.run_many(descriptor, record, ("after_update", "after_save"))
    return record


async def save(model: "Model", record: Mapping[str, Any], where: Optional[Mapping[str, Any]] = None) -> Record:
    """
    Insert (no truthy ``id``) or update (truthy ``id``) a record.

    The caller's mapping is never mutated: hooks and validation run on a clone,
    and the persisted row comes back as a fresh Record.

    Raises
    ------
    ValidationFailed
        A declared rule failed; nothing was written.
    GuardConflict
        The update guard matched no row.
    Conflict
        A unique constraint was violated (``conflicts`` describes the offending key).
    """
    descriptor = model.descriptor
    draft = clone(record)
    is_new = not draft.get("id")

    try:
        async with model.client().transaction() as session:
            await hooks.run(descriptor, draft, "before_validation")
            validation.validate(descriptor, draft)
            await hooks.run(descriptor, draft, "after_validation")

            if not is_new and not has_changes(descriptor, draft):
                raise _NotModified()

            await hooks.run(descriptor, draft, "before_save")
            if is_new:
                return await _insert(model, session, draft)
            return await _update(model, session, draft, where)
    except _NotModified:
        log.debug("Save skipped, record unchanged", extra={"model": model.name, "id": draft.get("id")})
        return draft
    except Exception as exc:
        if dialect.is_duplicate_key_error(exc):
            raise _duplicate_conflict(descriptor, exc) from exc
        raise


async def remove(model: "Model", id_or_record: Any) -> bool:
    """Delete one row by id without running any hooks; ``NotFound`` if it did not exist."""
    if isinstance(id_or_record, Mapping):
        record_id = id_or_record.get("id")
    else:
        record_id = _coerce_id(id_or_record)

    statement = model.table.delete().where(
        Condition(column_source(model.descriptor, "id"), "eq", record_id)
    )
    result = await _execute(model, model.client(), statement)
    if result.rows or result.row_count:
        return True
    raise NotFound(f"Row with id {record_id} was not found in {model.name}")


async def _modify_once(
    model: "Model",
    record_id: Any,
    where: Optional[Mapping[str, Any]],
    mutator: Callable[[Record], Any],
) -> Record:
    record = await get(model, record_id)
    result = mutator(record)
    if inspect.isawaitable(result):
        result = await result
    if isinstance(result, Mapping) and result is not record:
        replacement = clone(result)
        carry_snapshot(record, replacement)
        record = replacement
    return await save(model, record, where)


async def modify(
    model: "Model",
    id_or_record: Any,
    where: Optional[Mapping[str, Any]],
    mutator: Callable[[Record], Any],
    attempts: int = 1,
) -> Record:
    """
    Fetch, mutate and save one record.

    With the default ``attempts=1`` exactly one get/mutate/save cycle runs and a
    guard mismatch surfaces as ``Conflict``. With ``attempts > 1`` each attempt
    re-fetches the row and re-runs ``mutator`` (which must therefore be free of
    side effects); only guard mismatches (``GuardConflict``) are retried and
    running out of attempts raises ``TimedOut``. A unique-key ``Conflict`` is
    raised on the attempt that hit it.
    """
    record_id = id_or_record.get("id") if isinstance(id_or_record, Mapping) else id_or_record

    if attempts <= 1:
        return await _modify_once(model, record_id, where, mutator)

    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(attempts),
            retry=retry_if_exception_type(GuardConflict),
        ):
            with attempt:
                saved = await _modify_once(model, record_id, where, mutator)
    except RetryError as exc:
        log.warning(
            "Modify gave up after repeated conflicts",
            extra={"model": model.name, "id": record_id, "attempts": attempts},
        )
        raise TimedOut(
            f"Could not modify row {record_id} in {model.name} after {attempts} attempts"
        ) from exc.last_attempt.exception()
    return saved


async def query(model: "Model", builder: Callable[..., Statement]) -> List[Record]:
    """Run ``builder(table)`` and map the rows; no hooks, no validation."""
    statement = builder(model.table)
    result = await _execute(model, model.client(), statement)
    return [_map_row(model.descriptor, row) for row in result.rows]


__all__ = [
    "MANAGED_COLUMNS",
    "all",
    "build",
    "changes",
    "first",
    "get",
    "has_changes",
    "mget",
    "modify",
    "query",
    "remove",
    "save",
]
