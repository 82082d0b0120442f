"""
Model handle: a descriptor bound to the context it was created in.

The handle holds no state beyond its descriptor, context and table; every
operation forwards to the module-level functions in ``tablemap.core`` with the
handle as first argument.

``model.bound.<operation>(...)`` returns a reusable deferred callable instead of
running the operation:

    load_jim = Person.bound.get(1)
    jim = await load_jim()
    again = await load_jim()
"""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Mapping, Optional

from tablemap.core import engine, relations
from tablemap.domain.models import ModelDescriptor
from tablemap.domain.record import Record
from tablemap.sql import Statement, Table

if TYPE_CHECKING:
    from tablemap.infrastructure.clients import Client
    from tablemap.registry import Context

OPERATIONS = ("get", "mget", "first", "all", "save", "remove", "modify", "query", "include")


class _Deferred:
    def __init__(self, model: "Model") -> None:
        self._model = model

    def __getattr__(self, operation: str) -> Callable[..., Callable[[], Awaitable[Any]]]:
        if operation not in OPERATIONS:
            raise AttributeError(operation)
        method = getattr(self._model, operation)

        def bind(*args: Any, **kwargs: Any) -> Callable[[], Awaitable[Any]]:
            return functools.partial(method, *args, **kwargs)

        return bind


class Model:
    def __init__(self, descriptor: ModelDescriptor, context: "Context") -> None:
        self.descriptor = descriptor
        self.context = context
        self.table = Table(descriptor.table_name, descriptor.column_sources)
        self.bound = _Deferred(self)

    @property
    def name(self) -> str:
        return self.descriptor.name

    def client(self) -> "Client":
        """Resolve the client by name now; swapping it on the context takes effect immediately."""
        return self.context.client(self.descriptor.client)

    async def build(self, row: Mapping[str, Any]) -> Record:
        return await engine.build(self, row)

    async def get(self, id_or_where: Any, **opts: Any) -> Record:
        return await engine.get(self, id_or_where, **opts)

    async def mget(self, ids: List[Any], **opts: Any) -> List[Record]:
        return await engine.mget(self, ids, **opts)

    async def first(self, where: Optional[Mapping[str, Any]] = None, **opts: Any) -> Optional[Record]:
        return await engine.first(self, where, **opts)

    async def all(self, where: Optional[Mapping[str, Any]] = None, **opts: Any) -> List[Record]:
        return await engine.all(self, where, **opts)

    async def save(self, record: Mapping[str, Any], where: Optional[Mapping[str, Any]] = None) -> Record:
        return await engine.save(self, record, where)

    async def remove(self, id_or_record: Any) -> bool:
        return await engine.remove(self, id_or_record)

    async def modify(
        self,
        id_or_record: Any,
        where: Optional[Mapping[str, Any]],
        mutator: Callable[[Record], Any],
        attempts: int = 1,
    ) -> Record:
        return await engine.modify(self, id_or_record, where, mutator, attempts=attempts)

    async def query(self, builder: Callable[[Table], Statement]) -> List[Record]:
        return await engine.query(self, builder)

    async def include(self, records: Any, spec: Any) -> List[Record]:
        return await relations.include(self, records, spec)

    def has_changes(self, record: Mapping[str, Any]) -> bool:
        return engine.has_changes(self.descriptor, record)

    def __repr__(self) -> str:
        return f"<Model {self.descriptor.key[0]}:{self.name} table={self.descriptor.table_name}>"


__all__ = ["Model", "OPERATIONS"]
