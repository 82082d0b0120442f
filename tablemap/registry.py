"""
Context, client and model registries, and the model factory.

There is no process-wide state: a ``Context`` owns the clients (by name) and
the models (by namespace and name) created against it, and closing the context
closes its clients.

Usage:
    context = Context()
    context.add_client(await create_client())

    Person = context.create_model(
        name="person",
        columns=["name", {"name": "age", "type": "integer"}],
        validations={"age": ["is_int", "not_null"]},
        revision_column="revision",
    )
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

from tablemap.config import Settings, get_settings
from tablemap.core.hooks import normalize_hooks
from tablemap.core.validation import normalize_rules
from tablemap.domain.models import (
    GLOBAL_NAMESPACE,
    ColumnSpec,
    ModelDescriptor,
    RelationSpec,
)
from tablemap.errors import ConfigurationError
from tablemap.infrastructure.clients import Client
from tablemap.model import Model
from tablemap.utils.logging import get_logger
from tablemap.utils.naming import singularize, table_name_for, to_underscore

log = get_logger(__name__)

DEFAULT_CLIENT = "default"

_CONFIG_KEYS = frozenset(
    {
        "name",
        "namespace",
        "table_name",
        "client",
        "columns",
        "validations",
        "hooks",
        "relations",
        "validate",
        "revision_column",
        "log_queries",
    }
)
_IMPLICIT_COLUMNS = (
    ColumnSpec(name="id", source="id", type="integer"),
    ColumnSpec(name="created_at", source="created_at", type="timestamp"),
    ColumnSpec(name="updated_at", source="updated_at", type="timestamp"),
)


class ClientRegistry:
    """Database clients by name, looked up on every engine call."""

    def __init__(self) -> None:
        self._clients: Dict[str, Client] = {}

    def add(self, client: Client, name: str = DEFAULT_CLIENT) -> None:
        self._clients[name] = client

    def pop(self, name: str = DEFAULT_CLIENT) -> Optional[Client]:
        return self._clients.pop(name, None)

    def get(self, name: str = DEFAULT_CLIENT) -> Client:
        try:
            return self._clients[name]
        except KeyError:
            raise ConfigurationError(f"No database client registered as '{name}'") from None

    def names(self) -> List[str]:
        return sorted(self._clients)


class ModelRegistry:
    """Append-only mapping of (namespace, name) -> model."""

    def __init__(self) -> None:
        self._models: Dict[Tuple[str, str], Model] = {}

    def register(self, model: Model) -> None:
        key = model.descriptor.key
        if key in self._models:
            raise ConfigurationError(f"Model '{key[0]}:{key[1]}' is already registered")
        self._models[key] = model

    def lookup(self, namespace: Optional[str], name: str) -> Model:
        key = (namespace or GLOBAL_NAMESPACE, name)
        try:
            return self._models[key]
        except KeyError:
            raise ConfigurationError(f"Model '{key[0]}:{key[1]}' was not found") from None

    def __contains__(self, key: Tuple[str, str]) -> bool:
        return key in self._models

    def __len__(self) -> int:
        return len(self._models)


class Context:
    """
    Explicit dependency container threaded to every model.

    Parameters
    ----------
    settings : Settings, optional
        Engine settings (strict where-clauses, query logging). Defaults to get_settings().
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self.clients = ClientRegistry()
        self.models = ModelRegistry()

    def add_client(self, client: Client, name: str = DEFAULT_CLIENT) -> None:
        self.clients.add(client, name)

    async def remove_client(self, name: str = DEFAULT_CLIENT) -> None:
        client = self.clients.pop(name)
        if client is not None:
            await client.close()

    def client(self, name: str = DEFAULT_CLIENT) -> Client:
        return self.clients.get(name)

    def lookup(self, namespace: Optional[str], name: str) -> Model:
        return self.models.lookup(namespace, name)

    def create_model(self, config: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Model:
        return create(self, config, **kwargs)

    async def close(self) -> None:
        for name in self.clients.names():
            await self.remove_client(name)

    async def __aenter__(self) -> "Context":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def _columns(specs: Any, revision_column: Optional[str]) -> Tuple[ColumnSpec, ...]:
    columns: List[ColumnSpec] = []
    for spec in specs or ():
        if isinstance(spec, ColumnSpec):
            column = spec
        elif isinstance(spec, str):
            column = ColumnSpec(name=spec, source=to_underscore(spec))
        elif isinstance(spec, Mapping) and spec.get("name"):
            column = ColumnSpec(
                name=spec["name"],
                source=spec.get("source") or to_underscore(spec["name"]),
                type=spec.get("type"),
            )
        else:
            raise ConfigurationError(f"Unsupported column definition: {spec!r}")
        columns.append(column)

    implicit = list(_IMPLICIT_COLUMNS)
    if revision_column:
        implicit.append(ColumnSpec(name=revision_column, source=to_underscore(revision_column), type="integer"))

    declared = {c.name for c in columns}
    columns.extend(c for c in implicit if c.name not in declared)
    return tuple(columns)


def _relations(name: str, specs: Any) -> Tuple[RelationSpec, ...]:
    relations: List[RelationSpec] = []
    for spec in specs or ():
        if isinstance(spec, RelationSpec):
            relations.append(spec)
            continue
        if not isinstance(spec, Mapping) or not spec.get("name") or not spec.get("type"):
            raise ConfigurationError(f"Unsupported relation definition: {spec!r}")

        relation_type = to_underscore(spec["type"])
        relation_name = spec["name"]
        target = spec.get("model") or singularize(to_underscore(relation_name))
        if isinstance(target, Model):
            target = target.name

        foreign_key = spec.get("foreign_key")
        if not foreign_key:
            if relation_type == "belongs_to":
                foreign_key = singularize(to_underscore(relation_name)) + "_id"
            else:
                foreign_key = singularize(to_underscore(name)) + "_id"

        try:
            relations.append(
                RelationSpec(
                    type=relation_type,
                    name=relation_name,
                    model=target,
                    foreign_key=foreign_key,
                    options=dict(spec.get("options") or {}),
                )
            )
        except ValueError as exc:
            raise ConfigurationError(f"Invalid relation '{relation_name}' on '{name}': {exc}") from exc
    return tuple(relations)


def build_descriptor(config: Mapping[str, Any]) -> ModelDescriptor:
    """Normalize a model configuration mapping into a frozen descriptor."""
    unknown = set(config) - _CONFIG_KEYS
    if unknown:
        raise ConfigurationError(f"Unknown model options: {', '.join(sorted(unknown))}")

    name = config.get("name")
    if not name:
        raise ConfigurationError("A model must be supplied a name")

    namespace = config.get("namespace")
    revision_column = config.get("revision_column")
    columns = _columns(config.get("columns"), revision_column)
    relations = _relations(name, config.get("relations"))

    column_names = {c.name for c in columns}
    for relation in relations:
        if relation.type == "belongs_to" and relation.foreign_key not in column_names:
            raise ConfigurationError(
                f"Foreign key '{relation.foreign_key}' of relation '{relation.name}' "
                f"is not a column of model '{name}'"
            )

    return ModelDescriptor(
        name=name,
        namespace=namespace,
        table_name=config.get("table_name") or table_name_for(name, namespace),
        client=config.get("client") or DEFAULT_CLIENT,
        columns=columns,
        validations={
            field: normalize_rules(rules) for field, rules in (config.get("validations") or {}).items()
        },
        hooks=normalize_hooks(config.get("hooks")),
        relations=relations,
        validate_record=config.get("validate"),
        revision_column=revision_column,
        log_queries=bool(config.get("log_queries", False)),
    )


def create(context: Context, config: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Model:
    """
    Create a model from configuration and register it on ``context``.

    Returns
    -------
    Model
        Handle exposing get/mget/first/all/save/remove/modify/query/include.
    """
    descriptor = build_descriptor({**(config or {}), **kwargs})
    model = Model(descriptor, context)
    context.models.register(model)
    log.debug(
        "Model registered",
        extra={"model": descriptor.name, "namespace": descriptor.namespace, "table": descriptor.table_name},
    )
    return model


__all__ = [
    "DEFAULT_CLIENT",
    "ClientRegistry",
    "Context",
    "ModelRegistry",
    "build_descriptor",
    "create",
]
