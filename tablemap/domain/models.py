"""
Model descriptor types for tablemap.

A descriptor is a frozen configuration record describing one table mapping:
its columns, validation rules, lifecycle hooks and relations. Descriptors are
built once by ``tablemap.registry.create`` and never change afterwards.
"""
from __future__ import annotations

from typing import Annotated, Any, Callable, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field

GLOBAL_NAMESPACE = "GLOBAL"

HOOK_NAMES = (
    "before_validation",
    "after_validation",
    "before_save",
    "after_create",
    "after_update",
    "after_save",
    "after_fetch",
)

RelationType = Literal["belongs_to", "has_many", "has_one"]


class ColumnSpec(BaseModel):
    """
    A single mapped column.
    """

    name: str = Field(..., description="Friendly field name used on records.")
    source: str = Field(..., description="Physical column name in the table.")
    type: Optional[str] = Field(None, description="Informational column type.")

    model_config = {"frozen": True}


class NamedRule(BaseModel):
    """Validation rule dispatched through the named-predicate table."""

    kind: Literal["named"] = "named"
    name: str
    args: Tuple[Any, ...] = ()

    model_config = {"frozen": True}

    @property
    def label(self) -> Any:
        return [self.name, *self.args] if self.args else self.name


class CustomRule(BaseModel):
    """Validation rule implemented by a callback ``fn(record, field, context)``."""

    kind: Literal["custom"] = "custom"
    fn: Callable[..., Any]

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    @property
    def label(self) -> str:
        return getattr(self.fn, "__name__", "custom")


Rule = Annotated[Union[NamedRule, CustomRule], Field(discriminator="kind")]


class RelationSpec(BaseModel):
    type: RelationType
    name: str
    model: str = Field(..., description="Target model name within the same namespace.")
    foreign_key: str
    options: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


class ModelDescriptor(BaseModel):
    """
    Static description of one table mapping.
    """

    name: str
    namespace: Optional[str] = None
    table_name: str
    client: str = Field("default", description="Name of the database client to use.")
    columns: Tuple[ColumnSpec, ...]
    validations: Dict[str, Tuple[Rule, ...]] = Field(default_factory=dict)
    hooks: Dict[str, Tuple[Callable[..., Any], ...]] = Field(default_factory=dict)
    relations: Tuple[RelationSpec, ...] = ()
    validate_record: Optional[Callable[..., Any]] = None
    revision_column: Optional[str] = None
    log_queries: bool = False

    model_config = {
        "frozen": True,
        "arbitrary_types_allowed": True,
    }

    @property
    def key(self) -> Tuple[str, str]:
        return (self.namespace or GLOBAL_NAMESPACE, self.name)

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self.columns)

    @property
    def column_sources(self) -> Tuple[str, ...]:
        return tuple(c.source for c in self.columns)

    def column(self, name: str) -> Optional[ColumnSpec]:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def relation(self, name: str) -> Optional[RelationSpec]:
        for relation in self.relations:
            if relation.name == name:
                return relation
        return None


__all__ = [
    "GLOBAL_NAMESPACE",
    "HOOK_NAMES",
    "ColumnSpec",
    "CustomRule",
    "ModelDescriptor",
    "NamedRule",
    "RelationSpec",
    "RelationType",
    "Rule",
]
