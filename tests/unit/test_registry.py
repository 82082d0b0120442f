from __future__ import annotations

import pytest

from tablemap.domain.models import ColumnSpec
from tablemap.errors import ConfigurationError
from tablemap.registry import Context, build_descriptor

from tests.fakes import FakeClient


def test_descriptor_defaults_and_implicit_columns() -> None:
    descriptor = build_descriptor({"name": "person", "columns": ["name", "accountId"]})

    assert descriptor.table_name == "people"
    assert descriptor.client == "default"
    assert descriptor.column_names == ("name", "accountId", "id", "created_at", "updated_at")
    assert descriptor.column("accountId") == ColumnSpec(name="accountId", source="account_id")


def test_revision_column_is_added() -> None:
    descriptor = build_descriptor({"name": "person", "revision_column": "revision"})

    assert descriptor.column("revision").type == "integer"


def test_namespaced_table_name_and_explicit_override() -> None:
    assert build_descriptor({"name": "person", "namespace": "sqlbox_test"}).table_name == "sqlbox_test_people"
    assert build_descriptor({"name": "person", "table_name": "humans"}).table_name == "humans"


def test_relation_foreign_key_conventions() -> None:
    post = build_descriptor(
        {
            "name": "post",
            "columns": ["title", "author_id"],
            "relations": [
                {"type": "belongsTo", "name": "author", "model": "user"},
                {"type": "hasMany", "name": "comments"},
                {"type": "hasOne", "name": "summary"},
            ],
        }
    )

    author, comments, summary = post.relations
    assert (author.type, author.model, author.foreign_key) == ("belongs_to", "user", "author_id")
    assert (comments.type, comments.model, comments.foreign_key) == ("has_many", "comment", "post_id")
    assert (summary.type, summary.model, summary.foreign_key) == ("has_one", "summary", "post_id")


def test_belongs_to_foreign_key_must_be_a_column() -> None:
    with pytest.raises(ConfigurationError):
        build_descriptor({"name": "post", "relations": [{"type": "belongs_to", "name": "author"}]})


@pytest.mark.parametrize(
    "config",
    [
        {"columns": ["name"]},
        {"name": "person", "colums": ["name"]},
        {"name": "person", "columns": [42]},
        {"name": "person", "relations": [{"type": "has_lots", "name": "things"}]},
        {"name": "person", "validations": {"age": ["is_prime"]}},
    ],
)
def test_malformed_configuration_is_rejected(config) -> None:
    with pytest.raises(ConfigurationError):
        build_descriptor(config)


def test_models_are_registered_per_namespace(context: Context) -> None:
    person = context.create_model(name="person", columns=["name"])
    scoped = context.create_model(name="person", namespace="archive", columns=["name"])

    assert context.lookup(None, "person") is person
    assert context.lookup("archive", "person") is scoped
    with pytest.raises(ConfigurationError):
        context.create_model(name="person")
    with pytest.raises(ConfigurationError):
        context.lookup("archive", "robot")


def test_relation_model_may_be_given_as_handle(context: Context) -> None:
    users = context.create_model(name="user", columns=["name"])
    posts = context.create_model(
        name="post",
        columns=["title", "writer_id"],
        relations=[{"type": "belongs_to", "name": "writer", "model": users}],
    )

    assert posts.descriptor.relation("writer").model == "user"


def test_missing_client_is_configuration_error(engine_settings) -> None:
    context = Context(settings=engine_settings)

    with pytest.raises(ConfigurationError):
        context.client("reporting")


@pytest.mark.asyncio
async def test_closing_context_closes_clients(engine_settings) -> None:
    primary, reporting = FakeClient(), FakeClient()

    async with Context(settings=engine_settings) as context:
        context.add_client(primary)
        context.add_client(reporting, "reporting")
        assert context.clients.names() == ["default", "reporting"]

    assert primary.closed and reporting.closed
    assert context.clients.names() == []
