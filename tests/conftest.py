"""
Pytest configuration for tablemap.

Provides fixtures for:
- An in-memory fake client that interprets ``tablemap.sql`` statements
- A context wired to that client, plus the people/users/posts/comments models
- Settings for integration tests against a real PostgreSQL
"""

from __future__ import annotations

import os
from types import SimpleNamespace

import pytest

from tablemap.config import Settings
from tablemap.registry import Context

from tests.fakes import FakeClient


@pytest.fixture
def engine_settings() -> Settings:
    return Settings(strict_where=False, log_queries=False)


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient(unique={"people": ("name",), "users": ("email",)})


@pytest.fixture
def context(fake_client: FakeClient, engine_settings: Settings) -> Context:
    ctx = Context(settings=engine_settings)
    ctx.add_client(fake_client)
    return ctx


@pytest.fixture
def people(context: Context):
    """``person`` model on table ``people`` with a revision guard."""
    return context.create_model(
        name="person",
        columns=["name", {"name": "age", "type": "integer"}, "accountId"],
        validations={"age": ["is_int", "not_null"]},
        revision_column="revision",
    )


@pytest.fixture
def blog(context: Context) -> SimpleNamespace:
    """users -> posts -> comments, with posts belonging to an author."""
    users = context.create_model(
        name="user",
        columns=["name", "email"],
        relations=[
            {"type": "hasMany", "name": "posts", "foreign_key": "author_id"},
            {"type": "has_one", "name": "profile"},
        ],
    )
    profiles = context.create_model(name="profile", columns=["bio", "user_id"])
    posts = context.create_model(
        name="post",
        columns=["title", "author_id"],
        relations=[
            {"type": "belongs_to", "name": "author", "model": "user"},
            {"type": "has_many", "name": "comments"},
        ],
    )
    comments = context.create_model(
        name="comment",
        columns=["body", "post_id"],
        relations=[{"type": "belongsTo", "name": "post"}],
    )
    return SimpleNamespace(users=users, profiles=profiles, posts=posts, comments=comments)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture for integration tests.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "tablemap_test"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for integration tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )
