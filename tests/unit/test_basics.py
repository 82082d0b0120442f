from tablemap import config
from tablemap.utils.naming import pluralize, singularize, table_name_for, to_underscore


def test_get_settings_defaults(monkeypatch):
    for name in ("DB_HOST", "DB_PORT", "DB_NAME", "DB_DRIVER", "STRICT_WHERE"):
        monkeypatch.delenv(name, raising=False)
    settings = config.Settings(_env_file=None)
    assert settings.db_host == "localhost"
    assert settings.db_port == 5432
    assert settings.db_user == "postgres"
    assert settings.db_name == "tablemap"
    assert settings.db_driver == "psycopg"
    assert settings.strict_where is False
    assert settings.db_pool_min_size <= settings.db_pool_max_size


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("STRICT_WHERE", "true")
    monkeypatch.setenv("LOG_QUERIES", "1")
    settings = config.Settings(_env_file=None)
    assert settings.strict_where is True
    assert settings.log_queries is True


def test_get_settings_is_cached():
    assert config.get_settings() is config.get_settings()


def test_naming_conventions():
    assert to_underscore("accountId") == "account_id"
    assert to_underscore("sqlbox-test") == "sqlbox_test"
    assert pluralize("person") == "people"
    assert pluralize("category") == "categories"
    assert pluralize("box") == "boxes"
    assert singularize("comments") == "comment"
    assert singularize("edited_posts") == "edited_post"
    assert singularize("people") == "person"
    assert table_name_for("blogPost", "sqlboxTest") == "sqlbox_test_blog_posts"
