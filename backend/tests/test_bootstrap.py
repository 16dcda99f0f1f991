import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.pool import StaticPool

from app.db import bootstrap


def _raise_error(message: str):
    raise RuntimeError(message)


def _memory_engine():
    return create_engine("sqlite+pysqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)


def test_runtime_schema_bootstrap_raises_on_validation_failure(monkeypatch):
    monkeypatch.setattr(bootstrap.Base.metadata, "create_all", lambda bind: None)
    monkeypatch.setattr(bootstrap, "_ensure_user_link_columns", lambda engine: None)
    monkeypatch.setattr(
        bootstrap,
        "_assert_required_columns",
        lambda engine: _raise_error("missing required schema"),
    )

    with pytest.raises(RuntimeError, match="Runtime schema compatibility bootstrap failed"):
        bootstrap.ensure_runtime_schema_compatibility(_memory_engine())


def test_runtime_schema_bootstrap_creates_every_required_table():
    engine = _memory_engine()

    bootstrap.ensure_runtime_schema_compatibility(engine)

    table_names = set(inspect(engine).get_table_names())
    assert set(bootstrap.REQUIRED_COLUMNS) <= table_names


def test_user_link_columns_are_added_to_legacy_users_table():
    engine = _memory_engine()
    with engine.begin() as connection:
        connection.execute(text("CREATE TABLE users (id VARCHAR(36) PRIMARY KEY, role VARCHAR(20))"))

    bootstrap._ensure_user_link_columns(engine)

    columns = {item["name"] for item in inspect(engine).get_columns("users")}
    assert {"teacher_id", "class_id"} <= columns
