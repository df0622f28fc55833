"""rbacctl commands against the in-memory test database."""

from __future__ import annotations

import pytest
from sqlalchemy import inspect
from sqlalchemy.orm import sessionmaker
from typer.testing import CliRunner

import rbac_console.db.session as session_module
from rbac_console.cli import app
from rbac_console.core.config import settings
from rbac_console.core.security import decode_token
from rbac_console.models import Menu

runner = CliRunner()


@pytest.fixture()
def sqlite_settings(monkeypatch, engine):
    monkeypatch.setattr(settings, "DATABASE_URL", "sqlite://")
    monkeypatch.setattr(session_module, "engine", engine)
    monkeypatch.setattr(session_module, "SessionLocal", sessionmaker(bind=engine, autoflush=False))


def test_db_reset_on_sqlite_recreates_empty_tables(sqlite_settings, engine, db, factory) -> None:
    factory.menu()
    db.rollback()

    result = runner.invoke(app, ["db", "reset"], input="y\n")

    assert result.exit_code == 0, result.output
    assert "Tables created" in result.output
    assert "menus" in inspect(engine).get_table_names()
    assert db.query(Menu).count() == 0


def test_db_reset_aborts_without_confirmation(sqlite_settings, db, factory) -> None:
    factory.menu()
    db.rollback()

    result = runner.invoke(app, ["db", "reset"], input="n\n")

    assert result.exit_code != 0
    assert db.query(Menu).count() == 1


def test_token_for_existing_user(sqlite_settings, db, factory) -> None:
    user = factory.user(email="dev@example.com")
    user_id = user.id
    db.rollback()

    result = runner.invoke(app, ["token", "DEV@example.com"])

    assert result.exit_code == 0, result.output
    assert decode_token(result.output.strip())["sub"] == user_id


def test_token_for_unknown_user_fails(sqlite_settings, db) -> None:
    result = runner.invoke(app, ["token", "ghost@example.com"])

    assert result.exit_code == 1
