from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
from sqlalchemy import inspect

from expense_ledger import cli
from expense_ledger.config import sqlite_url
from expense_ledger.database import Database


@pytest.fixture(autouse=True)
def isolate_cli_state(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    # configure_cli_logging writes the JSON flag into os.environ.
    monkeypatch.setenv("EXPENSE_LEDGER_JSON_LOGS", "0")
    yield
    package_logger = logging.getLogger("expense_ledger")
    for handler in package_logger.handlers:
        handler.close()
    package_logger.handlers = []
    package_logger.setLevel(logging.NOTSET)


def test_cli_migrate_creates_tables(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    db_path = tmp_path / "fresh.db"
    cli.main(["migrate", "--db", str(db_path)])

    captured = capsys.readouterr().out
    assert "[expense_ledger] migrate" in captured
    assert "tables=Categories,Expenses" in captured

    database = Database(sqlite_url(db_path))
    try:
        assert set(inspect(database.engine).get_table_names()) == {"Categories", "Expenses"}
    finally:
        database.dispose()


def test_cli_migrate_reports_broken_store(tmp_path: Path) -> None:
    with pytest.raises(Exception):
        cli.main(["migrate", "--db", str(tmp_path / "nowhere" / "x.db")])


def test_cli_serve_uses_environment_and_flags(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    calls: dict[str, object] = {}

    def fake_run(app, **kwargs):
        calls["app"] = app
        calls.update(kwargs)

    monkeypatch.setattr(cli.uvicorn, "run", fake_run)
    monkeypatch.setenv("PORT", "4321")
    db_path = tmp_path / "served.db"

    cli.main(["--log-level", "warning", "serve", "--host", "127.0.0.1", "--db", str(db_path)])

    assert calls["host"] == "127.0.0.1"
    assert calls["port"] == 4321
    assert calls["log_level"] == "warning"
    assert calls["app"].state.settings.database_url == sqlite_url(db_path)
    assert "[expense_ledger] serve http://127.0.0.1:4321" in capsys.readouterr().out


def test_cli_port_flag_overrides_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: dict[str, object] = {}
    monkeypatch.setattr(cli.uvicorn, "run", lambda app, **kwargs: calls.update(kwargs))
    monkeypatch.setenv("PORT", "4321")

    cli.main(["serve", "--port", "5000"])

    assert calls["port"] == 5000
    assert calls["host"] == "0.0.0.0"


def test_cli_rejects_bad_port() -> None:
    with pytest.raises(SystemExit):
        cli.main(["serve", "--port", "99999"])


def test_cli_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        cli.main([])


def test_cli_serve_builds_a_single_app(monkeypatch: pytest.MonkeyPatch) -> None:
    built = []
    build = cli.create_app

    def counting_create_app(settings):
        built.append(settings)
        return build(settings)

    monkeypatch.setattr(cli, "create_app", counting_create_app)
    monkeypatch.setattr(cli.uvicorn, "run", lambda app, **kwargs: None)

    cli.main(["serve", "--port", "5001"])

    assert [settings.port for settings in built] == [5001]
