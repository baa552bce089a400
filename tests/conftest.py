"""Shared pytest configuration for the expense ledger test-suite."""

from __future__ import annotations

import sys
from collections.abc import Iterable, Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session


def _insert_repo_root() -> None:
    """Make the repository root importable when the package is not installed."""

    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))


_insert_repo_root()

from expense_ledger import config  # noqa: E402
from expense_ledger.config import Settings  # noqa: E402
from expense_ledger.database import Database  # noqa: E402
from expense_ledger.server import create_app  # noqa: E402
from tests.helpers import make_memory_database  # noqa: E402

LEDGER_ENV_VARS = (
    config.PORT_ENV,
    config.HOST_ENV,
    config.DATABASE_URL_ENV,
    config.DB_PATH_ENV,
    config.LEVEL_ENV,
    config.JSON_ENV,
)


def pytest_report_header(config: pytest.Config) -> Iterable[str]:  # pragma: no cover - pytest hook
    return [f"expense-ledger repo: {Path.cwd()}"]


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Run every test from a scratch directory with no ledger settings exported."""

    for name in LEDGER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def database() -> Iterator[Database]:
    db = make_memory_database()
    try:
        yield db
    finally:
        db.dispose()


@pytest.fixture()
def db_session(database: Database) -> Iterator[Session]:
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def client(database: Database) -> Iterator[TestClient]:
    app = create_app(Settings(database_url=database.url), database=database)
    with TestClient(app) as test_client:
        yield test_client
