"""Persistence handle and schema reconciliation for the expense ledger."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from fastapi import Request
from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import Settings

LOG = logging.getLogger(__name__)

Base = declarative_base()


class Database:
    """Owns the engine and session factory for one backing store.

    A single instance is built at application startup and shared by every
    request through :func:`get_db`; :meth:`dispose` releases the pooled
    connections on shutdown.
    """

    def __init__(self, url: str, **engine_options: Any) -> None:
        self.url = url
        if url.startswith("sqlite"):
            connect_args = dict(engine_options.pop("connect_args", {}))
            connect_args.setdefault("check_same_thread", False)
            engine_options["connect_args"] = connect_args
        self.engine: Engine = create_engine(url, future=True, **engine_options)
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False, future=True)

    @classmethod
    def from_settings(cls, settings: Settings) -> Database:
        return cls(settings.database_url)

    def migrate(self, force: bool = False) -> list[str]:
        """Create any missing tables; with ``force`` drop and recreate them all.

        Returns the table names present afterwards. Errors are logged and
        re-raised so a broken store stops startup.
        """
        from . import models  # noqa: F401  # Register models on the metadata

        try:
            if force:
                LOG.warning("Dropping all tables of %s", self.url)
                Base.metadata.drop_all(bind=self.engine)
            Base.metadata.create_all(bind=self.engine)
            tables = sorted(inspect(self.engine).get_table_names())
        except SQLAlchemyError:
            LOG.exception("Schema synchronisation failed for %s", self.url)
            raise
        LOG.info("Database synchronised: %s", ", ".join(tables))
        return tables

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Provide a transactional scope around a series of operations."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()
        LOG.info("Database connections closed")


def get_db(request: Request) -> Iterator[Session]:
    """FastAPI dependency that provides a session from the running app's database."""
    database: Database = request.app.state.database
    with database.session_scope() as session:
        yield session
