"""Helper utilities for tests."""

from sqlalchemy.pool import StaticPool

from expense_ledger.database import Database


def make_memory_database() -> Database:
    """Return a migrated in-memory ledger.

    ``StaticPool`` keeps a single connection so every session, and the
    threadpool behind ``TestClient``, sees the same in-memory database.
    """
    database = Database("sqlite://", poolclass=StaticPool)
    database.migrate()
    return database
