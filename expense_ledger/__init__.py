"""Expense Ledger: REST API for expenses grouped into categories."""

from __future__ import annotations

__all__ = [
    "__version__",
    "cli",
    "config",
    "database",
    "models",
    "schemas",
    "crud",
    "server",
]

__version__ = "1.0.0"
