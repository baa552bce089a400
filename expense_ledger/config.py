"""Runtime settings for the expense ledger service, read from the environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Final

DEFAULT_HOST: Final[str] = "0.0.0.0"
DEFAULT_PORT: Final[int] = 3000
DEFAULT_DB_PATH: Final[Path] = Path("database.db")
DEFAULT_LOG_LEVEL: Final[str] = "INFO"
DEFAULT_LOG_ROOT: Final[Path] = Path("artifacts") / "logs"

PORT_ENV: Final[str] = "PORT"
HOST_ENV: Final[str] = "EXPENSE_LEDGER_HOST"
DATABASE_URL_ENV: Final[str] = "EXPENSE_LEDGER_DATABASE_URL"
DB_PATH_ENV: Final[str] = "EXPENSE_LEDGER_DB_PATH"
LEVEL_ENV: Final[str] = "EXPENSE_LEDGER_LOG_LEVEL"
JSON_ENV: Final[str] = "EXPENSE_LEDGER_JSON_LOGS"

_TRUTHY = {"1", "true", "yes", "on"}


def sqlite_url(path: str | Path) -> str:
    """Return the SQLAlchemy URL for a SQLite file at ``path``."""

    return f"sqlite:///{Path(path)}"


def is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in _TRUTHY


def _parse_port(raw: str | None) -> int:
    if raw is None or raw.strip() == "":
        return DEFAULT_PORT
    try:
        port = int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{PORT_ENV} must be an integer, got {raw!r}") from exc
    if not 0 < port < 65536:
        raise ValueError(f"{PORT_ENV} must be between 1 and 65535, got {port}")
    return port


@dataclass(slots=True, frozen=True)
class Settings:
    """Resolved service configuration.

    Attributes:
      host: Address the HTTP server binds to.
      port: Listening port; ``PORT`` in the environment, 3000 when unset.
      database_url: SQLAlchemy URL of the backing store.
      log_level: Level name applied to the ``expense_ledger`` loggers.
      json_logs: Mirror logs as JSON lines under ``artifacts/logs``.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    database_url: str = sqlite_url(DEFAULT_DB_PATH)
    log_level: str = DEFAULT_LOG_LEVEL
    json_logs: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        database_url = env.get(DATABASE_URL_ENV, "").strip()
        if not database_url:
            database_url = sqlite_url(env.get(DB_PATH_ENV, "").strip() or DEFAULT_DB_PATH)
        return cls(
            host=env.get(HOST_ENV, "").strip() or DEFAULT_HOST,
            port=_parse_port(env.get(PORT_ENV)),
            database_url=database_url,
            log_level=(env.get(LEVEL_ENV, "").strip() or DEFAULT_LOG_LEVEL).upper(),
            json_logs=is_truthy(env.get(JSON_ENV)),
        )


__all__ = ["Settings", "sqlite_url", "is_truthy"]
