"""Structured logging helpers for the expense ledger service."""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Final

from expense_ledger.config import DEFAULT_LOG_LEVEL, DEFAULT_LOG_ROOT, JSON_ENV, LEVEL_ENV, is_truthy

CONSOLE_FORMAT: Final[str] = "[%(levelname)s] %(name)s: %(message)s"
AUDIT_DIR: Final[Path] = DEFAULT_LOG_ROOT
LOG_PATH: Final[Path] = AUDIT_DIR / "expense_ledger.log"
ROOT_LOGGER: Final[str] = "expense_ledger"


class JsonAuditFormatter(logging.Formatter):
    """Render log records as single-line JSON payloads."""

    def format(self, record: logging.LogRecord) -> str:
        """Serialise a record with the request and entity fields used for auditing."""

        timestamp = datetime.fromtimestamp(record.created, tz=UTC).isoformat()
        payload = {
            "timestamp": timestamp,
            "level": record.levelname,
            "source": record.name,
            "message": record.getMessage(),
            "process_time_ms": _coerce_number(getattr(record, "process_time_ms", None)),
            "status_code": _coerce_int(getattr(record, "status_code", None)),
            "entity": getattr(record, "entity", None),
            "entity_id": _coerce_int(getattr(record, "entity_id", None)),
        }
        return json.dumps(payload, ensure_ascii=False)


def _coerce_number(value: object) -> float | None:
    """Convert arbitrary values to float when possible."""

    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _coerce_int(value: object) -> int | None:
    """Convert ids and status codes to int, tolerating junk extras."""

    number = _coerce_number(value)
    return None if number is None else int(number)


def _resolve_level(level: str | int | None) -> int:
    """Pick the log level, letting the environment win over the argument."""

    env_level = os.environ.get(LEVEL_ENV)
    if env_level:
        candidate = env_level.strip().upper()
    elif isinstance(level, str):
        candidate = level.strip().upper()
    elif isinstance(level, int):
        return int(level)
    else:
        candidate = DEFAULT_LOG_LEVEL
    resolved = logging.getLevelName(candidate)
    return int(resolved) if isinstance(resolved, int) else logging.INFO


def _json_logging_enabled(explicit: bool) -> bool:
    """Return ``True`` when JSON logging is requested by flag or environment."""

    return explicit or is_truthy(os.environ.get(JSON_ENV))


def _ensure_console_handler(logger: logging.Logger, level: int) -> None:
    """Attach a console handler unless the logger already carries one."""

    for handler in logger.handlers:
        if getattr(handler, "_ledger_console", False):
            handler.setLevel(level)
            return
    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    stream_handler._ledger_console = True  # type: ignore[attr-defined]
    logger.addHandler(stream_handler)


def _ensure_json_handler(logger: logging.Logger, level: int) -> None:
    """Attach the JSON-lines audit file handler when requested."""

    for handler in logger.handlers:
        if getattr(handler, "_ledger_json", False):
            handler.setLevel(level)
            return
    AUDIT_DIR.mkdir(parents=True, exist_ok=True)
    json_handler = logging.FileHandler(LOG_PATH, encoding="utf-8")
    json_handler.setLevel(level)
    json_handler.setFormatter(JsonAuditFormatter())
    json_handler._ledger_json = True  # type: ignore[attr-defined]
    logger.addHandler(json_handler)


def setup_logger(
    name: str,
    json_format: bool = False,
    level: str | int | None = None,
) -> logging.Logger:
    """Configure and return a named logger without duplicating handlers."""

    resolved_level = _resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(resolved_level)
    # Keep propagation so capture handlers (pytest caplog) still see records.
    logger.propagate = True
    _ensure_console_handler(logger, resolved_level)
    if _json_logging_enabled(json_format):
        _ensure_json_handler(logger, resolved_level)
    return logger


def configure_cli_logging(json_logs: bool, level: str | int | None = None) -> logging.Logger:
    """Reconfigure the ``expense_ledger`` logger tree for a CLI run.

    Module loggers inherit level and handlers from the package logger, so any
    level pinned on a child is cleared rather than given handlers of its own.
    """

    if json_logs:
        os.environ[JSON_ENV] = "1"
    else:
        os.environ.pop(JSON_ENV, None)
    for name, logger in logging.Logger.manager.loggerDict.items():
        if not isinstance(logger, logging.Logger):
            continue
        if not name.startswith(f"{ROOT_LOGGER}."):
            continue
        logger.setLevel(logging.NOTSET)
    return setup_logger(ROOT_LOGGER, json_format=json_logs, level=level)


__all__ = ["JsonAuditFormatter", "setup_logger", "configure_cli_logging"]
