"""Command-line interface for running and migrating the expense ledger."""

from __future__ import annotations

import argparse
from dataclasses import replace

import uvicorn

from expense_ledger.config import Settings, sqlite_url
from expense_ledger.database import Database
from expense_ledger.logging import configure_cli_logging
from expense_ledger.server import create_app

DESCRIPTION = "Expense Ledger REST API"


def _port(value: str) -> int:
    try:
        port = int(value)
    except ValueError as exc:  # pragma: no cover - argparse validation
        raise argparse.ArgumentTypeError("Expected an integer port") from exc
    if not 0 < port < 65536:
        raise argparse.ArgumentTypeError("Port must be between 1 and 65535")
    return port


def _add_db_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--db",
        default=None,
        help="SQLite database file (overrides EXPENSE_LEDGER_DB_PATH / EXPENSE_LEDGER_DATABASE_URL)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="expense-ledger", description=DESCRIPTION)
    parser.add_argument(
        "--json-logs",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Mirror logs to artifacts/logs/expense_ledger.log in JSON format",
    )
    parser.add_argument("--log-level", default=None, help="Log level (default from EXPENSE_LEDGER_LOG_LEVEL)")
    sub = parser.add_subparsers(dest="cmd", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None, help="Bind address (default from EXPENSE_LEDGER_HOST)")
    serve.add_argument("--port", type=_port, default=None, help="Listening port (default from PORT, 3000)")
    _add_db_argument(serve)

    migrate = sub.add_parser("migrate", help="Create missing tables in the database")
    _add_db_argument(migrate)
    migrate.add_argument(
        "--force",
        action="store_true",
        help="Drop and recreate every table (destroys stored data)",
    )
    return parser


def _resolve_settings(args: argparse.Namespace) -> Settings:
    settings = Settings.from_env()
    overrides = {}
    if args.json_logs is not None:
        overrides["json_logs"] = bool(args.json_logs)
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()
    if args.db:
        overrides["database_url"] = sqlite_url(args.db)
    if getattr(args, "host", None):
        overrides["host"] = args.host
    if getattr(args, "port", None) is not None:
        overrides["port"] = args.port
    return replace(settings, **overrides)


def _handle_serve(settings: Settings) -> None:
    app = create_app(settings)
    print(f"[expense_ledger] serve http://{settings.host}:{settings.port} db={settings.database_url}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


def _handle_migrate(settings: Settings, force: bool) -> None:
    database = Database.from_settings(settings)
    try:
        tables = database.migrate(force=force)
    finally:
        database.dispose()
    print(f"[expense_ledger] migrate url={settings.database_url} tables={','.join(tables)}")


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = _resolve_settings(args)
    configure_cli_logging(json_logs=settings.json_logs, level=settings.log_level)
    if args.cmd == "serve":
        _handle_serve(settings)
    elif args.cmd == "migrate":
        _handle_migrate(settings, force=args.force)
    else:  # pragma: no cover - argparse enforces the choices
        print(f"[expense_ledger] command = {args.cmd}")


if __name__ == "__main__":
    main()
