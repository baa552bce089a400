"""FastAPI application exposing the expense ledger endpoints.

Nothing is built at import time. ASGI servers use the factory directly::

    uvicorn --factory expense_ledger.server:create_app
"""
from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__, crud, schemas
from .config import Settings
from .database import Database, get_db
from .logging import setup_logger

LOG = logging.getLogger(__name__)

GREETING = "Hello, Expense Ledger API!"
ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": schemas.ErrorRead},
    status.HTTP_404_NOT_FOUND: {"model": schemas.ErrorRead},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": schemas.ErrorRead},
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    owns_database = app.state.database is None
    if owns_database:
        app.state.database = Database.from_settings(settings)
    database: Database = app.state.database
    # Raises on failure: no request is served against a broken schema.
    database.migrate()
    LOG.info("Serving expense ledger on %s", database.url)
    try:
        yield
    finally:
        if owns_database:
            database.dispose()
            app.state.database = None


def _describe_validation_error(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "Invalid request")
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages) or "Invalid request"


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": _describe_validation_error(exc)},
        )

    @app.exception_handler(SQLAlchemyError)
    async def store_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        LOG.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(exc)},
        )

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        LOG.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(exc)},
        )


def _register_request_logging(app: FastAPI) -> None:
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        LOG.info(
            "%s %s -> %s",
            request.method,
            request.url.path,
            response.status_code,
            extra={"process_time_ms": round(elapsed_ms, 3), "status_code": response.status_code},
        )
        return response


def _register_routes(app: FastAPI) -> None:
    @app.get("/", response_class=PlainTextResponse, tags=["system"])
    def index() -> str:
        return GREETING

    @app.get("/health", tags=["system"])
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    # ------------------- categories -------------------

    @app.get("/categories", response_model=List[schemas.CategoryRead], tags=["categories"])
    def list_categories(db: Session = Depends(get_db)) -> List[schemas.CategoryRead]:
        return crud.list_categories(db)

    @app.get(
        "/categories/{category_id}",
        response_model=schemas.CategoryRead,
        responses=ERROR_RESPONSES,
        tags=["categories"],
    )
    def get_category(category_id: int, db: Session = Depends(get_db)) -> schemas.CategoryRead:
        try:
            return crud.get_category(db, category_id)
        except crud.EntityNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    @app.post(
        "/categories",
        response_model=schemas.CategoryRead,
        status_code=status.HTTP_201_CREATED,
        responses=ERROR_RESPONSES,
        tags=["categories"],
    )
    def create_category(category_in: schemas.CategoryCreate, db: Session = Depends(get_db)) -> schemas.CategoryRead:
        try:
            return crud.create_category(db, category_in)
        except (crud.EntityValidationError, crud.EntityConflictError) as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    @app.put(
        "/categories/{category_id}",
        response_model=schemas.CategoryRead,
        responses=ERROR_RESPONSES,
        tags=["categories"],
    )
    def update_category(
        category_id: int,
        update_in: schemas.CategoryUpdate,
        db: Session = Depends(get_db),
    ) -> schemas.CategoryRead:
        try:
            return crud.update_category(db, category_id, update_in)
        except crud.EntityNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        except (crud.EntityValidationError, crud.EntityConflictError) as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    @app.delete(
        "/categories/{category_id}",
        response_model=schemas.MessageRead,
        responses=ERROR_RESPONSES,
        tags=["categories"],
    )
    def delete_category(category_id: int, db: Session = Depends(get_db)) -> schemas.MessageRead:
        try:
            crud.delete_category(db, category_id)
        except crud.EntityNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        except crud.EntityConflictError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        return schemas.MessageRead(message="Category deleted successfully")

    # ------------------- expenses -------------------

    @app.get("/expenses", response_model=List[schemas.ExpenseDetail], tags=["expenses"])
    def list_expenses(db: Session = Depends(get_db)) -> List[schemas.ExpenseDetail]:
        return crud.list_expenses(db)

    @app.get(
        "/expenses/{expense_id}",
        response_model=schemas.ExpenseDetail,
        responses=ERROR_RESPONSES,
        tags=["expenses"],
    )
    def get_expense(expense_id: int, db: Session = Depends(get_db)) -> schemas.ExpenseDetail:
        try:
            return crud.get_expense(db, expense_id, with_category=True)
        except crud.EntityNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    @app.post(
        "/expenses",
        response_model=schemas.ExpenseRead,
        status_code=status.HTTP_201_CREATED,
        responses=ERROR_RESPONSES,
        tags=["expenses"],
    )
    def create_expense(expense_in: schemas.ExpenseCreate, db: Session = Depends(get_db)) -> schemas.ExpenseRead:
        try:
            return crud.create_expense(db, expense_in)
        except crud.EntityValidationError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    @app.put(
        "/expenses/{expense_id}",
        response_model=schemas.ExpenseRead,
        responses=ERROR_RESPONSES,
        tags=["expenses"],
    )
    def update_expense(
        expense_id: int,
        update_in: schemas.ExpenseUpdate,
        db: Session = Depends(get_db),
    ) -> schemas.ExpenseRead:
        try:
            return crud.update_expense(db, expense_id, update_in)
        except crud.EntityNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        except crud.EntityValidationError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    @app.delete(
        "/expenses/{expense_id}",
        response_model=schemas.MessageRead,
        responses=ERROR_RESPONSES,
        tags=["expenses"],
    )
    def delete_expense(expense_id: int, db: Session = Depends(get_db)) -> schemas.MessageRead:
        try:
            crud.delete_expense(db, expense_id)
        except crud.EntityNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return schemas.MessageRead(message="Expense deleted successfully")


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """Build the application.

    ``database`` lets callers (tests, embedding services) inject an existing
    handle; it is migrated at startup but left open at shutdown. Without one,
    the handle is built from ``settings`` during startup and closed on exit.
    """
    settings = settings or Settings.from_env()
    setup_logger("expense_ledger", json_format=settings.json_logs, level=settings.log_level)
    app = FastAPI(title="Expense Ledger", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    _register_error_handlers(app)
    _register_request_logging(app)
    _register_routes(app)
    return app
