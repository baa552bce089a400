"""CRUD helper functions for the expense ledger."""
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from . import models, schemas

LOG = logging.getLogger(__name__)

CATEGORY_NAME_REQUIRED = "Category name is required"
CATEGORY_NAME_TAKEN = "Category with this name already exists"
CATEGORY_NOT_FOUND = "Category not found"
CATEGORY_IN_USE = "Category has associated expenses. Deletion declined."
EXPENSE_NOT_FOUND = "Expense not found"

# Signed 64-bit range of an SQLite INTEGER primary key.
MIN_ROW_ID = -(2**63)
MAX_ROW_ID = 2**63 - 1


class EntityValidationError(ValueError):
    """Raised when request data is missing or refers to unknown records."""


class EntityNotFoundError(RuntimeError):
    """Raised when an entity cannot be located in the database."""


class EntityConflictError(RuntimeError):
    """Raised when a uniqueness or dependency rule would be broken."""


def _require_name(name: Optional[str]) -> str:
    if not name:
        raise EntityValidationError(CATEGORY_NAME_REQUIRED)
    return name


def _get_row(session: Session, model, ident: int, options=None):
    # The driver raises OverflowError for keys it cannot bind; no such row exists.
    if not MIN_ROW_ID <= ident <= MAX_ROW_ID:
        return None
    return session.get(model, ident, options=options)


def list_categories(session: Session) -> List[models.Category]:
    stmt = select(models.Category).order_by(models.Category.id)
    return list(session.scalars(stmt))


def get_category(session: Session, category_id: int) -> models.Category:
    category = _get_row(session, models.Category, category_id)
    if category is None:
        raise EntityNotFoundError(CATEGORY_NOT_FOUND)
    return category


def find_category_by_name(session: Session, name: str) -> Optional[models.Category]:
    stmt = select(models.Category).where(models.Category.name == name)
    return session.scalars(stmt).first()


def create_category(session: Session, category_in: schemas.CategoryCreate) -> models.Category:
    name = _require_name(category_in.name)
    if find_category_by_name(session, name) is not None:
        raise EntityConflictError(CATEGORY_NAME_TAKEN)
    category = models.Category(name=name)
    session.add(category)
    try:
        session.flush()
    except IntegrityError as exc:
        # A concurrent insert won the race past the lookup above.
        raise EntityConflictError(CATEGORY_NAME_TAKEN) from exc
    session.refresh(category)
    LOG.info("Created category %s", category.id, extra={"entity": "category", "entity_id": category.id})
    return category


def update_category(session: Session, category_id: int, update_in: schemas.CategoryUpdate) -> models.Category:
    name = _require_name(update_in.name)
    category = get_category(session, category_id)
    category.name = name
    try:
        session.flush()
    except IntegrityError as exc:
        raise EntityConflictError(CATEGORY_NAME_TAKEN) from exc
    session.refresh(category)
    LOG.info("Renamed category %s", category.id, extra={"entity": "category", "entity_id": category.id})
    return category


def count_expenses_for_category(session: Session, category_id: int) -> int:
    stmt = select(func.count(models.Expense.id)).where(models.Expense.category_id == category_id)
    return int(session.scalar(stmt) or 0)


def delete_category(session: Session, category_id: int) -> None:
    category = get_category(session, category_id)
    if count_expenses_for_category(session, category_id) > 0:
        raise EntityConflictError(CATEGORY_IN_USE)
    session.delete(category)
    session.flush()
    LOG.info("Deleted category %s", category_id, extra={"entity": "category", "entity_id": category_id})


def _require_category(session: Session, category_id: Optional[int]) -> models.Category:
    category = _get_row(session, models.Category, category_id) if category_id is not None else None
    if category is None:
        raise EntityValidationError(CATEGORY_NOT_FOUND)
    return category


def list_expenses(session: Session) -> List[models.Expense]:
    stmt = select(models.Expense).options(selectinload(models.Expense.category)).order_by(models.Expense.id)
    return list(session.scalars(stmt))


def get_expense(session: Session, expense_id: int, with_category: bool = False) -> models.Expense:
    options = [selectinload(models.Expense.category)] if with_category else None
    expense = _get_row(session, models.Expense, expense_id, options=options)
    if expense is None:
        raise EntityNotFoundError(EXPENSE_NOT_FOUND)
    return expense


def create_expense(session: Session, expense_in: schemas.ExpenseCreate) -> models.Expense:
    data = expense_in.model_dump()
    _require_category(session, data["category_id"])
    if data["date"] is None:
        # Leave the column default (today) in charge.
        data.pop("date")
    expense = models.Expense(**data)
    session.add(expense)
    session.flush()
    session.refresh(expense)
    LOG.info("Created expense %s", expense.id, extra={"entity": "expense", "entity_id": expense.id})
    return expense


def update_expense(session: Session, expense_id: int, update_in: schemas.ExpenseUpdate) -> models.Expense:
    expense = get_expense(session, expense_id)
    changes = update_in.replacements()
    if "category_id" in changes:
        _require_category(session, changes["category_id"])
    for field, value in changes.items():
        setattr(expense, field, value)
    session.flush()
    session.refresh(expense)
    LOG.info(
        "Updated expense %s fields=%s",
        expense.id,
        ",".join(sorted(changes)) or "none",
        extra={"entity": "expense", "entity_id": expense.id},
    )
    return expense


def delete_expense(session: Session, expense_id: int) -> None:
    expense = get_expense(session, expense_id)
    session.delete(expense)
    session.flush()
    LOG.info("Deleted expense %s", expense_id, extra={"entity": "expense", "entity_id": expense_id})
