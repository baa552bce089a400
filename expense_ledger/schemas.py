"""Pydantic schemas for serialising expense ledger data."""
from __future__ import annotations

import datetime as dt
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# Clients send the camel-cased column name; the snake-cased form is accepted too.
CATEGORY_ID_INPUT = AliasChoices("categoryId", "category_id")


def parse_calendar_date(value: Any) -> Optional[dt.date]:
    """Coerce ``value`` to a calendar date, dropping any time component.

    ``None`` and the empty string mean "no date supplied". Strings must be ISO
    dates or ISO datetimes; anything else raises ``ValueError``.
    """
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return dt.date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return dt.datetime.fromisoformat(text).date()
        except ValueError as exc:
            raise ValueError(f"Invalid date: {value!r}") from exc
    raise ValueError(f"Invalid date: {value!r}")


def is_blank(value: Any) -> bool:
    """Return ``True`` for values that never overwrite a stored field."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == 0
    return False


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class CategoryPayload(BaseModel):
    # Presence is checked by the crud layer so the message matches the other 400s.
    name: Optional[str] = None


class CategoryCreate(CategoryPayload):
    pass


class CategoryUpdate(CategoryPayload):
    pass


class CategoryRead(ORMModel):
    id: int
    name: str


class ExpenseCreate(BaseModel):
    # NaN and overflowed literals (1e999) parse as JSON floats but cannot be stored.
    amount: float = Field(..., allow_inf_nan=False)
    description: str
    category_id: Optional[int] = Field(None, validation_alias=CATEGORY_ID_INPUT)
    date: Optional[dt.date] = None

    @field_validator("date", mode="before")
    @classmethod
    def coerce_date(cls, value: Any) -> Optional[dt.date]:
        return parse_calendar_date(value)


class ExpenseUpdate(BaseModel):
    """Partial update of an expense.

    Every field is optional. Only fields that carry a replacement value are
    applied: omitted fields, ``null``, ``0`` and ``""`` keep the stored value.
    """

    amount: Optional[float] = Field(None, allow_inf_nan=False)
    description: Optional[str] = None
    category_id: Optional[int] = Field(None, validation_alias=CATEGORY_ID_INPUT)
    date: Optional[dt.date] = None

    @field_validator("date", mode="before")
    @classmethod
    def coerce_date(cls, value: Any) -> Optional[dt.date]:
        return parse_calendar_date(value)

    def replacements(self) -> Dict[str, Any]:
        """Return the fields that overwrite stored values, keyed by attribute name."""
        return {
            field: value
            for field, value in self.model_dump(exclude_unset=True).items()
            if not is_blank(value)
        }


class ExpenseRead(ORMModel):
    id: int
    amount: float
    description: str
    date: Optional[dt.date] = None
    category_id: Optional[int] = Field(None, serialization_alias="categoryId")


class ExpenseDetail(ExpenseRead):
    category: Optional[CategoryRead] = Field(None, serialization_alias="Category")


class MessageRead(BaseModel):
    message: str


class ErrorRead(BaseModel):
    error: str
