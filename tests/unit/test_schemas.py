from __future__ import annotations

import datetime as dt

import pytest
from pydantic import ValidationError

from expense_ledger import schemas


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2024-01-01", dt.date(2024, 1, 1)),
        ("2024-01-01T23:59:59", dt.date(2024, 1, 1)),
        ("2024-01-01T10:00:00.000Z", dt.date(2024, 1, 1)),
        (dt.datetime(2023, 7, 4, 12, 0), dt.date(2023, 7, 4)),
        (dt.date(2022, 2, 2), dt.date(2022, 2, 2)),
        (None, None),
        ("", None),
    ],
)
def test_parse_calendar_date(raw, expected):
    assert schemas.parse_calendar_date(raw) == expected


@pytest.mark.parametrize("raw", ["yesterday", "2024-13-01", "01/02/2024", 1704067200])
def test_parse_calendar_date_rejects_garbage(raw):
    with pytest.raises(ValueError, match="Invalid date"):
        schemas.parse_calendar_date(raw)


@pytest.mark.parametrize("value", [None, 0, 0.0, ""])
def test_blank_values(value):
    assert schemas.is_blank(value)


@pytest.mark.parametrize("value", [0.01, -3, " ", "Lunch", dt.date(2024, 1, 1), 7])
def test_non_blank_values(value):
    assert not schemas.is_blank(value)


def test_expense_update_replacements_skip_blank_and_omitted():
    update = schemas.ExpenseUpdate.model_validate({"amount": 0, "description": "Dinner", "categoryId": None})
    assert update.replacements() == {"description": "Dinner"}


def test_expense_update_replacements_use_attribute_names():
    update = schemas.ExpenseUpdate.model_validate({"categoryId": 3, "date": "2024-04-01"})
    assert update.replacements() == {"category_id": 3, "date": dt.date(2024, 4, 1)}


def test_expense_create_requires_amount_and_description():
    with pytest.raises(ValidationError) as excinfo:
        schemas.ExpenseCreate.model_validate({"categoryId": 1})
    missing = {error["loc"][0] for error in excinfo.value.errors()}
    assert missing == {"amount", "description"}


@pytest.mark.parametrize("amount", [float("nan"), float("inf"), float("-inf")])
def test_expense_amounts_must_be_finite(amount):
    with pytest.raises(ValidationError, match="finite"):
        schemas.ExpenseCreate.model_validate({"amount": amount, "description": "Lunch"})
    with pytest.raises(ValidationError, match="finite"):
        schemas.ExpenseUpdate.model_validate({"amount": amount})


def test_expense_read_serialises_camel_case():
    payload = schemas.ExpenseDetail(
        id=1,
        amount=12.5,
        description="Lunch",
        date=dt.date(2024, 1, 1),
        category_id=1,
        category=schemas.CategoryRead(id=1, name="Food"),
    ).model_dump(mode="json", by_alias=True)
    assert payload == {
        "id": 1,
        "amount": 12.5,
        "description": "Lunch",
        "date": "2024-01-01",
        "categoryId": 1,
        "Category": {"id": 1, "name": "Food"},
    }
