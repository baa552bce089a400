"""SQLAlchemy models for the expense ledger.

Table and column names follow the layout of the existing ``database.db``
files (``Categories``/``Expenses`` with a camel-cased ``categoryId``).
"""
from __future__ import annotations

from datetime import date

from sqlalchemy import Column, Date, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .database import Base


class Category(Base):
    __tablename__ = "Categories"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), unique=True, nullable=False)

    expenses = relationship("Expense", back_populates="category")

    def __repr__(self) -> str:
        return f"Category(id={self.id!r}, name={self.name!r})"


class Expense(Base):
    __tablename__ = "Expenses"

    id = Column(Integer, primary_key=True)
    amount = Column(Float, nullable=False)
    description = Column(Text, nullable=False)
    date = Column(Date, default=date.today)
    # No ON DELETE rule: the reference is guarded by the category delete handler.
    category_id = Column("categoryId", Integer, ForeignKey("Categories.id"), nullable=True)

    category = relationship("Category", back_populates="expenses")

    def __repr__(self) -> str:
        return f"Expense(id={self.id!r}, amount={self.amount!r}, category_id={self.category_id!r})"
