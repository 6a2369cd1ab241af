"""
SQLAlchemy ORM models for Finance Tracker.

Includes:
    - Expense and Income (one row per recorded transaction)
    - Category (shared defaults and user-owned categories)

Every row is scoped by user_id, the id handed out by the identity service.

Author: Finance Tracker Team
"""

from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, Date, DateTime, Text, Index
)
from database import Base


class TransactionMixin:
    """Columns shared by expenses and income."""

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Owner (required for multi-user isolation)
    user_id = Column(String, nullable=False, index=True)

    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String, nullable=False)  # Category name, not FK
    date = Column(Date, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Expense(TransactionMixin, Base):
    """Money going out."""
    __tablename__ = "expenses"

    __table_args__ = (
        Index("ix_expenses_user_date", "user_id", "date"),
    )


class Income(TransactionMixin, Base):
    """Money coming in."""
    __tablename__ = "income"

    __table_args__ = (
        Index("ix_income_user_date", "user_id", "date"),
    )


class Category(Base):
    """
    Transaction category.

    user_id is NULL for the shared defaults, which nobody may modify.
    """
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=True, index=True)
    name = Column(String, nullable=False)
    icon = Column(String)
    type = Column(String, nullable=False)  # 'expense'|'income'
    is_default = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
