"""
Persistence gateway for expenses and income.

Translates TransactionQuery descriptors into SQLAlchemy queries and wraps
single-row insert/delete. Database errors surface as StoreError so routes
can answer with a generic 500.

Author: Finance Tracker Team
"""

from datetime import date
from typing import Type, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from models import Expense, Income
from .observability import logger, metrics
from .transaction_filter import TransactionQuery

TransactionModel = Type[Union[Expense, Income]]


class StoreError(Exception):
    """Raised when the database rejects or fails a request."""


def _as_date(value: Union[date, str]) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as e:
        raise StoreError(f"invalid date bound: {value!r}") from e


class TransactionStore:
    """Reads and writes owner-scoped transaction rows."""

    def __init__(self, db: DBSession):
        self.db = db

    def list(self, model: TransactionModel, query: TransactionQuery) -> list:
        """Fetch rows for one owner, filtered, ordered and capped per the descriptor."""
        q = self.db.query(model).filter(model.user_id == query.owner_id)

        if query.window is not None:
            if query.window.start is not None:
                q = q.filter(model.date >= _as_date(query.window.start))
            if query.window.end is not None:
                q = q.filter(model.date <= _as_date(query.window.end))

        for column_name, direction in query.order:
            column = getattr(model, column_name)
            q = q.order_by(column.desc() if direction == "desc" else column.asc())

        if query.limit is not None:
            q = q.limit(query.limit)

        try:
            return q.all()
        except SQLAlchemyError as e:
            metrics.increment("store.errors", tags={"table": model.__tablename__})
            raise StoreError(f"failed to list {model.__tablename__}") from e

    def create(self, model: TransactionModel, owner_id: str, **values):
        """Insert one row owned by owner_id and return it."""
        row = model(user_id=owner_id, **values)
        try:
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        except SQLAlchemyError as e:
            self.db.rollback()
            metrics.increment("store.errors", tags={"table": model.__tablename__})
            raise StoreError(f"failed to create {model.__tablename__} row") from e

        logger.info("Row created", table=model.__tablename__, id=row.id)
        return row

    def delete(self, model: TransactionModel, owner_id: str, row_id: int) -> int:
        """Delete one owned row. Returns the number of rows removed (0 or 1)."""
        try:
            deleted = (
                self.db.query(model)
                .filter(model.id == row_id)
                .filter(model.user_id == owner_id)
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            metrics.increment("store.errors", tags={"table": model.__tablename__})
            raise StoreError(f"failed to delete {model.__tablename__} row") from e
        return deleted
