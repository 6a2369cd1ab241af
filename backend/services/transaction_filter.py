"""
Module: transaction_filter.py
Description: Turns list-request parameters into a query descriptor.

The same rules apply to the expense and income listings:
    1. start_date + end_date      -> explicit inclusive range
    2. filter=this_month          -> first of the month, open end
    3. filter=last_month          -> whole previous calendar month
    4. filter=this_year           -> January 1st, open end
    5. anything else              -> full history

Results are always ordered newest first (date, then created_at).

Author: Finance Tracker Team

Usage:
    query = build_query(user_id, filter="last_month", limit="10")
    rows = store.list(Expense, query)
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional, Union

# date for resolved named windows, raw string for explicit bounds
Bound = Union[date, str]

THIS_MONTH = "this_month"
LAST_MONTH = "last_month"
THIS_YEAR = "this_year"

NAMED_FILTERS = (THIS_MONTH, LAST_MONTH, THIS_YEAR)

DEFAULT_ORDER = (("date", "desc"), ("created_at", "desc"))


@dataclass(frozen=True)
class DateWindow:
    """Inclusive date bounds; None means unbounded on that side."""
    start: Optional[Bound] = None
    end: Optional[Bound] = None


@dataclass(frozen=True)
class TransactionQuery:
    """Everything the store needs to fetch one page of transactions."""
    owner_id: str
    window: Optional[DateWindow] = None
    order: tuple = field(default=DEFAULT_ORDER)
    limit: Optional[int] = None


def first_of_month(day: date) -> date:
    return day.replace(day=1)


def resolve_window(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    filter_name: Optional[str] = None,
    today: Optional[date] = None,
) -> Optional[DateWindow]:
    """
    Resolve the date window for a list request.

    Args:
        start_date: Explicit lower bound, passed through untouched.
        end_date: Explicit upper bound, passed through untouched.
        filter_name: One of this_month, last_month, this_year.
        today: Reference date, defaults to date.today().

    Returns:
        DateWindow, or None when the full history should be returned.
    """
    if start_date and end_date:
        return DateWindow(start=start_date, end=end_date)

    today = today or date.today()

    if filter_name == THIS_MONTH:
        return DateWindow(start=first_of_month(today))

    if filter_name == LAST_MONTH:
        end_of_last_month = first_of_month(today) - timedelta(days=1)
        return DateWindow(start=first_of_month(end_of_last_month), end=end_of_last_month)

    if filter_name == THIS_YEAR:
        return DateWindow(start=today.replace(month=1, day=1))

    return None


def trailing_window(days: int, today: Optional[date] = None) -> DateWindow:
    """Window covering the last `days` days up to and past today."""
    today = today or date.today()
    return DateWindow(start=today - timedelta(days=days))


def parse_limit(raw: Optional[Union[str, int]]) -> Optional[int]:
    """
    Parse a row cap.

    Malformed, zero or negative values are ignored rather than rejected.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw > 0 else None

    text = str(raw).strip()
    if not (text.isascii() and text.isdigit()):
        return None
    value = int(text)
    return value if value > 0 else None


def build_query(
    owner_id: str,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    filter: Optional[str] = None,
    limit: Optional[Union[str, int]] = None,
    today: Optional[date] = None,
) -> TransactionQuery:
    """Build the full query descriptor for a list request."""
    return TransactionQuery(
        owner_id=owner_id,
        window=resolve_window(start_date, end_date, filter, today),
        limit=parse_limit(limit),
    )
