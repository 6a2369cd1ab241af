"""
Test Module: test_transaction_filter.py
Description: Unit tests for date-window resolution and query descriptors.

Tests:
    - Explicit ranges take priority over named filters
    - this_month / last_month / this_year boundaries
    - Limit parsing (tolerant policy)
    - Fixed ordering

Author: Finance Tracker Team
"""

import pytest
from datetime import date

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from services.transaction_filter import (
    DateWindow,
    DEFAULT_ORDER,
    build_query,
    parse_limit,
    resolve_window,
    trailing_window,
)

TODAY = date(2024, 3, 15)


class TestResolveWindow:
    """Window resolution in priority order."""

    def test_explicit_range_is_passed_through(self):
        window = resolve_window("2024-01-05", "2024-02-10", today=TODAY)
        assert window == DateWindow(start="2024-01-05", end="2024-02-10")

    def test_explicit_range_wins_over_named_filter(self):
        window = resolve_window("2023-06-01", "2023-06-30", "this_year", today=TODAY)
        assert window == DateWindow(start="2023-06-01", end="2023-06-30")

    def test_unparseable_explicit_dates_are_not_rejected(self):
        window = resolve_window("yesterday", "2024-13-45", today=TODAY)
        assert window.start == "yesterday"
        assert window.end == "2024-13-45"

    def test_single_bound_falls_through_to_filter(self):
        window = resolve_window(start_date="2024-01-01", filter_name="this_month", today=TODAY)
        assert window == DateWindow(start=date(2024, 3, 1))

    def test_single_bound_without_filter_means_no_window(self):
        assert resolve_window(end_date="2024-01-01", today=TODAY) is None

    def test_this_month(self):
        window = resolve_window(filter_name="this_month", today=TODAY)
        assert window.start == date(2024, 3, 1)
        assert window.end is None

    def test_last_month_in_leap_year(self):
        window = resolve_window(filter_name="last_month", today=TODAY)
        assert window == DateWindow(start=date(2024, 2, 1), end=date(2024, 2, 29))

    def test_last_month_crosses_year_boundary(self):
        window = resolve_window(filter_name="last_month", today=date(2025, 1, 31))
        assert window == DateWindow(start=date(2024, 12, 1), end=date(2024, 12, 31))

    def test_last_month_from_first_day_of_month(self):
        window = resolve_window(filter_name="last_month", today=date(2023, 3, 1))
        assert window == DateWindow(start=date(2023, 2, 1), end=date(2023, 2, 28))

    def test_this_year(self):
        window = resolve_window(filter_name="this_year", today=TODAY)
        assert window.start == date(2024, 1, 1)
        assert window.end is None

    @pytest.mark.parametrize("filter_name", [None, "", "last_week", "THIS_MONTH"])
    def test_unknown_filter_means_full_history(self, filter_name):
        assert resolve_window(filter_name=filter_name, today=TODAY) is None

    def test_defaults_to_current_date(self):
        window = resolve_window(filter_name="this_year")
        assert window.start == date(date.today().year, 1, 1)


class TestTrailingWindow:

    def test_thirty_days_back_open_end(self):
        window = trailing_window(30, today=TODAY)
        assert window.start == date(2024, 2, 14)
        assert window.end is None


class TestParseLimit:
    """Malformed limits are ignored, never rejected."""

    @pytest.mark.parametrize("raw, expected", [
        ("10", 10),
        (" 7 ", 7),
        (25, 25),
        ("1", 1),
    ])
    def test_valid_limits(self, raw, expected):
        assert parse_limit(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "abc", "10abc", "-5", "0", 0, -3, "1.5", "²", True])
    def test_invalid_limits_are_ignored(self, raw):
        assert parse_limit(raw) is None


class TestBuildQuery:

    def test_descriptor_contains_all_parts(self):
        query = build_query("user_1", filter="last_month", limit="5", today=TODAY)

        assert query.owner_id == "user_1"
        assert query.window == DateWindow(start=date(2024, 2, 1), end=date(2024, 2, 29))
        assert query.limit == 5
        assert query.order == DEFAULT_ORDER

    def test_ordering_is_fixed_regardless_of_filter(self):
        orders = {
            build_query("u", filter=f, today=TODAY).order
            for f in (None, "this_month", "last_month", "this_year")
        }
        assert orders == {(("date", "desc"), ("created_at", "desc"))}

    def test_no_parameters_gives_unbounded_uncapped_query(self):
        query = build_query("u", today=TODAY)
        assert query.window is None
        assert query.limit is None
