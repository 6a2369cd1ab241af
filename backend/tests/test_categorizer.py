"""
Test Module: test_categorizer.py
Description: Unit tests for single-transaction AI categorization.

Author: Finance Tracker Team
"""

import asyncio
import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from conftest import StubAIService
from services.ai_service import AIServiceError, AIUnavailableError
from services.categorizer import Categorizer


def categorize(ai, description="Uber to airport", kind="expense"):
    return asyncio.run(Categorizer(ai).categorize(description, kind))


class TestCategorizer:

    def test_returns_vocabulary_match(self):
        ai = StubAIService(text="Transportation")
        assert categorize(ai) == "Transportation"

    def test_normalizes_case_and_punctuation(self):
        ai = StubAIService(text='  "food & dining."  ')
        assert categorize(ai, "Pizza") == "Food & Dining"

    def test_income_vocabulary(self):
        ai = StubAIService(text="Freelance")
        assert categorize(ai, "Logo design for client", "income") == "Freelance"

    def test_prompt_lists_kind_vocabulary(self):
        ai = StubAIService(text="Salary")
        categorize(ai, "March pay", "income")

        call = ai.calls[0]
        assert "Salary, Freelance, Investment, Business, Gift, Other Income" in call["system_prompt"]
        assert 'Categorize this income: "March pay"' == call["user_prompt"]
        assert call["max_tokens"] == 20

    @pytest.mark.parametrize("kind, default", [("expense", "Other"), ("income", "Other Income")])
    def test_error_returns_default(self, kind, default):
        ai = StubAIService(error=AIServiceError("boom"))
        assert categorize(ai, kind=kind) == default

    def test_missing_client_returns_default(self):
        ai = StubAIService(error=AIUnavailableError("no key"))
        assert categorize(ai) == "Other"

    def test_unexpected_exception_returns_default(self):
        ai = StubAIService(error=RuntimeError("socket closed"))
        assert categorize(ai, kind="income") == "Other Income"

    @pytest.mark.parametrize("kind, default", [("expense", "Other"), ("income", "Other Income")])
    def test_empty_answer_returns_default(self, kind, default):
        ai = StubAIService(text="")
        assert categorize(ai, kind=kind) == default

    def test_answer_outside_vocabulary_returns_default(self):
        ai = StubAIService(text="Groceries and household")
        assert categorize(ai) == "Other"

    def test_expense_answer_for_income_request_returns_default(self):
        ai = StubAIService(text="Shopping")
        assert categorize(ai, kind="income") == "Other Income"
