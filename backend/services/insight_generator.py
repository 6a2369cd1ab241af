"""AI-powered spending insights over a window of transactions."""

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Iterable, Literal, Sequence

from pydantic import BaseModel, ValidationError

from .ai_service import AIService, AIServiceError
from .observability import logger, metrics, timed

CURRENCY_LABEL = os.getenv("CURRENCY_LABEL", "zł")

INSIGHTS_WINDOW_DAYS = 30

EMPTY_SUMMARY = (
    "No financial data found in the last 30 days. Start tracking your income "
    "and expenses to get personalized insights!"
)
EMPTY_TIPS = [
    "Begin by adding your daily transactions",
    "Categorize your spending and income for better analysis",
]

SYSTEM_PROMPT = """You are a personal finance advisor. Analyze the user's financial data and provide insights.
Be encouraging and practical. Focus on patterns, spending habits, and actionable advice.
Keep your response concise but helpful.
Total income: {total_income} {currency}, Total expenses: {total_expenses} {currency}, Net: {net_income} {currency}"""

USER_PROMPT = (
    "Please analyze my financial data from the last 30 days and provide insights:\n\n{transcript}"
)

INSIGHT_SCHEMA = {
    "type": "object",
    "properties": {
        "summary": {
            "type": "string",
            "description": "A brief overview of financial patterns and performance",
        },
        "tips": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Practical financial tips based on income and spending",
        },
        "spendingTrend": {
            "type": "string",
            "enum": ["increasing", "decreasing", "stable"],
            "description": "Overall trend in spending",
        },
    },
    "required": ["summary", "tips", "spendingTrend"],
    "additionalProperties": False,
}

ZERO = Decimal("0")


class InsightGenerationError(Exception):
    """Insights could not be produced from the model's answer."""


class AIInsight(BaseModel):
    """Shape the model must answer with."""
    summary: str
    tips: list[str]
    spendingTrend: Literal["increasing", "decreasing", "stable"]


@dataclass
class Totals:
    total_expenses: Decimal = ZERO
    total_income: Decimal = ZERO
    category_breakdown: dict[str, Decimal] = field(default_factory=dict)

    @property
    def net_income(self) -> Decimal:
        return self.total_income - self.total_expenses


def to_decimal(value) -> Decimal:
    """Exact decimal for an amount coming from the store or a float literal."""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"invalid amount: {value!r}") from e


def aggregate(expenses: Iterable, income: Iterable) -> Totals:
    """Sum expenses per category and overall, plus total income."""
    totals = Totals()
    for expense in expenses:
        amount = to_decimal(expense.amount)
        totals.total_expenses += amount
        totals.category_breakdown[expense.category] = (
            totals.category_breakdown.get(expense.category, ZERO) + amount
        )
    for item in income:
        totals.total_income += to_decimal(item.amount)
    return totals


def format_line(txn, sign: str) -> str:
    return f"{txn.date}: {sign}{txn.amount} {CURRENCY_LABEL} - {txn.description} ({txn.category})"


def build_transcript(expenses: Sequence, income: Sequence) -> str:
    """One line per transaction, expenses (negative) first, then income."""
    lines = [format_line(e, "-") for e in expenses]
    lines += [format_line(i, "+") for i in income]
    return "\n".join(lines)


def empty_insight() -> dict:
    return {
        "summary": EMPTY_SUMMARY,
        "tips": list(EMPTY_TIPS),
        "categoryBreakdown": {},
        "spendingTrend": "stable",
    }


class InsightGenerator:
    """Generate a summary, tips and spending trend for recent transactions."""

    def __init__(self, ai_service: AIService):
        self.ai_service = ai_service

    @timed("insights.generate")
    async def generate(self, expenses: Sequence, income: Sequence) -> dict:
        """
        Build the insight for the given expenses and income.

        The category breakdown is always computed locally. The model is
        only consulted when there is at least one transaction.

        Raises:
            InsightGenerationError: the AI call failed or its answer did not
                match the expected shape.
        """
        totals = aggregate(expenses, income)

        if not expenses and not income:
            metrics.increment("insights.empty")
            return empty_insight()

        system_prompt = SYSTEM_PROMPT.format(
            total_income=f"{totals.total_income:.2f}",
            total_expenses=f"{totals.total_expenses:.2f}",
            net_income=f"{totals.net_income:.2f}",
            currency=CURRENCY_LABEL,
        )
        user_prompt = USER_PROMPT.format(transcript=build_transcript(expenses, income))

        try:
            answer = await self.ai_service.generate(
                system_prompt, user_prompt, INSIGHT_SCHEMA, schema_name="financial_insights"
            )
            parsed = AIInsight.model_validate(answer)
        except AIServiceError as e:
            logger.error("Insight generation failed", error=str(e))
            raise InsightGenerationError("text generation failed") from e
        except ValidationError as e:
            logger.error("Insight answer rejected", errors=e.error_count())
            raise InsightGenerationError("malformed insight answer") from e

        insight = parsed.model_dump()
        insight["categoryBreakdown"] = dict(totals.category_breakdown)
        return insight
