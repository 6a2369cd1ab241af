"""AI transaction categorization against a closed category vocabulary."""

from database import DEFAULT_EXPENSE_CATEGORIES, DEFAULT_INCOME_CATEGORIES
from .ai_service import AIService
from .observability import logger, metrics


class Categorizer:
    """Pick one category for a free-text description. Never raises."""

    VOCABULARY = {
        "expense": [name for name, _ in DEFAULT_EXPENSE_CATEGORIES],
        "income": [name for name, _ in DEFAULT_INCOME_CATEGORIES],
    }

    DEFAULTS = {
        "expense": "Other",
        "income": "Other Income",
    }

    MAX_TOKENS = 20

    def __init__(self, ai_service: AIService):
        self.ai_service = ai_service

    def default_for(self, kind: str) -> str:
        return self.DEFAULTS["income" if kind == "income" else "expense"]

    def _match(self, answer: str, kind: str) -> str | None:
        """Canonical vocabulary entry for the model's answer, if any."""
        cleaned = answer.strip().strip('."\'').strip().lower()
        for name in self.VOCABULARY[kind]:
            if name.lower() == cleaned:
                return name
        return None

    async def categorize(self, description: str, kind: str = "expense") -> str:
        """
        Categorize one transaction description.

        Args:
            description: Free-text description entered by the user.
            kind: 'expense' or 'income'.

        Returns:
            A category name from the vocabulary for `kind`, or the default
            ('Other' / 'Other Income') when the model fails or answers
            outside the vocabulary.
        """
        kind = "income" if kind == "income" else "expense"
        categories = ", ".join(self.VOCABULARY[kind])

        try:
            answer = await self.ai_service.complete(
                system_prompt=(
                    f"Categorize the {kind} description into one of these categories: "
                    f"{categories}. Return only the category name."
                ),
                user_prompt=f'Categorize this {kind}: "{description}"',
                max_tokens=self.MAX_TOKENS,
            )
        except Exception as e:
            logger.warning("Categorization fell back to default", kind=kind, error=str(e))
            metrics.increment("categorize.fallback", tags={"reason": "error"})
            return self.default_for(kind)

        category = self._match(answer or "", kind)
        if category is None:
            logger.info("Categorization answer outside vocabulary", kind=kind, answer=answer[:40] if answer else "")
            metrics.increment("categorize.fallback", tags={"reason": "unknown"})
            return self.default_for(kind)

        metrics.increment("categorize.success")
        return category
