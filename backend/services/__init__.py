"""Backend services for the finance tracker."""

from .ai_service import AIService, AIServiceError, AIUnavailableError
from .categorizer import Categorizer
from .insight_generator import InsightGenerator, InsightGenerationError
from .transaction_filter import build_query, resolve_window, trailing_window
from .transaction_store import TransactionStore, StoreError

__all__ = [
    "AIService",
    "AIServiceError",
    "AIUnavailableError",
    "Categorizer",
    "InsightGenerator",
    "InsightGenerationError",
    "build_query",
    "resolve_window",
    "trailing_window",
    "TransactionStore",
    "StoreError",
]
