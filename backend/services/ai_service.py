"""
OpenAI wrapper exposing the two capabilities the app needs.

Features:
    - generate(): structured JSON answers constrained by a JSON schema
    - complete(): short free-text answers
    - Token usage tracking
    - Per-call timeout, no retries (a failed call is a failed request)

Author: Finance Tracker Team
"""

import os
import json
import time
from typing import Optional
from dotenv import load_dotenv

from .observability import logger, log_openai_call

load_dotenv()


class AIServiceError(Exception):
    """The text-generation call failed or returned unusable content."""


class AIUnavailableError(AIServiceError):
    """No OpenAI client is configured."""


class AIService:
    """
    Wrapper for the OpenAI chat completions API.

    Both capabilities raise AIServiceError on any failure; callers decide
    whether that is fatal (insights) or falls back to a default (categorize).
    """

    DEFAULT_MODEL = "gpt-4o-mini"
    DEFAULT_TIMEOUT = 30.0

    def __init__(self, client=None):
        raw_key = os.getenv("OPENAI_API_KEY", "")
        self.api_key = raw_key.strip() if raw_key else None
        self.model = os.getenv("OPENAI_MODEL", self.DEFAULT_MODEL)
        self.timeout = float(os.getenv("AI_TIMEOUT_SECONDS", self.DEFAULT_TIMEOUT))
        self.client = client

        # Token usage tracking
        self.total_tokens_used = 0
        self.request_count = 0

        if self.client is None and self.api_key and self.api_key.startswith("sk-"):
            from openai import AsyncOpenAI
            self.client = AsyncOpenAI(api_key=self.api_key)
        elif self.client is None:
            logger.warning("OpenAI API key not configured, AI features unavailable")

    def _track_usage(self, response) -> int:
        """Track token usage from API response."""
        tokens = 0
        if getattr(response, "usage", None):
            tokens = response.usage.total_tokens
            self.total_tokens_used += tokens
        self.request_count += 1
        return tokens

    def get_usage_stats(self) -> dict:
        """Get current usage statistics."""
        return {
            "total_tokens": self.total_tokens_used,
            "request_count": self.request_count,
            "avg_tokens_per_request": (
                self.total_tokens_used / self.request_count
                if self.request_count > 0 else 0
            )
        }

    async def _create(self, endpoint: str, **kwargs):
        if not self.client:
            raise AIUnavailableError("OpenAI client not configured")

        start = time.perf_counter()
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                timeout=self.timeout,
                **kwargs
            )
        except Exception as e:
            raise AIServiceError(f"{endpoint} call failed: {e}") from e

        tokens = self._track_usage(response)
        log_openai_call(endpoint, tokens, (time.perf_counter() - start) * 1000)
        return response

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        response_schema: dict,
        schema_name: str = "structured_answer",
    ) -> dict:
        """
        Ask for an answer conforming to response_schema.

        Returns:
            The parsed JSON object.

        Raises:
            AIServiceError: call failure, empty content or invalid JSON.
        """
        response = await self._create(
            schema_name,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            response_format={
                "type": "json_schema",
                "json_schema": {
                    "name": schema_name,
                    "schema": response_schema,
                    "strict": True,
                },
            },
        )

        content = response.choices[0].message.content
        if not content:
            raise AIServiceError(f"{schema_name}: empty response")
        try:
            result = json.loads(content)
        except json.JSONDecodeError as e:
            raise AIServiceError(f"{schema_name}: response is not valid JSON") from e
        if not isinstance(result, dict):
            raise AIServiceError(f"{schema_name}: expected a JSON object")
        return result

    async def complete(
        self, system_prompt: str, user_prompt: str, max_tokens: Optional[int] = None
    ) -> str:
        """Plain-text completion. Returns the stripped content, possibly empty."""
        kwargs = {}
        if max_tokens is not None:
            kwargs["max_completion_tokens"] = max_tokens

        response = await self._create(
            "completion",
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            **kwargs
        )
        return (response.choices[0].message.content or "").strip()

    async def check_connection(self) -> bool:
        """Check if OpenAI API is accessible."""
        if not self.client:
            return False
        try:
            await self.client.models.list()
            return True
        except Exception:
            return False
