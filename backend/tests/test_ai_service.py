"""
Test Module: test_ai_service.py
Description: Unit tests for the OpenAI wrapper using a fake client.

Author: Finance Tracker Team
"""

import asyncio
import pytest
from types import SimpleNamespace

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from services.ai_service import AIService, AIServiceError, AIUnavailableError


def make_response(content, tokens=42):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(total_tokens=tokens),
    )


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error:
            raise self.error
        return make_response(self.content)


def fake_client(content=None, error=None):
    completions = FakeCompletions(content, error)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


@pytest.fixture(autouse=True)
def no_api_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setenv("OPENAI_MODEL", "gpt-4o-mini")


class TestGenerate:

    def test_parses_json_answer(self):
        client, completions = fake_client('{"summary": "ok", "tips": [], "spendingTrend": "stable"}')
        service = AIService(client=client)

        result = asyncio.run(service.generate("sys", "user", {"type": "object"}, "financial_insights"))

        assert result == {"summary": "ok", "tips": [], "spendingTrend": "stable"}
        fmt = completions.kwargs["response_format"]
        assert fmt["type"] == "json_schema"
        assert fmt["json_schema"]["name"] == "financial_insights"
        assert fmt["json_schema"]["strict"] is True
        assert completions.kwargs["model"] == "gpt-4o-mini"
        assert completions.kwargs["messages"][0] == {"role": "system", "content": "sys"}

    def test_tracks_token_usage(self):
        client, _ = fake_client('{"a": 1}')
        service = AIService(client=client)
        asyncio.run(service.generate("s", "u", {}))
        asyncio.run(service.generate("s", "u", {}))

        stats = service.get_usage_stats()
        assert stats["total_tokens"] == 84
        assert stats["request_count"] == 2

    @pytest.mark.parametrize("content", ["not json", "", None, "[1, 2]"])
    def test_unusable_content_raises(self, content):
        client, _ = fake_client(content)
        with pytest.raises(AIServiceError):
            asyncio.run(AIService(client=client).generate("s", "u", {}))

    def test_client_error_is_wrapped(self):
        client, _ = fake_client(error=RuntimeError("503 upstream"))
        with pytest.raises(AIServiceError):
            asyncio.run(AIService(client=client).generate("s", "u", {}))

    def test_without_key_raises_unavailable(self):
        service = AIService()
        assert service.client is None
        with pytest.raises(AIUnavailableError):
            asyncio.run(service.generate("s", "u", {}))


class TestComplete:

    def test_strips_content_and_passes_token_cap(self):
        client, completions = fake_client("  Travel \n")
        text = asyncio.run(AIService(client=client).complete("s", "u", max_tokens=20))

        assert text == "Travel"
        assert completions.kwargs["max_completion_tokens"] == 20

    def test_none_content_becomes_empty_string(self):
        client, _ = fake_client(None)
        assert asyncio.run(AIService(client=client).complete("s", "u")) == ""

    def test_check_connection_without_client(self):
        assert asyncio.run(AIService().check_connection()) is False
