"""
Tests for AI-assisted event copy.
"""

import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from meetspace.core.exceptions import MeetspaceError, ValidationFailed
from meetspace.services.ai_service import AIService, FALLBACK_CONTENT, build_prompt, is_quota_error


def completion(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


@pytest.fixture
def openai_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion("  PyData Addis 2024  "))
    with patch("meetspace.services.ai_service.get_openai_client", return_value=client):
        yield client


class TestPrompts:

    def test_title_prompt_includes_details(self):
        prompt = build_prompt("tech", "title", "a Python conference")

        assert "title" in prompt
        assert "tech event" in prompt
        assert "a Python conference" in prompt

    def test_quota_detection(self):
        assert is_quota_error(Exception("Error code: 429 - rate limited")) is True
        assert is_quota_error(Exception("You exceeded your current quota")) is True
        assert is_quota_error(Exception("invalid api key")) is False


class TestGenerate:
    """Test generation and fallbacks."""

    @pytest.mark.asyncio
    async def test_validation(self):
        with pytest.raises(ValidationFailed) as missing:
            await AIService().generate(None, "title")
        with pytest.raises(ValidationFailed) as invalid:
            await AIService().generate("tech", "slogan")

        assert missing.value.code == "MISSING_PARAMETERS"
        assert invalid.value.code == "INVALID_TYPE"

    @pytest.mark.asyncio
    async def test_fallback_without_api_key(self):
        result = await AIService().generate("Arts", "title")

        assert result == {
            "text": FALLBACK_CONTENT["title"]["arts"],
            "type": "title",
            "is_from_fallback": True,
        }

    @pytest.mark.asyncio
    async def test_unknown_category_falls_back_to_other(self):
        result = await AIService().generate("gaming", "shortDescription")

        assert result["text"] == FALLBACK_CONTENT["shortDescription"]["other"]

    @pytest.mark.asyncio
    async def test_generated_text(self, monkeypatch, openai_client):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        result = await AIService().generate("tech", "title", "Python")

        assert result == {"text": "PyData Addis 2024", "type": "title", "is_from_fallback": False}
        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["max_tokens"] == 30
        assert kwargs["messages"][0]["role"] == "system"

    @pytest.mark.asyncio
    async def test_quota_error_uses_fallback(self, monkeypatch, openai_client):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        openai_client.chat.completions.create.side_effect = Exception("Error code: 429 insufficient_quota")

        result = await AIService().generate("sports", "description")

        assert result["is_from_fallback"] is True
        assert result["text"] == FALLBACK_CONTENT["description"]["sports"]

    @pytest.mark.asyncio
    async def test_other_errors_raise(self, monkeypatch, openai_client):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        openai_client.chat.completions.create.side_effect = Exception("invalid api key")

        with pytest.raises(MeetspaceError) as exc_info:
            await AIService().generate("tech", "title")

        assert exc_info.value.code == "AI_GENERATION_FAILED"
