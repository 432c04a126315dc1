"""Tests for the OpenRouter messages adapter."""
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from deepreport.errors import QuotaExceededError, RateLimitedError, UpstreamError
from deepreport.llm_client import OpenRouterMessagesAdapter, translate_api_error


def _status_error(status: int, body=None) -> openai.APIStatusError:
    request = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")
    response = httpx.Response(status, request=request)
    return openai.APIStatusError("upstream said no", response=response, body=body)


def test_translate_api_error_maps_status_codes():
    assert isinstance(translate_api_error(_status_error(429)), RateLimitedError)
    assert isinstance(translate_api_error(_status_error(403)), QuotaExceededError)
    error = translate_api_error(_status_error(500, body={"error": {"message": "model overloaded"}}))
    assert isinstance(error, UpstreamError)
    assert error.message == "LLM: model overloaded"


@pytest.mark.asyncio
async def test_create_maps_response_and_requests_json():
    response = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content='{"ok": true}'))],
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=3),
    )
    openai_client = MagicMock()
    openai_client.chat.completions.create = AsyncMock(return_value=response)
    adapter = OpenRouterMessagesAdapter(openai_client)

    result = await adapter.create(
        model="google/gemini-2.0-flash-001",
        max_tokens=100,
        system="sys",
        messages=[{"role": "user", "content": "hi"}],
        json_mode=True,
    )

    assert result.text == '{"ok": true}'
    assert result.usage.input_tokens == 12
    kwargs = openai_client.chat.completions.create.await_args.kwargs
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["messages"][0] == {"role": "system", "content": "sys"}
    assert kwargs["temperature"] == 0


@pytest.mark.asyncio
async def test_create_translates_sdk_errors():
    openai_client = MagicMock()
    openai_client.chat.completions.create = AsyncMock(side_effect=_status_error(429))
    adapter = OpenRouterMessagesAdapter(openai_client)

    with pytest.raises(RateLimitedError):
        await adapter.create(model="m", max_tokens=10, system="s", messages=[])


def test_reasoning_models_use_default_temperature():
    assert OpenRouterMessagesAdapter._temperature_for_model("openai/gpt-5") == 1
    assert OpenRouterMessagesAdapter._temperature_for_model("openai/o1-mini") == 1
    assert OpenRouterMessagesAdapter._temperature_for_model("openai/gpt-4o") == 0
