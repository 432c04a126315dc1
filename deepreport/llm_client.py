"""OpenRouter LLM client factory with a small messages adapter."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import openai

from deepreport.config import settings
from deepreport.errors import ResearchError, UpstreamError, from_status


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class MessageResponse:
    text: str
    usage: Usage


def translate_api_error(exc: openai.OpenAIError) -> ResearchError:
    """Map OpenAI-compatible SDK failures onto the research error taxonomy."""
    if isinstance(exc, openai.APIStatusError):
        message = ""
        body = getattr(exc, "body", None)
        if isinstance(body, dict):
            raw = body.get("message") or body.get("error")
            if isinstance(raw, dict):
                raw = raw.get("message")
            if isinstance(raw, str):
                message = raw
        return from_status(exc.status_code, message or str(exc.message or ""), service="LLM")
    return UpstreamError(f"LLM: {exc}")


class OpenRouterMessagesAdapter:
    def __init__(self, openai_client: Any):
        self._client = openai_client

    @staticmethod
    def _temperature_for_model(model: str) -> int:
        # Some OpenAI GPT-5-compatible gateways reject temperature=0.
        lowered = (model or "").lower()
        if "gpt-5" in lowered or "/o1" in lowered:
            return 1
        return 0

    def _from_openai_response(self, response: Any) -> MessageResponse:
        choices = getattr(response, "choices", None) or []
        text = ""
        if choices:
            text = getattr(choices[0].message, "content", None) or ""

        usage = getattr(response, "usage", None)
        mapped_usage = Usage(
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )
        return MessageResponse(text=text, usage=mapped_usage)

    async def create(
        self,
        *,
        model: str,
        max_tokens: int,
        system: str,
        messages: list[dict[str, Any]],
        json_mode: bool = False,
    ) -> MessageResponse:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [{"role": "system", "content": system}, *messages],
            "max_tokens": max_tokens,
            "temperature": self._temperature_for_model(model),
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.OpenAIError as exc:
            raise translate_api_error(exc) from exc
        return self._from_openai_response(response)


class OpenRouterClientAdapter:
    def __init__(self, openai_client: Any):
        self.messages = OpenRouterMessagesAdapter(openai_client)


def get_client() -> OpenRouterClientAdapter:
    """Get OpenRouter client via OpenAI-compatible SDK."""
    if not settings.openrouter_api_key:
        raise UpstreamError("OPENROUTER_API_KEY is not configured")
    base_url = settings.openrouter_base_url.strip() or "https://openrouter.ai/api/v1"
    openai_client = openai.AsyncOpenAI(
        api_key=settings.openrouter_api_key,
        base_url=base_url,
    )
    return OpenRouterClientAdapter(openai_client)


def get_model() -> str:
    """Get the active OpenRouter model id."""
    if settings.openrouter_model:
        return settings.openrouter_model
    return settings.default_model


_client: OpenRouterClientAdapter | None = None


def client() -> OpenRouterClientAdapter:
    """Get or create the LLM client."""
    global _client
    if _client is None:
        _client = get_client()
    return _client
