from __future__ import annotations

import json
import time
from datetime import date
from typing import Any

from deepreport.config import settings
from deepreport.errors import ResearchError, UpstreamError
from deepreport.llm_client import client as llm_client, get_model
from deepreport.services import logger as log_service
from deepreport.services.prompt_store import render_prompt


def extract_json_object(raw_text: str) -> dict[str, Any]:
    text = raw_text.strip()
    if text.startswith("```"):
        parts = text.split("```")
        if len(parts) >= 2:
            text = parts[1]
        if text.startswith("json"):
            text = text[4:]
        text = text.strip()
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        raise json.JSONDecodeError("object not found", text, 0)
    parsed = json.loads(text[start : end + 1])
    if not isinstance(parsed, dict):
        raise json.JSONDecodeError("not an object", text, 0)
    return parsed


class JSONAgent:
    """Single-shot LLM call that answers with one JSON object.

    Subclasses set ``name`` and ``prompt_key``; the prompt catalog holds a
    ``system_prompt`` and a ``user_prompt`` under that key.
    """

    name: str = "base"
    prompt_key: str = ""

    def __init__(self, model: str | None = None):
        self.model = model or get_model()
        self.client = None

    def system_prompt(self) -> str:
        today = date.today()
        return render_prompt(
            f"{self.prompt_key}.system_prompt",
            today_iso=today.isoformat(),
            today_year=today.year,
        )

    async def complete(self, **values: Any) -> dict[str, Any]:
        user_message = render_prompt(f"{self.prompt_key}.user_prompt", **values)
        active_client = self.client or llm_client()

        t0 = time.monotonic()
        try:
            response = await active_client.messages.create(
                model=self.model,
                max_tokens=settings.llm_max_tokens,
                system=self.system_prompt(),
                messages=[{"role": "user", "content": user_message}],
                json_mode=True,
            )
        except ResearchError as exc:
            log_service.log_llm_call(
                model=self.model,
                caller=self.name,
                duration_ms=int((time.monotonic() - t0) * 1000),
                status="error",
                error=exc.message,
            )
            raise
        log_service.log_llm_call(
            model=self.model,
            caller=self.name,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )

        try:
            return extract_json_object(response.text)
        except json.JSONDecodeError as exc:
            raise UpstreamError(f"{self.name} returned a malformed response") from exc
