from __future__ import annotations

import json
from pathlib import Path
from string import Template
from typing import Any

from loguru import logger

PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"


class PromptCatalog:
    """Agent prompt templates loaded from a JSON file.

    Entries are addressed by dotted keys (``"query_optimizer.system_prompt"``).
    A template is either one string or a list of lines. The file is re-read
    whenever its modification time changes, so prompts can be edited while the
    server runs.
    """

    def __init__(self, path: Path):
        self.path = path
        self._entries: dict[str, Any] = {}
        self._loaded_mtime_ns: int | None = None

    def _current(self) -> dict[str, Any]:
        mtime_ns = self.path.stat().st_mtime_ns
        if mtime_ns != self._loaded_mtime_ns:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(payload, dict):
                raise ValueError(f"Prompt catalog {self.path} must be a JSON object")
            if self._loaded_mtime_ns is not None:
                logger.info(f"Reloaded prompt catalog from {self.path}")
            self._entries = payload
            self._loaded_mtime_ns = mtime_ns
        return self._entries

    def template(self, key: str) -> Template:
        node: Any = self._current()
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                raise KeyError(f"Prompt key not found: {key}")
            node = node[part]
        if isinstance(node, list):
            node = "\n".join(str(line) for line in node)
        if not isinstance(node, str):
            raise TypeError(f"Prompt key must map to a string: {key}")
        return Template(node)

    def render(self, key: str, **values: Any) -> str:
        template = self.template(key)
        try:
            return template.substitute(**values)
        except KeyError as exc:
            raise KeyError(f"Missing template value '{exc.args[0]}' for prompt '{key}'") from exc


catalog = PromptCatalog(PROMPTS_PATH)


def render_prompt(key: str, **values: Any) -> str:
    return catalog.render(key, **values)
