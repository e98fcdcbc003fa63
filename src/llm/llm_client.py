from __future__ import annotations

import json
import logging
import os
import re
from typing import Any, Optional

from llm.providers.base import LLMProvider

logger = logging.getLogger(__name__)

LLM_PROVIDER = os.getenv("LLM_PROVIDER", "mock").strip().lower()

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


class ModelOutputError(ValueError):
    """The model answered with something that is not a JSON object."""

    def __init__(self, message: str, raw: str):
        super().__init__(message)
        self.raw = raw


def get_provider(name: Optional[str] = None) -> LLMProvider:
    name = (name or LLM_PROVIDER).strip().lower()
    if name == "openai":
        from llm.providers.openai_provider import OpenAIProvider
        return OpenAIProvider()
    if name == "ollama":
        from llm.providers.ollama_provider import OllamaProvider
        return OllamaProvider()
    if name == "mock":
        from llm.providers.mock_provider import MockProvider
        return MockProvider()
    raise ValueError(f"Unknown LLM_PROVIDER {name!r}")


def parse_json_object(text: str) -> dict[str, Any]:
    """Pull the JSON object out of a model reply, tolerating chatter around it."""
    text = (text or "").strip()
    match = _JSON_BLOCK.search(text)
    candidate = match.group(0) if match else text
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ModelOutputError("Model returned non-JSON output", raw=text) from e
    if not isinstance(parsed, dict):
        raise ModelOutputError("Model returned JSON that is not an object", raw=text)
    return parsed


class LLMClient:
    def __init__(self, provider: Optional[LLMProvider] = None):
        self.provider = provider or get_provider()

    def complete(self, *, system: str, user: str) -> str:
        return self.provider.generate(system=system, user=user)

    def complete_json(self, *, system: str, user: str) -> dict[str, Any]:
        raw = self.complete(system=system, user=user)
        logger.debug(f"LLM raw output: {raw[:200]!r}")
        return parse_json_object(raw)
