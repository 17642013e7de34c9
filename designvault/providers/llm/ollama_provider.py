"""Ollama LLM provider adapter.

Ollama exposes an OpenAI-compatible ``/v1`` API, so this adapter reuses
:class:`OpenAILLMProvider` pointed at the local server.  Defaults to
``llama3.1`` for description scoring and ``llava`` for image classification.

Setup: install Ollama, then ``ollama pull llama3.1`` and ``ollama pull llava``.
Set OLLAMA_BASE_URL=http://localhost:11434
"""

from __future__ import annotations

import openai

from designvault.config.settings import Settings
from designvault.providers.llm.openai_provider import OpenAILLMProvider


class OllamaLLMProvider(OpenAILLMProvider):
    """LLM provider backed by a local Ollama server."""

    def __init__(self, settings: Settings) -> None:
        self._base_url = settings.ollama_base_url
        # The SDK requires a non-empty key; Ollama ignores it.
        self._api_key = "ollama"
        self._client = openai.AsyncOpenAI(
            base_url=f"{self._base_url.rstrip('/')}/v1",
            api_key=self._api_key,
            timeout=openai.Timeout(120.0, connect=5.0),
        )
        self._text_model = "llama3.1"
        self._vision_model = "llava"
        self._has_vision = True
        self._provider_label = "ollama"

    def is_available(self) -> bool:
        return bool(self._base_url)
