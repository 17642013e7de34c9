"""LLM provider adapters (Anthropic, OpenAI-compatible, Ollama)."""

from designvault.providers.llm.anthropic_provider import AnthropicLLMProvider
from designvault.providers.llm.ollama_provider import OllamaLLMProvider
from designvault.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["AnthropicLLMProvider", "OllamaLLMProvider", "OpenAILLMProvider"]
