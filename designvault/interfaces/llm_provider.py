"""Abstract base class for LLM service providers.

The classifier and the semantic ranker never talk to an SDK directly; they
receive an ``ILLMProvider`` and call :meth:`complete` (text scoring) or
:meth:`vision_extract` (image description).  Swapping Anthropic for OpenAI
or a local Ollama server is a one-line change in ``main.py``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: AnthropicLLMProvider, OpenAILLMProvider, OllamaLLMProvider
# Located in: designvault/providers/llm/
class ILLMProvider(ABC):
    """Contract for LLM services.

    Providers must support plain text completion; vision is optional and
    declared via :meth:`supports_vision`.
    """

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.1,
        max_tokens: int = 4000,
    ) -> str:
        """Generate a text completion from the model.

        Parameters
        ----------
        system_prompt:
            The system/instruction message that sets the model's behaviour.
        user_prompt:
            The prompt containing the actual request or data.
        temperature:
            Sampling temperature (0.0 = deterministic).
        max_tokens:
            Upper bound on the number of tokens in the response.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        designvault.utils.errors.RateLimitError
            If the provider reports a rate limit or exhausted quota.
        designvault.utils.errors.LLMError
            If the API call fails or returns an empty response.
        """

    @abstractmethod
    async def vision_extract(self, image_bytes: bytes, prompt: str, media_type: str) -> str:
        """Analyse an image using the model's vision capability.

        Parameters
        ----------
        image_bytes:
            Raw bytes of the image.
        prompt:
            Instruction describing what to extract from the image.
        media_type:
            The image MIME type, e.g. ``"image/png"``.

        Raises
        ------
        NotImplementedError
            If the provider does not support vision.
        designvault.utils.errors.RateLimitError
            If the provider reports a rate limit or exhausted quota.
        designvault.utils.errors.LLMError
            If the API call fails.
        """

    @abstractmethod
    def supports_vision(self) -> bool:
        """Return ``True`` if this provider can process image inputs."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"anthropic"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (no network call)."""
