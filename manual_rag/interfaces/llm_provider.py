"""Abstract base class for LLM completion providers.

The library only needs an opaque "generate text given a prompt" call; it
is used to guess a manufacturer's manual URL when no other source knows
it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OpenAILLMProvider    - OpenAI or OpenAI-compatible chat completions
#   AnthropicLLMProvider - Anthropic messages API
# Located in: manual_rag/providers/llm/
class ILLMProvider(ABC):
    """Contract for text completion services."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
    ) -> str:
        """Return the model's text reply.

        Parameters
        ----------
        system_prompt:
            Role and output-format instructions.
        user_prompt:
            The request itself.
        temperature:
            Sampling temperature.
        max_tokens:
            Upper bound on reply length.

        Raises
        ------
        manual_rag.utils.errors.LLMError
            If the API call fails or returns nothing.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return an identifier such as ``"openai"`` or ``"anthropic"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are configured."""
