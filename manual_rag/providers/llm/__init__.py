from manual_rag.providers.llm.anthropic_provider import AnthropicLLMProvider
from manual_rag.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["AnthropicLLMProvider", "OpenAILLMProvider"]
