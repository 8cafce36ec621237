"""LLM provider implementations."""

from metaborisk.core.llm.providers.anthropic import AnthropicProvider
from metaborisk.core.llm.providers.gemini import GeminiProvider
from metaborisk.core.llm.providers.mock import MockProvider
from metaborisk.core.llm.providers.openai import OpenAIProvider

__all__ = ["AnthropicProvider", "GeminiProvider", "MockProvider", "OpenAIProvider"]
