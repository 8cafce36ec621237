"""LLM provider protocol — abstract interface for narrative generation calls."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

DEFAULT_MODELS = {
    "gemini": "gemini-2.5-flash",
    "anthropic": "claude-sonnet-4-20250514",
    "openai": "gpt-4o",
}


@dataclass
class ProviderResponse:
    """Response from an LLM provider."""

    content: str
    input_tokens: int
    output_tokens: int
    model: str
    latency_ms: float
    truncated: bool = False


def clean_api_key(api_key: str) -> str:
    """Drop whitespace and stray quotes copied along with a key from a dashboard."""
    return api_key.strip().strip("\"'")


@runtime_checkable
class LLMProvider(Protocol):
    """Abstract interface for text generation."""

    async def generate(
        self,
        system_message: str,
        user_message: str,
        max_tokens: int = 1024,
        temperature: float = 0.3,
    ) -> ProviderResponse: ...


def create_provider(
    provider_name: str,
    api_key: str = "",
    model: str = "",
) -> LLMProvider:
    """Factory function to create an LLM provider by name.

    Args:
        provider_name: "gemini", "anthropic", "openai", or "mock"
        api_key: API key for the provider.
        model: Model identifier override.

    Returns:
        An LLMProvider instance.
    """
    if provider_name == "gemini":
        from metaborisk.core.llm.providers.gemini import GeminiProvider

        return GeminiProvider(api_key=api_key, model=model or DEFAULT_MODELS["gemini"])
    elif provider_name == "anthropic":
        from metaborisk.core.llm.providers.anthropic import AnthropicProvider

        return AnthropicProvider(api_key=api_key, model=model or DEFAULT_MODELS["anthropic"])
    elif provider_name == "openai":
        from metaborisk.core.llm.providers.openai import OpenAIProvider

        return OpenAIProvider(api_key=api_key, model=model or DEFAULT_MODELS["openai"])
    elif provider_name == "mock":
        from metaborisk.core.llm.providers.mock import MockProvider

        return MockProvider()
    else:
        raise ValueError(f"Unknown LLM provider: {provider_name}")
