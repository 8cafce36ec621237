"""Anthropic Claude provider for clinical summaries."""

from __future__ import annotations

import time
from typing import Any

from metaborisk.core.llm.provider import DEFAULT_MODELS, ProviderResponse, clean_api_key


class AnthropicProvider:
    """Claude through ``anthropic.AsyncAnthropic``.

    The Italian clinical system prompt goes in the dedicated ``system`` field;
    the patient prompt is the single user turn. A reply that stopped on
    ``max_tokens`` is marked truncated so the summary can be flagged.
    """

    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODELS["anthropic"],
        client: Any = None,
    ) -> None:
        if client is None:
            import anthropic

            client = anthropic.AsyncAnthropic(api_key=clean_api_key(api_key))
        self.client = client
        self.model = model

    async def generate(
        self,
        system_message: str,
        user_message: str,
        max_tokens: int = 1024,
        temperature: float = 0.3,
    ) -> ProviderResponse:
        start = time.monotonic()
        message = await self.client.messages.create(
            model=self.model,
            system=system_message,
            messages=[{"role": "user", "content": user_message}],
            max_tokens=max_tokens,
            temperature=temperature,
        )
        latency_ms = (time.monotonic() - start) * 1000

        summary = "\n".join(
            block.text.strip() for block in message.content
            if getattr(block, "type", "") == "text" and block.text.strip()
        )
        return ProviderResponse(
            content=summary,
            input_tokens=message.usage.input_tokens,
            output_tokens=message.usage.output_tokens,
            model=getattr(message, "model", None) or self.model,
            latency_ms=latency_ms,
            truncated=message.stop_reason == "max_tokens",
        )
