"""OpenAI provider for clinical summaries."""

from __future__ import annotations

import time
from typing import Any

from metaborisk.core.llm.provider import DEFAULT_MODELS, ProviderResponse, clean_api_key


class OpenAIProvider:
    """Chat Completions through ``openai.AsyncOpenAI``.

    The output budget is sent as ``max_completion_tokens``. A
    ``finish_reason`` of ``"length"`` marks the summary as truncated; a
    refusal comes back as an empty reply, which the narrative client treats
    as unavailable.
    """

    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODELS["openai"],
        client: Any = None,
    ) -> None:
        if client is None:
            import openai

            client = openai.AsyncOpenAI(api_key=clean_api_key(api_key))
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
        completion = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_message},
                {"role": "user", "content": user_message},
            ],
            max_completion_tokens=max_tokens,
            temperature=temperature,
        )
        latency_ms = (time.monotonic() - start) * 1000

        if not completion.choices:
            return ProviderResponse("", 0, 0, self.model, latency_ms)

        choice = completion.choices[0]
        usage = completion.usage
        return ProviderResponse(
            content=(choice.message.content or "").strip(),
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=getattr(completion, "model", None) or self.model,
            latency_ms=latency_ms,
            truncated=choice.finish_reason == "length",
        )
