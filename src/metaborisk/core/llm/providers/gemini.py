"""Google Gemini provider."""

from __future__ import annotations

import time
from typing import Any

from metaborisk.core.llm.provider import DEFAULT_MODELS, ProviderResponse, clean_api_key


class GeminiProvider:
    """Gemini provider using the google-genai SDK (async client)."""

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODELS["gemini"],
        client: Any = None,
    ) -> None:
        if client is None:
            from google import genai

            client = genai.Client(api_key=clean_api_key(api_key))
        self.client = client
        self.model = model

    async def generate(
        self,
        system_message: str,
        user_message: str,
        max_tokens: int = 1024,
        temperature: float = 0.3,
    ) -> ProviderResponse:
        from google.genai import types

        start = time.monotonic()
        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=user_message,
            config=types.GenerateContentConfig(
                system_instruction=system_message,
                max_output_tokens=max_tokens,
                temperature=temperature,
            ),
        )
        elapsed_ms = (time.monotonic() - start) * 1000

        usage = response.usage_metadata
        candidates = response.candidates or []
        finish_reason = getattr(candidates[0], "finish_reason", None) if candidates else None
        return ProviderResponse(
            content=response.text or "",
            input_tokens=(usage.prompt_token_count or 0) if usage else 0,
            output_tokens=(usage.candidates_token_count or 0) if usage else 0,
            model=self.model,
            latency_ms=elapsed_ms,
            truncated=str(getattr(finish_reason, "name", finish_reason)) == "MAX_TOKENS",
        )
