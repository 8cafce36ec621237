"""Narrative client — sends a prompt to the configured provider and never raises.

Any provider failure (network error, timeout, empty reply) degrades to a
``NarrativeResult`` with ``available=False`` so the caller can carry on and
save the patient record without a narrative. There is no retry.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from metaborisk.core.llm.provider import LLMProvider, ProviderResponse
from metaborisk.core.llm.response import check_narrative, strip_markup
from metaborisk.core.llm.system_prompt import CLINICAL_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

NARRATIVE_UNAVAILABLE = "Analisi AI non disponibile."


@dataclass
class NarrativeResult:
    """Outcome of a narrative generation attempt."""

    text: str | None
    available: bool
    provider: str
    error_type: str | None = None
    flags: list[str] = field(default_factory=list)
    usage: dict[str, int] = field(default_factory=dict)

    @property
    def display_text(self) -> str:
        return self.text if self.available and self.text else NARRATIVE_UNAVAILABLE


class NarrativeClient:
    """Invokes the text-generation provider for clinical summaries."""

    def __init__(
        self,
        provider: LLMProvider,
        *,
        timeout_seconds: float = 30.0,
        max_tokens: int = 1024,
        temperature: float = 0.3,
        max_words: int = 200,
    ) -> None:
        self.provider = provider
        self.timeout_seconds = timeout_seconds
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_words = max_words

    @property
    def provider_name(self) -> str:
        return getattr(self.provider, "name", type(self.provider).__name__)

    async def generate(self, prompt: str) -> NarrativeResult:
        """Generate a narrative for ``prompt``."""
        try:
            provider_response: ProviderResponse = await asyncio.wait_for(
                self.provider.generate(
                    system_message=CLINICAL_SYSTEM_PROMPT,
                    user_message=prompt,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(
                "Narrative provider %s timed out after %.1fs",
                self.provider_name,
                self.timeout_seconds,
            )
            return self._failure("TimeoutError")
        except Exception as exc:
            logger.exception("Narrative provider %s failed", self.provider_name)
            return self._failure(type(exc).__name__)

        logger.info(
            "Narrative call: provider=%s, model=%s, tokens=%d+%d, latency=%.0fms",
            self.provider_name,
            provider_response.model,
            provider_response.input_tokens,
            provider_response.output_tokens,
            provider_response.latency_ms,
        )

        content = strip_markup(provider_response.content or "")
        check = check_narrative(content, self.max_words)
        if not content:
            return self._failure("EmptyResponse", flags=check.flags)
        if provider_response.truncated:
            logger.warning(
                "Narrative from %s hit the %d-token limit", self.provider_name, self.max_tokens
            )
            check.flags.append(f"truncated: {self.max_tokens} token limit reached")

        return NarrativeResult(
            text=content,
            available=True,
            provider=self.provider_name,
            flags=check.flags,
            usage={
                "input_tokens": provider_response.input_tokens,
                "output_tokens": provider_response.output_tokens,
            },
        )

    def _failure(self, error_type: str, flags: list[str] | None = None) -> NarrativeResult:
        return NarrativeResult(
            text=None,
            available=False,
            provider=self.provider_name,
            error_type=error_type,
            flags=flags or [],
        )
