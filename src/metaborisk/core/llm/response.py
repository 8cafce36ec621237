"""Post-processing of generated narratives.

The prompt asks for plain paragraphs, but models still slip in markdown
now and then; it is stripped here so reports render cleanly.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

_BOLD_ITALIC = re.compile(r"(\*{1,3}|_{2,3})(\S(?:.*?\S)?)\1", re.DOTALL)
_HEADING = re.compile(r"^\s{0,3}#{1,6}\s*", re.MULTILINE)
_BULLET = re.compile(r"^\s*[-*+]\s+", re.MULTILINE)
_BLANK_RUN = re.compile(r"\n{3,}")


@dataclass
class NarrativeCheck:
    """Flags raised while cleaning a narrative."""

    word_count: int
    flags: list[str] = field(default_factory=list)


def strip_markup(content: str) -> str:
    """Remove markdown emphasis, headings and bullet markers."""
    text = _BOLD_ITALIC.sub(r"\2", content)
    text = _HEADING.sub("", text)
    text = _BULLET.sub("", text)
    text = _BLANK_RUN.sub("\n\n", text)
    return text.strip()


def check_narrative(content: str, max_words: int) -> NarrativeCheck:
    """Count words and flag a reply that overruns the requested length."""
    word_count = len(content.split())
    flags: list[str] = []
    if not content.strip():
        flags.append("empty_response")
    if word_count > max_words:
        flags.append(f"length_exceeded: {word_count} > {max_words} words")
    if flags:
        logger.warning("Narrative flags: %s", flags)
    return NarrativeCheck(word_count=word_count, flags=flags)
