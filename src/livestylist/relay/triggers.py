"""
Preview Triggers — spot "let me show you ..." in the stylist's speech.

Output transcription arrives in arbitrary fragments. The scanner keeps a
rolling buffer, cuts it into complete sentences (ending in . ! or ?),
and tests each sentence against a fixed set of English and German
trigger phrases. The unterminated tail stays buffered for the next
fragment. At most one trigger fires per scan.

A matching sentence becomes a style description by removing the trigger
phrase and the surrounding punctuation. Descriptions shorter than the
minimum length ("Let me show you this.") are discarded.

Known limitation: a trigger phrase split across a sentence boundary
(e.g. by an abbreviation ending in a period) is not matched.
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

PREVIEW_TRIGGERS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        # English
        r"let me show you",
        r"here'?s a preview",
        r"let me generate",
        r"take a look at this",
        r"how about something like this",
        r"picture this",
        r"imagine this look",
        # German
        r"lass mich dir zeigen",
        r"ich zeig dir",
        r"hier ist eine vorschau",
        r"schau dir das an",
        r"stell dir vor",
        r"wie w[äa]re es mit",
        r"so k[öo]nnte das aussehen",
    )
)

SENTENCE_PATTERN = re.compile(r"[^.!?]*[.!?]+")
_LEADING_PUNCT = re.compile(r"^[\s,.:—-]+")
_TRAILING_PUNCT = re.compile(r"[.!?]+$")

DEFAULT_MIN_DESCRIPTION_LENGTH = 10


def matches_trigger(sentence: str) -> bool:
    return any(pattern.search(sentence) for pattern in PREVIEW_TRIGGERS)


def extract_style_description(
    sentence: str, min_length: int = DEFAULT_MIN_DESCRIPTION_LENGTH
) -> str | None:
    """Strip trigger phrases and edge punctuation; None if too short to use."""
    description = sentence
    for pattern in PREVIEW_TRIGGERS:
        description = pattern.sub("", description, count=1)
    description = _LEADING_PUNCT.sub("", description)
    description = _TRAILING_PUNCT.sub("", description).strip()
    if len(description) < min_length:
        return None
    return description


def split_sentences(buffer: str) -> tuple[list[str], str]:
    """Complete sentences in buffer, plus the unterminated remainder."""
    sentences: list[str] = []
    last_index = 0
    for match in SENTENCE_PATTERN.finditer(buffer):
        sentences.append(match.group(0))
        last_index = match.end()
    return sentences, buffer[last_index:]


class PreviewTriggerScanner:
    """Rolling-buffer trigger detection for one relay connection."""

    def __init__(self, min_description_length: int = DEFAULT_MIN_DESCRIPTION_LENGTH) -> None:
        self.min_description_length = min_description_length
        self.buffer = ""

    def feed(self, fragment: str) -> str | None:
        """Add a fragment. Returns a style description if a complete sentence triggered."""
        self.buffer += fragment
        sentences, remainder = split_sentences(self.buffer)
        if not sentences:
            return None
        self.buffer = remainder

        for sentence in sentences:
            trimmed = sentence.strip()
            if not trimmed or not matches_trigger(trimmed):
                continue
            description = extract_style_description(trimmed, self.min_description_length)
            if description is None:
                logger.info("Preview trigger matched but description too short: %r", trimmed)
                continue
            return description
        return None

    def flush(self) -> str | None:
        """Turn finished: scan whatever is left, terminated or not, then clear."""
        remaining = self.buffer.strip()
        self.buffer = ""
        if not remaining or not matches_trigger(remaining):
            return None
        return extract_style_description(remaining, self.min_description_length)

    def reset(self) -> None:
        self.buffer = ""
