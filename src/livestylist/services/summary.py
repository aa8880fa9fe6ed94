"""
Session Summarizer — turns a finished session's log into a saved memory.

Runs as a background task after the relay connection closes. The model
is asked for {"summary": ..., "tips": [...]}; code fences around the JSON
are tolerated and text that still doesn't parse is kept as the summary
itself. Empty output saves nothing. Failures are logged, never raised.
"""

from __future__ import annotations

import json
import logging
import re
import time
from typing import Any, Protocol

from google import genai
from google.genai import types

from livestylist.core.config import GeminiConfig
from livestylist.core.metrics import metrics
from livestylist.session.models import SessionMemory

logger = logging.getLogger(__name__)

SUMMARY_PROMPT = """Analyze this beauty/style consultation session and return a JSON object with exactly this format:
{{
  "summary": "...",
  "tips": ["tip 1", "tip 2", "tip 3"]
}}

For the summary: Include ONLY new information from THIS session. Do NOT repeat anything the stylist recalled from previous sessions. Focus on what the user was wearing, new observations about their appearance, new recommendations given, and any new preferences or requests the user expressed. Keep it concise (100-150 words). Write in past tense, third person.

For tips: Extract 2-3 specific, actionable style tips that were discussed or recommended during the session. Each tip should be a short, practical sentence the user can reference later.

Return ONLY the JSON object, no markdown formatting or code blocks.{language_note}

Session transcript:
{transcript}"""

LANGUAGE_NOTE = (
    "\n\nIMPORTANT: Write the summary and tips in the SAME LANGUAGE as the session "
    "transcript. The session was conducted in a non-English language, so your output "
    "MUST be in that same language."
)

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*\n?", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\n?```\s*$")


class MemoryWriter(Protocol):
    async def save_session_memory(self, device_id: str, memory: SessionMemory) -> None: ...


def parse_summary(raw_text: str) -> tuple[str, list[str]]:
    """Model output → (summary, tips). Unparseable output becomes the summary."""
    cleaned = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", raw_text.strip())).strip()
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        return raw_text.strip(), []
    if not isinstance(parsed, dict):
        return raw_text.strip(), []

    summary = parsed.get("summary") or raw_text.strip()
    tips = parsed.get("tips")
    if not isinstance(tips, list):
        tips = []
    return str(summary), [str(tip) for tip in tips]


class SessionSummarizer:
    def __init__(
        self,
        store: MemoryWriter,
        gemini_config: GeminiConfig,
        client: Any = None,
    ) -> None:
        self.store = store
        self.gemini_config = gemini_config
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = genai.Client(api_key=self.gemini_config.api_key)
        return self._client

    async def summarize_and_save(
        self,
        session_log: list[str],
        session_id: str,
        device_id: str,
        duration_seconds: int | None = None,
        occasion: str | None = None,
        language: str | None = None,
    ) -> SessionMemory | None:
        if not session_log:
            return None

        started = time.monotonic()
        try:
            raw_text = await self._generate(session_log, language)
            if not raw_text:
                logger.warning(
                    "Empty summary generated, skipping save",
                    extra={"session_id": session_id},
                )
                return None

            summary, tips = parse_summary(raw_text)
            memory = SessionMemory(
                session_id=session_id,
                summary=summary,
                tips=tips,
                duration_seconds=duration_seconds,
                occasion=occasion,
                created_at=time.time(),
            )
            await self.store.save_session_memory(device_id, memory)
        except Exception as e:
            metrics.inc("summary.failed")
            logger.warning(
                "Session summary generation failed: %s",
                e,
                extra={"session_id": session_id, "device_id": device_id},
            )
            return None

        metrics.inc("summary.saved")
        logger.info(
            "Session summarized (%d tips)",
            len(tips),
            extra={
                "session_id": session_id,
                "duration_ms": round((time.monotonic() - started) * 1000),
            },
        )
        return memory

    async def _generate(self, session_log: list[str], language: str | None) -> str:
        prompt = SUMMARY_PROMPT.format(
            language_note=LANGUAGE_NOTE if language and language != "en" else "",
            transcript="\n".join(session_log),
        )
        response = await self.client.aio.models.generate_content(
            model=self.gemini_config.summary_model,
            contents=[types.Content(role="user", parts=[types.Part.from_text(text=prompt)])],
        )
        return (response.text or "").strip()
