"""
Vision Pipeline — three crop analysts run side by side.

A frame from the client carries three base64 JPEG crops (eyes, mouth,
face/upper body). Each goes to its own analyst prompt; the three calls
run concurrently and each must return a JSON object. The combined result
is rendered as a text block and injected into the live conversation.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from google import genai
from google.genai import types

from livestylist.agents.prompts import BODY_INSTRUCTION, EYE_INSTRUCTION, MOUTH_INSTRUCTION
from livestylist.core.config import GeminiConfig

logger = logging.getLogger(__name__)

VISION_AGENTS = ("eye", "mouth", "body")


class VisionError(RuntimeError):
    """An analyst call failed or returned something that isn't a JSON object."""


@dataclass
class VisionResults:
    eye_analysis: dict[str, Any] = field(default_factory=dict)
    mouth_analysis: dict[str, Any] = field(default_factory=dict)
    body_analysis: dict[str, Any] = field(default_factory=dict)


class VisionPipeline(ABC):
    @abstractmethod
    async def analyze(self, eye_crop: str, mouth_crop: str, body_crop: str) -> VisionResults:
        """Analyze three base64 JPEG crops. Raises VisionError on failure."""
        ...


def format_vision_results(results: VisionResults) -> str:
    """Render results as a context note the stylist must not read aloud."""
    return "\n".join(
        [
            "[Vision update - do not read this aloud, use it to inform your next response]",
            "",
            "Eye analysis:",
            json.dumps(results.eye_analysis, indent=2),
            "",
            "Mouth analysis:",
            json.dumps(results.mouth_analysis, indent=2),
            "",
            "Face/body analysis:",
            json.dumps(results.body_analysis, indent=2),
        ]
    )


def parse_analysis(text: str | None) -> dict[str, Any]:
    try:
        parsed = json.loads(text or "{}")
    except json.JSONDecodeError as e:
        raise VisionError(f"Analyst returned invalid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise VisionError("Analyst returned JSON that is not an object")
    return parsed


class GeminiVisionPipeline(VisionPipeline):
    def __init__(self, gemini_config: GeminiConfig, client: genai.Client | None = None) -> None:
        self.gemini_config = gemini_config
        self._client = client

    @property
    def client(self) -> genai.Client:
        # Created on first use so the app can start without an API key
        if self._client is None:
            self._client = genai.Client(api_key=self.gemini_config.api_key)
        return self._client

    async def analyze(self, eye_crop: str, mouth_crop: str, body_crop: str) -> VisionResults:
        started = time.monotonic()
        try:
            eye, mouth, body = await asyncio.gather(
                self._run(EYE_INSTRUCTION, "Analyze this eye region image.", eye_crop),
                self._run(MOUTH_INSTRUCTION, "Analyze this mouth region image.", mouth_crop),
                self._run(BODY_INSTRUCTION, "Analyze this face and upper body image.", body_crop),
            )
        except VisionError:
            raise
        except Exception as e:
            raise VisionError(f"Vision analysis failed: {e}") from e

        logger.info(
            "Vision pipeline completed all 3 analyses",
            extra={"duration_ms": round((time.monotonic() - started) * 1000)},
        )
        return VisionResults(eye_analysis=eye, mouth_analysis=mouth, body_analysis=body)

    async def _run(self, instruction: str, task: str, crop_b64: str) -> dict[str, Any]:
        response = await self.client.aio.models.generate_content(
            model=self.gemini_config.vision_model,
            contents=[
                types.Content(
                    role="user",
                    parts=[
                        types.Part.from_text(text=f"{instruction}\n\n{task} Return JSON only."),
                        types.Part.from_bytes(
                            data=base64.b64decode(crop_b64), mime_type="image/jpeg"
                        ),
                    ],
                )
            ],
            config=types.GenerateContentConfig(response_mime_type="application/json"),
        )
        return parse_analysis(response.text)
