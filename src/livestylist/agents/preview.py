"""
Preview Generator — edit the user's photo to show a suggested look.

The source image is the latest face/upper-body crop. The image model
answers with inline image parts and, sometimes, a short text caption.
"""

from __future__ import annotations

import base64
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

from google import genai
from google.genai import types

from livestylist.core.config import GeminiConfig

logger = logging.getLogger(__name__)


class PreviewError(RuntimeError):
    """The image model failed or returned no image."""


@dataclass(frozen=True)
class GenerationResult:
    image: str  # base64
    mime_type: str
    description: str | None = None
    processing_time_ms: int = 0


class PreviewGenerator(ABC):
    @abstractmethod
    async def generate(self, source_image: str, prompt: str) -> GenerationResult:
        """Generate a preview from a base64 JPEG and a full edit prompt."""
        ...


class GeminiPreviewGenerator(PreviewGenerator):
    def __init__(self, gemini_config: GeminiConfig, client: genai.Client | None = None) -> None:
        self.gemini_config = gemini_config
        self._client = client

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self.gemini_config.api_key)
        return self._client

    async def generate(self, source_image: str, prompt: str) -> GenerationResult:
        started = time.monotonic()
        logger.info("Starting image generation (prompt_length=%d)", len(prompt))

        try:
            response = await self.client.aio.models.generate_content(
                model=self.gemini_config.image_model,
                contents=[
                    types.Content(
                        role="user",
                        parts=[
                            types.Part.from_text(text=prompt),
                            types.Part.from_bytes(
                                data=base64.b64decode(source_image), mime_type="image/jpeg"
                            ),
                        ],
                    )
                ],
                config=types.GenerateContentConfig(
                    response_modalities=["IMAGE", "TEXT"]
                ),
            )
        except Exception as e:
            raise PreviewError(f"Image generation failed: {e}") from e

        image: bytes | None = None
        mime_type = "image/jpeg"
        description: str | None = None

        candidates = response.candidates or []
        parts = candidates[0].content.parts if candidates and candidates[0].content else None
        for part in parts or []:
            if part.inline_data and part.inline_data.data and image is None:
                image = part.inline_data.data
                mime_type = part.inline_data.mime_type or "image/jpeg"
            elif part.text:
                description = part.text

        if image is None:
            raise PreviewError("No image returned from image generation")

        elapsed_ms = round((time.monotonic() - started) * 1000)
        logger.info(
            "Image generation completed (has_description=%s)",
            description is not None,
            extra={"duration_ms": elapsed_ms},
        )
        return GenerationResult(
            image=base64.b64encode(image).decode("ascii"),
            mime_type=mime_type,
            description=description,
            processing_time_ms=elapsed_ms,
        )
