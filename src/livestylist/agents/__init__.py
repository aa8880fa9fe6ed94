"""Model-backed helpers: vision analysts, preview generation, stylist prompt."""

from livestylist.agents.coordinator import build_coordinator_instruction
from livestylist.agents.preview import (
    GeminiPreviewGenerator,
    GenerationResult,
    PreviewError,
    PreviewGenerator,
)
from livestylist.agents.prompts import PROMPT_TEMPLATES, build_edit_prompt
from livestylist.agents.vision import (
    GeminiVisionPipeline,
    VisionError,
    VisionPipeline,
    VisionResults,
    format_vision_results,
)

__all__ = [
    "build_coordinator_instruction",
    "GeminiPreviewGenerator",
    "GenerationResult",
    "PreviewError",
    "PreviewGenerator",
    "PROMPT_TEMPLATES",
    "build_edit_prompt",
    "GeminiVisionPipeline",
    "VisionError",
    "VisionPipeline",
    "VisionResults",
    "format_vision_results",
]
