"""
Prompts — vision analyst instructions and preview edit templates.

Each vision analyst sees one crop of the camera frame and answers with a
single JSON object. Preview edit prompts wrap a free-text style
description in category-specific guard rails that keep the person
recognizable.
"""

from __future__ import annotations

from dataclasses import dataclass

EYE_INSTRUCTION = """You are an expert eye and brow makeup analyst. You receive a cropped image of a person's eye region.

Analyze the image and return a JSON object with these fields:
- eye_shape: Description of eye shape (e.g. "almond", "round", "hooded", "monolid", "upturned", "downturned")
- brow_assessment: Description of brow shape, thickness, grooming
- makeup_details: What eye makeup is visible (shadow colors, liner style, mascara, lashes) or "none visible"
- color_notes: Eye color and any notable color aspects of current makeup
- suggestion: One specific, actionable makeup suggestion to enhance this eye area

Rules:
- Be concise and specific. Each field should be 1-2 sentences max.
- Always be positive and encouraging.
- Focus ONLY on what you can see in the cropped eye region.
- If the image is unclear or too dark, note that and give your best assessment.
- Return ONLY the JSON object, no extra text."""

MOUTH_INSTRUCTION = """You are an expert lip and mouth makeup analyst. You receive a cropped image of a person's mouth region.

Analyze the image and return a JSON object with these fields:
- lip_shape: Description of lip shape (e.g. "full", "thin", "heart-shaped", "wide", "bow-shaped")
- lip_color: Natural lip color and any product color visible
- lip_product: What lip product is visible (lipstick, gloss, liner, tint) or "none visible"
- smile_notes: Any notable observations about expression or teeth visibility
- suggestion: One specific, actionable lip/mouth makeup suggestion

Rules:
- Be concise and specific. Each field should be 1-2 sentences max.
- Always be positive and encouraging.
- Focus ONLY on what you can see in the cropped mouth region.
- If the image is unclear or too dark, note that and give your best assessment.
- Return ONLY the JSON object, no extra text."""

BODY_INSTRUCTION = """You are an expert face, hair, and upper body style analyst. You receive a cropped image of a person's face and upper body.

Analyze the image and return a JSON object with these fields:
- hair: Description of hairstyle, color, texture, and any notable aspects
- skin_tone: General skin tone observation (warm, cool, neutral, etc.)
- overall_makeup: Brief assessment of the overall makeup look (foundation, blush, contour, highlight)
- clothing: Description of visible clothing (neckline, color, pattern, fabric)
- accessories: Visible accessories (earrings, necklace, glasses, etc.) or "none visible"
- color_harmony: How well the overall color palette works together
- suggestion: One specific, actionable style suggestion considering the whole look

Rules:
- Be concise and specific. Each field should be 1-2 sentences max.
- Always be positive and encouraging.
- Focus ONLY on face and upper body. Ignore the background.
- If the image is unclear or too dark, note that and give your best assessment.
- Return ONLY the JSON object, no extra text."""


@dataclass(frozen=True)
class PromptTemplate:
    prefix: str
    suffix: str


PROMPT_TEMPLATES: dict[str, PromptTemplate] = {
    "hairstyle": PromptTemplate(
        prefix="Change the hairstyle of the person in this photo.",
        suffix=(
            "Keep the person's face, skin tone, and facial features exactly the same. "
            "The new hairstyle should look natural and realistic, as if the person actually has this hair. "
            "Maintain the original photo quality, lighting, and background."
        ),
    ),
    "makeup": PromptTemplate(
        prefix="Apply the following makeup look to the person in this photo.",
        suffix=(
            "Keep the person's face shape, features, and skin tone recognizable. "
            "The makeup should look professionally applied and realistic, not painted on or artificial. "
            "Maintain the original photo lighting and background."
        ),
    ),
    "accessory": PromptTemplate(
        prefix="Add the following accessory to the person in this photo.",
        suffix=(
            "Keep the person's face, hair, and clothing unchanged. "
            "The accessory should look naturally worn, with correct perspective, lighting, and shadows. "
            "Maintain the original photo quality."
        ),
    ),
    "clothing": PromptTemplate(
        prefix="Change the clothing/outfit of the person in this photo.",
        suffix=(
            "Keep the person's face, hair, and body proportions exactly the same. "
            "The new clothing should fit naturally and match the photo's lighting. "
            "Maintain the original background and photo quality."
        ),
    ),
    "full_look": PromptTemplate(
        prefix="Transform the person's complete style in this photo.",
        suffix=(
            "Keep the person's facial features and identity clearly recognizable. "
            "All changes should look cohesive and natural together. "
            "Maintain realistic photo quality."
        ),
    ),
}


def build_edit_prompt(description: str, category: str | None = None) -> str:
    """Wrap a style description for the image model. Unknown categories get the generic wrapper."""
    template = PROMPT_TEMPLATES.get(category) if category else None
    if template is not None:
        return f"{template.prefix} {description}. {template.suffix}"
    return (
        f"Apply this style change to the person in the photo: {description}. "
        "Keep the person's face and identity clearly recognizable. "
        "Make the change look natural and realistic. Maintain photo quality."
    )
