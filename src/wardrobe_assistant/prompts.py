from __future__ import annotations

from typing import Any

from wardrobe_assistant.openai_utils import default_analysis_prompt
from wardrobe_assistant.outfits import DEFAULT_PROMPT_TEMPLATE

ITEM_ANALYSIS = "item_analysis"
ITEM_IMPROVEMENT = "item_improvement"
OUTFIT_RECOMMENDATION = "outfit_recommendation"

PROMPT_TYPES: tuple[str, ...] = (ITEM_ANALYSIS, ITEM_IMPROVEMENT, OUTFIT_RECOMMENDATION)
MAX_PROMPT_LENGTH = 10_000

DEFAULT_IMPROVEMENT_PROMPT = (
    "Create a professional e-commerce product photo of this fashion item. "
    "Place it on a clean, plain white background with soft, even studio lighting. "
    "Keep the item's exact colors, shape, texture and details."
)


def validate_prompt_type(prompt_type: str | None) -> str:
    value = (prompt_type or "").strip()
    if not value:
        raise ValueError("Prompt type is required.")
    if value not in PROMPT_TYPES:
        raise ValueError(f"Invalid prompt type. Must be one of: {', '.join(PROMPT_TYPES)}.")
    return value


def clean_prompt_fields(name: str | None, content: str | None) -> tuple[str, str]:
    """Trim and check the user-editable text of a prompt."""
    clean_name = (name or "").strip()
    if not clean_name:
        raise ValueError("Prompt name is required.")
    clean_content = (content or "").strip()
    if not clean_content:
        raise ValueError("Prompt content is required.")
    if len(clean_content) > MAX_PROMPT_LENGTH:
        raise ValueError(f"Prompt content too long (max {MAX_PROMPT_LENGTH} characters).")
    return clean_name, clean_content


def default_prompts() -> list[dict[str, Any]]:
    """Built-in prompts seeded for a user, one active prompt per type."""
    return [
        {
            "name": "Item Analysis (Default)",
            "description": "Extracts category, subcategory, colors, fit, occasions and a description from a photo.",
            "type": ITEM_ANALYSIS,
            "content": default_analysis_prompt(),
        },
        {
            "name": "Item Improvement (Default)",
            "description": "Product-photo style guidance for item images.",
            "type": ITEM_IMPROVEMENT,
            "content": DEFAULT_IMPROVEMENT_PROMPT,
        },
        {
            "name": "Outfit Recommendation (Default)",
            "description": "Builds outfit combinations for {{occasion}} with an optional {{note}}.",
            "type": OUTFIT_RECOMMENDATION,
            "content": DEFAULT_PROMPT_TEMPLATE.strip(),
        },
    ]
