from __future__ import annotations

import json
from typing import Any, Iterable

from wardrobe_assistant.errors import OutfitGenerationFailed
from wardrobe_assistant.wardrobe import WardrobeItem, to_prompt_dict

DEFAULT_PROMPT_TEMPLATE = """You are a professional fashion stylist AI.

Your task: Create outfit combinations (1-5) from the provided wardrobe items for the occasion: "{{occasion}}".

IMPORTANT: Prioritize quality over quantity. If only 1 great combination exists, return just that one. If no items match the occasion or user preferences well, return an empty combinations array. Don't force mismatched outfits.

COMBINATION RULES:
1. Full Body items (Dress/Jumpsuit): Can be standalone OR can be layered with outerwear/accessories
2. Regular outfit: Must include at minimum:
   - Top (or Outerwear as top layer)
   - Bottom
   - Footwear
3. Optional additions: Outerwear, Accessories (recommended for completeness)

STYLE GUIDELINES:
- Color harmony: Consider complementary, analogous, or monochromatic color schemes
- Occasion appropriateness: Match formality level to "{{occasion}}"
- Practical combinations: Ensure items work together functionally
- Style coherence: Maintain consistent aesthetic (casual, formal, sporty, etc.)
{{note}}

BACKGROUND COLOR RECOMMENDATIONS:
For each combination, recommend 3-5 background colors suitable for Instagram Story (1080x1920) that:
- Complement the outfit's color palette
- Enhance visual appeal without overwhelming the outfit
- Consider contrast for better product visibility
- Provide variety (neutral, bold, soft options)

For each combination, provide:
1. Reasoning as bullet points (2-4 concise points explaining why items work together)
2. Background color recommendations with hex codes and descriptive names

Example reasoning format:
- Color harmony: Navy blazer complements beige chinos for balanced contrast
- Occasion fit: Professional polish suitable for work/office settings
- Style coherence: Clean lines maintain minimalist aesthetic"""

OUTFIT_RESPONSE_SCHEMA: dict[str, Any] = {
    "name": "outfit_recommendations",
    "strict": True,
    "schema": {
        "type": "object",
        "properties": {
            "combinations": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "number"},
                        "items": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "id": {"type": "string"},
                                    "category": {"type": "string"},
                                    "subcategory": {"type": "string"},
                                    "color": {"type": "string"},
                                    "reason": {"type": "string"},
                                },
                                "required": ["id", "category", "subcategory", "color", "reason"],
                                "additionalProperties": False,
                            },
                        },
                        "reasoning": {"type": "string"},
                        "style_notes": {"type": "string"},
                        "confidence": {"type": "string", "enum": ["low", "medium", "high"]},
                        "background_colors": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "hex": {"type": "string"},
                                    "name": {"type": "string"},
                                },
                                "required": ["hex", "name"],
                                "additionalProperties": False,
                            },
                        },
                    },
                    "required": ["id", "items", "reasoning", "style_notes", "confidence", "background_colors"],
                    "additionalProperties": False,
                },
            }
        },
        "required": ["combinations"],
        "additionalProperties": False,
    },
}


def build_system_prompt(template: str, occasion: str, note: str | None = None) -> str:
    prompt = template.replace("{{occasion}}", occasion)
    cleaned_note = (note or "").strip()
    if cleaned_note:
        return prompt.replace("{{note}}", f"- User preference: {cleaned_note}", 1)
    return prompt.replace("{{note}}", "", 1)


def build_user_message(items: Iterable[WardrobeItem]) -> str:
    payload = [to_prompt_dict(item) for item in items]
    return f"Available wardrobe items:\n\n{json.dumps(payload, indent=2)}"


def parse_combinations(raw: str | None) -> list[dict[str, Any]]:
    if not raw or not raw.strip():
        return []
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise OutfitGenerationFailed(f"Outfit response was not valid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise OutfitGenerationFailed("Outfit response must be a JSON object.")
    combinations = parsed.get("combinations") or []
    if not isinstance(combinations, list):
        raise OutfitGenerationFailed("Outfit response 'combinations' must be a list.")
    return [combo for combo in combinations if isinstance(combo, dict)]
