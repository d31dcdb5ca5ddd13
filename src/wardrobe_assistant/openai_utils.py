from __future__ import annotations

import base64
import json
import os
from dataclasses import dataclass
from typing import Any, Iterable

from openai import OpenAI

from wardrobe_assistant.errors import ItemAnalysisFailed
from wardrobe_assistant.outfits import (
    DEFAULT_PROMPT_TEMPLATE,
    OUTFIT_RESPONSE_SCHEMA,
    build_system_prompt,
    build_user_message,
    parse_combinations,
)
from wardrobe_assistant.wardrobe import CATEGORIES, COLORS, FITS, OCCASIONS, WardrobeItem


@dataclass(frozen=True)
class OpenAIConfig:
    chat_model: str
    vision_model: str
    embedding_model: str

    @classmethod
    def from_env(cls) -> "OpenAIConfig":
        return cls(
            chat_model=os.getenv("WA_CHAT_MODEL", "gpt-4o-2024-08-06"),
            vision_model=os.getenv("WA_VISION_MODEL", "gpt-4o-mini"),
            embedding_model=os.getenv("WA_EMBEDDING_MODEL", "text-embedding-3-small"),
        )


def make_client() -> OpenAI:
    return OpenAI()


def _usage_value(usage: Any, name: str) -> int:
    value = getattr(usage, name, 0) if usage is not None else 0
    return int(value or 0)


def text_embedding(client: OpenAI, text: str, model: str) -> tuple[list[float], int]:
    """Embed one text, returning the vector and the tokens billed for it."""
    resp = client.embeddings.create(model=model, input=text)
    return resp.data[0].embedding, _usage_value(resp.usage, "total_tokens")


def generate_outfit_combinations(
    client: OpenAI,
    items: Iterable[WardrobeItem],
    occasion: str,
    note: str | None,
    model: str,
    custom_prompt: str | None = None,
) -> tuple[list[dict[str, Any]], int, int]:
    """Ask the chat model for outfit combinations built from the selected items."""
    system_prompt = build_system_prompt(custom_prompt or DEFAULT_PROMPT_TEMPLATE, occasion, note)

    completion = client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": build_user_message(items)},
        ],
        response_format={"type": "json_schema", "json_schema": OUTFIT_RESPONSE_SCHEMA},
    )
    combinations = parse_combinations(completion.choices[0].message.content)
    return (
        combinations,
        _usage_value(completion.usage, "prompt_tokens"),
        _usage_value(completion.usage, "completion_tokens"),
    )


def default_analysis_prompt() -> str:
    category_lines = "\n".join(
        f"- {name}: {', '.join(subcategories)}" for name, subcategories in CATEGORIES.items()
    )
    return (
        "You are a fashion cataloguing assistant.\n"
        "Look at the photo of a single clothing item and describe it for a wardrobe database.\n"
        "Use one of these categories and, where possible, one of its subcategories:\n"
        f"{category_lines}\n"
        f"Suitable occasions should come from: {', '.join(OCCASIONS)}.\n"
        f"Describe the fit with one of: {', '.join(sorted({fit for fits in FITS.values() for fit in fits}))}.\n"
        f"Prefer these color names: {', '.join(COLORS)}.\n"
        "List every visible color, primary first. Leave brand empty if no logo or label is visible.\n"
    )


_ITEM_ANALYSIS_SCHEMA: dict[str, Any] = {
    "name": "item_analysis",
    "strict": True,
    "schema": {
        "type": "object",
        "properties": {
            "category": {"type": "string"},
            "subcategory": {"type": "string"},
            "colors": {"type": "array", "items": {"type": "string"}},
            "fit": {"type": "string"},
            "occasions": {"type": "array", "items": {"type": "string"}},
            "description": {"type": "string"},
            "brand": {"type": "string"},
            "confidence": {"type": "string", "enum": ["low", "medium", "high"]},
        },
        "required": [
            "category",
            "subcategory",
            "colors",
            "fit",
            "occasions",
            "description",
            "brand",
            "confidence",
        ],
        "additionalProperties": False,
    },
}


def analyze_item_image(
    client: OpenAI,
    image_bytes: bytes,
    model: str,
    custom_prompt: str | None = None,
) -> tuple[dict[str, Any], int, int]:
    """Turn a garment photo into structured wardrobe attributes."""
    b64 = base64.b64encode(image_bytes).decode("utf-8")

    completion = client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": custom_prompt or default_analysis_prompt()},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "Analyze this fashion item image:"},
                    {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{b64}"}},
                ],
            },
        ],
        response_format={"type": "json_schema", "json_schema": _ITEM_ANALYSIS_SCHEMA},
    )
    raw = completion.choices[0].message.content or "{}"
    try:
        result = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ItemAnalysisFailed(f"Item analysis was not valid JSON: {exc}") from exc
    if not isinstance(result, dict) or not result.get("category") or not result.get("subcategory"):
        raise ItemAnalysisFailed("Invalid analysis result: missing required fields")

    analysis = {
        "category": result["category"],
        "subcategory": result["subcategory"],
        "colors": list(result.get("colors") or []),
        "fit": result.get("fit") or "regular",
        "occasions": list(result.get("occasions") or []),
        "description": result.get("description") or "",
        "brand": result.get("brand") or None,
        "confidence": result.get("confidence") or "medium",
    }
    return (
        analysis,
        _usage_value(completion.usage, "prompt_tokens"),
        _usage_value(completion.usage, "completion_tokens"),
    )
