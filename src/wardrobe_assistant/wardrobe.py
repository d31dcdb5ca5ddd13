from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass, field
from typing import Any, Iterable

CATEGORIES: dict[str, tuple[str, ...]] = {
    "Full Body": ("Dress", "Jumpsuit"),
    "Top": ("Shirt", "T-Shirt", "Jersey", "Blouse", "Tanktop", "Polo"),
    "Outerwear": ("Cardigan", "Hoodie", "Coat", "Jacket", "Sweater", "Vest"),
    "Bottom": (
        "Jeans",
        "Chinos",
        "Shorts",
        "Trousers",
        "Skirt",
        "Skort",
        "Leggings",
        "Sweatpants",
        "Culottes",
    ),
    "Accessory": (
        "Hat",
        "Belt",
        "Tie",
        "Scarf",
        "Watch",
        "Jewelry",
        "Glasses",
        "Sock",
        "Glove",
        "Bag",
        "Wallet",
        "Miscellaneous",
    ),
    "Footwear": ("Sneaker", "Boot", "Sandal", "Loafer", "Lace-up Shoe", "Flat Shoe", "Heels"),
}

COLORS: tuple[str, ...] = (
    "red",
    "dark red",
    "maroon",
    "crimson",
    "coral",
    "orange",
    "gold",
    "yellow",
    "green",
    "forest green",
    "olive",
    "army",
    "charcoal",
    "sage",
    "sand",
    "khaki",
    "teal",
    "blue",
    "navy",
    "royal blue",
    "sky blue",
    "indigo",
    "purple",
    "plum",
    "lavender",
    "pink",
    "hot pink",
    "brown",
    "tan",
    "beige",
    "gray",
    "silver",
    "black",
    "white",
)

OCCASIONS: tuple[str, ...] = (
    "casual",
    "semi-formal",
    "formal",
    "sportswear",
    "party/events",
    "work/office",
    "vacation/travel",
    "lounge/relax",
)

FITS: dict[str, tuple[str, ...]] = {
    "default": ("oversized", "regular", "relaxed", "slim"),
    "bottoms": ("oversized", "regular", "relaxed", "skinny", "slim", "straight", "tapered", "wide"),
    "tops": ("boxy", "loose", "oversized", "regular", "relaxed", "slim"),
}

GENDERS: tuple[str, ...] = ("men", "women")

REQUIRED_CSV_FIELDS = ("id", "desc", "category", "subcategory", "color")

_LIST_SEPARATORS = re.compile(r"[,;|]")


@dataclass(frozen=True)
class WardrobeItem:
    id: str
    description: str
    category: str
    subcategory: str
    colors: tuple[str, ...] = field(default_factory=tuple)
    fit: str | None = None
    brand: str | None = None
    occasions: tuple[str, ...] = field(default_factory=tuple)
    image: str | None = None
    user_id: str | None = None


def split_list(value: Any) -> tuple[str, ...]:
    """Split a comma/semicolon/pipe separated value (or a list) into clean parts."""
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        parts = [str(part) for part in value]
    else:
        parts = _LIST_SEPARATORS.split(str(value))
    return tuple(part.strip() for part in parts if part and part.strip())


def _optional(value: Any) -> str | None:
    cleaned = str(value or "").strip()
    return cleaned or None


def item_from_mapping(data: dict[str, Any], *, user_id: str | None = None) -> WardrobeItem:
    colors = data.get("colors", data.get("color"))
    occasions = data.get("occasions", data.get("occasion"))
    return WardrobeItem(
        id=str(data.get("id") or "").strip(),
        description=str(data.get("description", data.get("desc")) or "").strip(),
        category=str(data.get("category") or "").strip(),
        subcategory=str(data.get("subcategory") or "").strip(),
        colors=split_list(colors),
        fit=_optional(data.get("fit")),
        brand=_optional(data.get("brand")),
        occasions=split_list(occasions),
        image=_optional(data.get("image") or data.get("asset name")),
        user_id=user_id if user_id is not None else _optional(data.get("user_id")),
    )


def to_prompt_dict(item: WardrobeItem) -> dict[str, Any]:
    """Shape handed to the outfit generation model for one selected item."""
    return {
        "id": item.id,
        "category": item.category,
        "subcategory": item.subcategory,
        "desc": item.description,
        "color": ", ".join(item.colors),
        "fit": item.fit or "",
        "brand": item.brand or "",
        "occasion": ", ".join(item.occasions),
    }


def parse_wardrobe_csv(csv_text: str) -> list[dict[str, str]]:
    """Parse CSV text with a header row into trimmed row dictionaries."""
    try:
        reader = csv.DictReader(io.StringIO(csv_text.lstrip("\ufeff")), skipinitialspace=True)
        rows: list[dict[str, str]] = []
        for raw in reader:
            rows.append(
                {
                    str(key).strip().lower(): str(value or "").strip()
                    for key, value in raw.items()
                    if key is not None
                }
            )
    except csv.Error as exc:
        raise ValueError(f"CSV parsing failed: {exc}") from exc
    return rows


def validate_wardrobe_rows(
    rows: list[dict[str, str]],
    *,
    user_id: str | None = None,
) -> tuple[list[WardrobeItem], list[int]]:
    """Split rows into valid items and the CSV line numbers of invalid rows.

    Line numbers count the header as line 1, so the first data row is line 2.
    """
    valid: list[WardrobeItem] = []
    invalid: list[int] = []
    for index, row in enumerate(rows):
        present = dict(row)
        if "color" not in present and "colors" in present:
            present["color"] = present["colors"]
        if "desc" not in present and "description" in present:
            present["desc"] = present["description"]
        if all(present.get(name) for name in REQUIRED_CSV_FIELDS):
            valid.append(item_from_mapping(present, user_id=user_id))
        else:
            invalid.append(index + 2)
    return valid, invalid


def unique_categories(items: Iterable[WardrobeItem]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        if item.category not in seen:
            seen.add(item.category)
            out.append(item.category)
    return sorted(out)
