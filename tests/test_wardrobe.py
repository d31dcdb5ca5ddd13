from __future__ import annotations

import json

import pytest

from conftest import make_item
from wardrobe_assistant.costs import calculate_costs, format_cost, format_cost_idr, is_within_budget
from wardrobe_assistant.errors import OutfitGenerationFailed
from wardrobe_assistant.outfits import (
    DEFAULT_PROMPT_TEMPLATE,
    build_system_prompt,
    build_user_message,
    parse_combinations,
)
from wardrobe_assistant.wardrobe import parse_wardrobe_csv, to_prompt_dict, validate_wardrobe_rows

CSV_TEXT = """id,desc,category,subcategory,color,fit,brand,occasion
t1, Linen shirt ,Top,Shirt,"white, blue",relaxed,,casual;vacation/travel
b1,Chinos,Bottom,Chinos,beige,slim,Uniqlo,work/office
x1,,Top,Shirt,red,,,
f1,Loafers,Footwear,Loafer,brown,,,formal
"""


def test_parse_and_validate_csv():
    rows = parse_wardrobe_csv(CSV_TEXT)
    items, invalid = validate_wardrobe_rows(rows, user_id="u1")

    assert [item.id for item in items] == ["t1", "b1", "f1"]
    assert invalid == [4]

    shirt = items[0]
    assert shirt.description == "Linen shirt"
    assert shirt.colors == ("white", "blue")
    assert shirt.occasions == ("casual", "vacation/travel")
    assert shirt.brand is None
    assert shirt.user_id == "u1"


def test_csv_headers_are_case_insensitive():
    rows = parse_wardrobe_csv("ID,Desc,Category,Subcategory,Colors\nd1,Midi dress,Full Body,Dress,green\n")
    items, invalid = validate_wardrobe_rows(rows)
    assert invalid == []
    assert items[0].category == "Full Body"
    assert items[0].colors == ("green",)


def test_csv_without_required_columns_marks_every_row_invalid():
    rows = parse_wardrobe_csv("id,desc\n1,shirt\n2,pants\n")
    items, invalid = validate_wardrobe_rows(rows)
    assert items == []
    assert invalid == [2, 3]


def test_prompt_dict_wire_shape():
    item = make_item("t1", colors=("white", "blue"), occasions=("casual", "formal"), brand=None)
    assert to_prompt_dict(item) == {
        "id": "t1",
        "category": "Top",
        "subcategory": "Shirt",
        "desc": "Cotton piece t1",
        "color": "white, blue",
        "fit": "regular",
        "brand": "",
        "occasion": "casual, formal",
    }


def test_system_prompt_substitution():
    prompt = build_system_prompt(DEFAULT_PROMPT_TEMPLATE, "formal", "no ties")
    assert "{{occasion}}" not in prompt
    assert prompt.count('"formal"') == 2
    assert "- User preference: no ties" in prompt

    without_note = build_system_prompt(DEFAULT_PROMPT_TEMPLATE, "casual")
    assert "{{note}}" not in without_note
    assert "User preference" not in without_note


def test_note_placeholder_replaced_once():
    prompt = build_system_prompt("{{note}} / {{note}}", "casual", "bright")
    assert prompt == "- User preference: bright / {{note}}"


def test_user_message_embeds_items_as_json():
    message = build_user_message([make_item("t1"), make_item("b1", category="Bottom")])
    header, payload = message.split("\n\n", 1)
    assert header == "Available wardrobe items:"
    assert [entry["id"] for entry in json.loads(payload)] == ["t1", "b1"]


def test_parse_combinations():
    assert parse_combinations(None) == []
    assert parse_combinations('{"combinations": []}') == []
    assert parse_combinations('{"combinations": [{"id": 1}]}') == [{"id": 1}]
    with pytest.raises(OutfitGenerationFailed):
        parse_combinations("not json")
    with pytest.raises(OutfitGenerationFailed):
        parse_combinations('{"combinations": "nope"}')


def test_calculate_costs():
    usage = calculate_costs(1_000, 10_000, 2_000, 1234)

    assert usage["total_tokens"] == 13_000
    assert usage["embedding_cost_usd"] == pytest.approx(0.00002)
    assert usage["gpt_input_cost_usd"] == pytest.approx(0.025)
    assert usage["gpt_output_cost_usd"] == pytest.approx(0.02)
    assert usage["total_cost_usd"] == pytest.approx(0.04502)
    assert usage["total_cost_idr"] == 676
    assert usage["processing_time_ms"] == 1234


def test_cost_formatting_and_budget():
    assert format_cost(0.04502) == "$0.045020"
    assert format_cost_idr(1250000) == "Rp 1.250.000"
    assert is_within_budget(1250)
    assert not is_within_budget(1251)
