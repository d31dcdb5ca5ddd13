from __future__ import annotations

import math
from typing import TypedDict

# USD per 1M tokens
PRICING = {
    "embedding": 0.02,
    "gpt_input": 2.5,
    "gpt_output": 10.0,
}
USD_TO_IDR = 15000
DEFAULT_BUDGET_IDR = 1250


class UsageStats(TypedDict):
    embedding_tokens: int
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    embedding_cost_usd: float
    gpt_input_cost_usd: float
    gpt_output_cost_usd: float
    total_cost_usd: float
    total_cost_idr: int
    processing_time_ms: int


def calculate_costs(
    embedding_tokens: int,
    prompt_tokens: int,
    completion_tokens: int,
    processing_time_ms: int,
) -> UsageStats:
    embedding_cost = embedding_tokens / 1_000_000 * PRICING["embedding"]
    input_cost = prompt_tokens / 1_000_000 * PRICING["gpt_input"]
    output_cost = completion_tokens / 1_000_000 * PRICING["gpt_output"]
    total_cost = embedding_cost + input_cost + output_cost

    return {
        "embedding_tokens": embedding_tokens,
        "prompt_tokens": prompt_tokens,
        "completion_tokens": completion_tokens,
        "total_tokens": embedding_tokens + prompt_tokens + completion_tokens,
        "embedding_cost_usd": round(embedding_cost, 6),
        "gpt_input_cost_usd": round(input_cost, 6),
        "gpt_output_cost_usd": round(output_cost, 6),
        "total_cost_usd": round(total_cost, 6),
        "total_cost_idr": math.ceil(total_cost * USD_TO_IDR),
        "processing_time_ms": processing_time_ms,
    }


def format_cost(usd: float) -> str:
    return f"${usd:.6f}"


def format_cost_idr(idr: int) -> str:
    return "Rp " + f"{idr:,}".replace(",", ".")


def is_within_budget(cost_idr: int, budget_idr: int = DEFAULT_BUDGET_IDR) -> bool:
    return cost_idr <= budget_idr
