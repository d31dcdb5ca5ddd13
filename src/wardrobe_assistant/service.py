from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import asdict, dataclass
import logging
import os
from pathlib import Path
import time
import uuid
from typing import Any, Iterable

from wardrobe_assistant.costs import calculate_costs, format_cost, format_cost_idr, is_within_budget
from wardrobe_assistant.db import WardrobeDB
from wardrobe_assistant.embedding_cache import EMBEDDING_CACHE_TTL_SECONDS, EmbeddingCache
from wardrobe_assistant.embeddings import EmbeddingGenerator
from wardrobe_assistant.errors import PromptConflict, WardrobeAssistantError
from wardrobe_assistant.openai_utils import (
    OpenAIConfig,
    analyze_item_image,
    generate_outfit_combinations,
    make_client,
)
from wardrobe_assistant.pipeline import RetrievalPipeline
from wardrobe_assistant.prompts import (
    ITEM_ANALYSIS,
    OUTFIT_RECOMMENDATION,
    clean_prompt_fields,
    default_prompts,
    validate_prompt_type,
)
from wardrobe_assistant.wardrobe import (
    GENDERS,
    OCCASIONS,
    WardrobeItem,
    item_from_mapping,
    parse_wardrobe_csv,
    unique_categories,
    validate_wardrobe_rows,
)

_LOGGER = logging.getLogger(__name__)
_OPENAI_EXECUTOR = ThreadPoolExecutor(max_workers=4, thread_name_prefix="openai-call")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _env_int(name: str, default: int | None) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class RetrievalConfig:
    cache_ttl_seconds: float
    cache_max_entries: int | None
    max_workers: int

    @classmethod
    def from_env(cls) -> "RetrievalConfig":
        return cls(
            cache_ttl_seconds=_env_float("WA_EMBEDDING_CACHE_TTL_SECONDS", EMBEDDING_CACHE_TTL_SECONDS),
            cache_max_entries=_env_int("WA_EMBEDDING_CACHE_MAX_ENTRIES", None),
            max_workers=_env_int("WA_EMBEDDING_MAX_WORKERS", 8) or 8,
        )


class WardrobeAssistantService:
    def __init__(
        self,
        root_dir: Path | None = None,
        *,
        client=None,
        cache: EmbeddingCache | None = None,
        db: WardrobeDB | None = None,
    ) -> None:
        self.root_dir = root_dir or Path(__file__).resolve().parents[2]
        self.db = db or WardrobeDB(self.root_dir / "data" / "wardrobe.db")

        self.cfg = OpenAIConfig.from_env()
        self.retrieval_cfg = RetrievalConfig.from_env()
        self.client = client
        self.cache = cache or EmbeddingCache(
            self.retrieval_cfg.cache_ttl_seconds,
            max_entries=self.retrieval_cfg.cache_max_entries,
        )
        self._pipeline: RetrievalPipeline | None = None
        self.request_timeout_seconds = _env_float("WA_AI_REQUEST_TIMEOUT_SECONDS", 30.0)
        self.retrieval_timeout_seconds = _env_float("WA_AI_RETRIEVAL_TIMEOUT_SECONDS", 60.0)

    @property
    def ai_enabled(self) -> bool:
        return self.client is not None or bool(os.getenv("OPENAI_API_KEY"))

    def _ensure_client(self):
        if self.client is None:
            if not os.getenv("OPENAI_API_KEY"):
                raise RuntimeError("OPENAI_API_KEY is not set.")
            self.client = make_client()
        return self.client

    def _ensure_pipeline(self) -> RetrievalPipeline:
        if self._pipeline is None:
            generator = EmbeddingGenerator(
                self._ensure_client(),
                self.cfg.embedding_model,
                self.cache,
                max_workers=self.retrieval_cfg.max_workers,
            )
            self._pipeline = RetrievalPipeline(generator)
        return self._pipeline

    def _run_with_timeout(self, operation: str, fn, timeout_seconds: float):
        safe_timeout = max(1.0, float(timeout_seconds))
        future = _OPENAI_EXECUTOR.submit(fn)
        try:
            return future.result(timeout=safe_timeout)
        except FutureTimeoutError as exc:
            future.cancel()
            raise RuntimeError(f"{operation} timed out after {int(round(safe_timeout))}s.") from exc
        except WardrobeAssistantError:
            raise
        except Exception as exc:
            raise RuntimeError(f"{operation} failed: {exc}") from exc

    @staticmethod
    def _validate_request(gender: str, occasion: str) -> tuple[str, str]:
        gender_norm = (gender or "").strip().lower()
        if gender_norm not in GENDERS:
            raise ValueError('Invalid gender. Must be "men" or "women".')
        occasion_norm = (occasion or "").strip().lower()
        if occasion_norm not in OCCASIONS:
            raise ValueError(f"Invalid occasion. Must be one of: {', '.join(OCCASIONS)}.")
        return gender_norm, occasion_norm

    def recommend(
        self,
        *,
        user_id: str,
        occasion: str,
        gender: str,
        note: str | None = None,
        custom_prompt: str | None = None,
        items: Iterable[WardrobeItem] | None = None,
    ) -> dict[str, Any]:
        gender_norm, occasion_norm = self._validate_request(gender, occasion)
        cleaned_note = (note or "").strip() or None
        wardrobe = list(items) if items is not None else self.db.list_items(user_id)
        if not wardrobe:
            raise ValueError("No wardrobe items available. Add items or upload a CSV first.")

        started = time.monotonic()
        pipeline = self._ensure_pipeline()
        retrieval = self._run_with_timeout(
            "Wardrobe retrieval",
            lambda: pipeline.retrieve(wardrobe, occasion_norm, cleaned_note),
            self.retrieval_timeout_seconds,
        )
        selected = [entry.item for entry in retrieval.selected_items]
        system_prompt, stored_prompt = self._resolve_prompt(user_id, OUTFIT_RECOMMENDATION, custom_prompt)

        if selected:
            client = self._ensure_client()
            combinations, prompt_tokens, completion_tokens = self._run_with_timeout(
                "Outfit generation request",
                lambda: generate_outfit_combinations(
                    client,
                    selected,
                    occasion_norm,
                    cleaned_note,
                    model=self.cfg.chat_model,
                    custom_prompt=system_prompt,
                ),
                self.request_timeout_seconds,
            )
            if stored_prompt is not None:
                self.db.record_prompt_usage(stored_prompt["id"])
        else:
            _LOGGER.warning("No wardrobe items matched any category bucket; skipping outfit generation.")
            combinations, prompt_tokens, completion_tokens = [], 0, 0

        processing_ms = int(round((time.monotonic() - started) * 1000))
        usage = calculate_costs(retrieval.embedding_tokens, prompt_tokens, completion_tokens, processing_ms)
        if not is_within_budget(usage["total_cost_idr"]):
            _LOGGER.warning(
                "Recommendation cost %s exceeded the per-request budget.", format_cost_idr(usage["total_cost_idr"])
            )

        metadata = {
            "gender": gender_norm,
            "occasion": occasion_norm,
            "total_items": retrieval.total_items,
            "items_considered": len(selected),
            "cached_items": retrieval.cached_items,
            "category_counts": retrieval.balanced_categories.counts(),
            "prompt_id": stored_prompt["id"] if stored_prompt and selected else None,
        }
        session_id = self.db.store_recommendation(
            user_id=user_id,
            gender=gender_norm,
            occasion=occasion_norm,
            note=cleaned_note,
            combinations=combinations,
            usage=dict(usage),
            metadata=metadata,
        )
        _LOGGER.info(
            "Recommendation %s: %d combinations from %d/%d items, %d tokens, %s.",
            session_id,
            len(combinations),
            len(selected),
            retrieval.total_items,
            usage["total_tokens"],
            format_cost(usage["total_cost_usd"]),
        )
        return {
            "session_id": session_id,
            "combinations": combinations,
            "usage": usage,
            "metadata": metadata,
        }

    def recommend_from_csv(
        self,
        *,
        user_id: str,
        csv_text: str,
        occasion: str,
        gender: str,
        note: str | None = None,
        custom_prompt: str | None = None,
    ) -> dict[str, Any]:
        self._validate_request(gender, occasion)
        items, invalid = validate_wardrobe_rows(parse_wardrobe_csv(csv_text), user_id=user_id)
        if not items:
            raise ValueError(
                "No valid items found in CSV. Please check required fields: id, desc, category, subcategory, color."
            )
        if invalid:
            _LOGGER.warning("Skipped %d invalid items at CSV lines: %s", len(invalid), invalid)

        payload = self.recommend(
            user_id=user_id,
            occasion=occasion,
            gender=gender,
            note=note,
            custom_prompt=custom_prompt,
            items=items,
        )
        payload["metadata"]["invalid_lines"] = invalid
        return payload

    def import_csv(self, *, user_id: str, csv_text: str) -> dict[str, Any]:
        items, invalid = validate_wardrobe_rows(parse_wardrobe_csv(csv_text), user_id=user_id)
        if invalid:
            _LOGGER.warning("Skipped %d invalid items at CSV lines: %s", len(invalid), invalid)
        imported = self.db.upsert_items(user_id, items)
        return {"imported": imported, "invalid_lines": invalid}

    def list_items(self, *, user_id: str, category: str | None = None) -> list[WardrobeItem]:
        return self.db.list_items(user_id, category=category)

    @staticmethod
    def _checked_item(payload: dict[str, Any], user_id: str) -> WardrobeItem:
        item = item_from_mapping(payload, user_id=user_id)
        missing = [
            name
            for name, value in (
                ("description", item.description),
                ("category", item.category),
                ("subcategory", item.subcategory),
                ("colors", item.colors),
            )
            if not value
        ]
        if missing:
            raise ValueError(f"Missing required fields: {', '.join(missing)}.")
        return item

    def add_item(self, *, user_id: str, data: dict[str, Any]) -> WardrobeItem:
        payload = dict(data)
        if not str(payload.get("id") or "").strip():
            payload["id"] = uuid.uuid4().hex
        item = self._checked_item(payload, user_id)
        self.db.upsert_items(user_id, [item])
        return item

    def update_item(self, *, user_id: str, item_id: str, data: dict[str, Any]) -> WardrobeItem:
        """Apply the non-null fields of ``data`` to a stored item."""
        existing = self.db.get_item(user_id, item_id)
        if existing is None:
            raise KeyError("Wardrobe item not found.")

        payload = asdict(existing)
        payload.update({key: value for key, value in data.items() if value is not None})
        payload["id"] = existing.id
        item = self._checked_item(payload, user_id)
        self.db.upsert_items(user_id, [item])
        return item

    def get_item(self, *, user_id: str, item_id: str) -> WardrobeItem:
        item = self.db.get_item(user_id, item_id)
        if item is None:
            raise KeyError("Wardrobe item not found.")
        return item

    def delete_item(self, *, user_id: str, item_id: str) -> None:
        if not self.db.delete_item(user_id, item_id):
            raise KeyError("Wardrobe item not found.")

    def analyze_item(
        self,
        *,
        image_bytes: bytes,
        custom_prompt: str | None = None,
        user_id: str | None = None,
    ) -> dict[str, Any]:
        if not image_bytes:
            raise ValueError("Image payload is empty.")

        client = self._ensure_client()
        system_prompt, stored_prompt = self._resolve_prompt(user_id, ITEM_ANALYSIS, custom_prompt)
        started = time.monotonic()
        analysis, prompt_tokens, completion_tokens = self._run_with_timeout(
            "Item analysis request",
            lambda: analyze_item_image(
                client,
                image_bytes,
                model=self.cfg.vision_model,
                custom_prompt=system_prompt,
            ),
            self.request_timeout_seconds,
        )
        if stored_prompt is not None:
            self.db.record_prompt_usage(stored_prompt["id"])
        processing_ms = int(round((time.monotonic() - started) * 1000))
        return {
            "analysis": analysis,
            "usage": calculate_costs(0, prompt_tokens, completion_tokens, processing_ms),
            "model": self.cfg.vision_model,
            "prompt": (
                {key: stored_prompt[key] for key in ("id", "name", "version")} if stored_prompt else None
            ),
        }

    def get_recommendation(self, session_id: str) -> dict[str, Any]:
        record = self.db.get_recommendation(session_id)
        if not record:
            raise KeyError("Recommendation session not found.")
        return record

    def _resolve_prompt(
        self, user_id: str | None, prompt_type: str, custom_prompt: str | None
    ) -> tuple[str | None, dict[str, Any] | None]:
        """Pick the system prompt: explicit override, then the user's active prompt, then the built-in."""
        if custom_prompt and custom_prompt.strip():
            return custom_prompt, None
        if user_id:
            active = self.db.get_active_prompt(user_id, prompt_type)
            if active is not None:
                return active["content"], active
        return None, None

    def list_prompts(self, *, user_id: str, prompt_type: str | None = None) -> list[dict[str, Any]]:
        if prompt_type:
            prompt_type = validate_prompt_type(prompt_type)
        return self.db.list_prompts(user_id, prompt_type)

    def get_prompt(self, *, user_id: str, prompt_id: str) -> dict[str, Any]:
        record = self.db.get_prompt(user_id, prompt_id)
        if record is None:
            raise KeyError("Prompt not found.")
        return record

    def create_prompt(self, *, user_id: str, data: dict[str, Any]) -> dict[str, Any]:
        prompt_type = validate_prompt_type(data.get("type"))
        name, content = clean_prompt_fields(data.get("name"), data.get("content"))
        return self.db.create_prompt(
            user_id=user_id,
            name=name,
            description=(data.get("description") or "").strip() or None,
            prompt_type=prompt_type,
            content=content,
            is_active=bool(data.get("is_active")),
        )

    def update_prompt(self, *, user_id: str, prompt_id: str, data: dict[str, Any]) -> dict[str, Any]:
        name, content = clean_prompt_fields(data.get("name"), data.get("content"))
        record = self.db.update_prompt(
            user_id,
            prompt_id,
            name=name,
            description=(data.get("description") or "").strip() or None,
            content=content,
            is_active=data.get("is_active"),
            change_summary=data.get("change_summary"),
        )
        if record is None:
            raise KeyError("Prompt not found.")
        return record

    def activate_prompt(self, *, user_id: str, prompt_id: str) -> dict[str, Any]:
        record = self.db.activate_prompt(user_id, prompt_id)
        if record is None:
            raise KeyError("Prompt not found.")
        return record

    def delete_prompt(self, *, user_id: str, prompt_id: str) -> None:
        record = self.get_prompt(user_id=user_id, prompt_id=prompt_id)
        self.db.delete_prompt(user_id, prompt_id)
        if record["is_active"]:
            _LOGGER.warning(
                "Deleted the active %s prompt for %s; the built-in prompt applies.", record["type"], user_id
            )

    def list_prompt_versions(self, *, user_id: str, prompt_id: str) -> dict[str, Any]:
        record = self.get_prompt(user_id=user_id, prompt_id=prompt_id)
        return {"prompt": record, "versions": self.db.list_prompt_versions(prompt_id)}

    def restore_prompt_version(self, *, user_id: str, prompt_id: str, version: int) -> dict[str, Any]:
        """Bring back the content of an earlier version as a new version."""
        if version < 1:
            raise ValueError("Invalid version number.")
        record = self.get_prompt(user_id=user_id, prompt_id=prompt_id)
        target = self.db.get_prompt_version(prompt_id, version)
        if target is None:
            raise KeyError("Prompt version not found.")
        if record["version"] == version:
            return {"prompt": record, "already_at_version": True}

        restored = self.db.update_prompt(
            user_id,
            prompt_id,
            name=record["name"],
            description=record["description"],
            content=target["content"],
            change_summary=f"Restored from version {version}",
        )
        return {"prompt": restored, "already_at_version": False}

    def seed_default_prompts(self, *, user_id: str) -> list[dict[str, Any]]:
        if self.db.list_prompts(user_id):
            raise PromptConflict("User already has prompts. Delete existing prompts first if you want to reseed.")
        return [
            self.db.create_prompt(
                user_id=user_id,
                name=entry["name"],
                description=entry["description"],
                prompt_type=entry["type"],
                content=entry["content"],
                is_active=True,
            )
            for entry in default_prompts()
        ]

    def stats(self, user_id: str | None = None) -> dict[str, Any]:
        details = self.db.stats()
        details["ai_enabled"] = self.ai_enabled
        details["cached_embeddings"] = len(self.cache)
        if user_id:
            details["categories"] = unique_categories(self.db.list_items(user_id))
        return details
