from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from wardrobe_assistant.wardrobe import WardrobeItem


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_item(row: sqlite3.Row) -> WardrobeItem:
    return WardrobeItem(
        id=row["id"],
        description=row["description"],
        category=row["category"],
        subcategory=row["subcategory"],
        colors=tuple(json.loads(row["colors"] or "[]")),
        fit=row["fit"],
        brand=row["brand"],
        occasions=tuple(json.loads(row["occasions"] or "[]")),
        image=row["image"],
        user_id=row["user_id"],
    )


def _row_to_prompt(row: sqlite3.Row) -> dict[str, Any]:
    record = dict(row)
    record["is_active"] = bool(record["is_active"])
    return record


class WardrobeDB:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS wardrobe_items (
                    user_id TEXT NOT NULL,
                    id TEXT NOT NULL,
                    description TEXT NOT NULL,
                    category TEXT NOT NULL,
                    subcategory TEXT NOT NULL,
                    colors TEXT NOT NULL,
                    fit TEXT,
                    brand TEXT,
                    occasions TEXT NOT NULL,
                    image TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, id)
                );

                CREATE INDEX IF NOT EXISTS idx_wardrobe_items_category
                    ON wardrobe_items(user_id, category);

                CREATE TABLE IF NOT EXISTS recommendation_sessions (
                    session_id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    gender TEXT NOT NULL,
                    occasion TEXT NOT NULL,
                    note TEXT,
                    combinations TEXT NOT NULL,
                    usage TEXT NOT NULL,
                    metadata TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_recommendation_sessions_user
                    ON recommendation_sessions(user_id);

                CREATE TABLE IF NOT EXISTS prompts (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    description TEXT,
                    type TEXT NOT NULL,
                    content TEXT NOT NULL,
                    version INTEGER NOT NULL DEFAULT 1,
                    is_active INTEGER NOT NULL DEFAULT 0,
                    usage_count INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE UNIQUE INDEX IF NOT EXISTS idx_prompts_one_active
                    ON prompts(user_id, type) WHERE is_active = 1;

                CREATE TABLE IF NOT EXISTS prompt_versions (
                    prompt_id TEXT NOT NULL REFERENCES prompts(id) ON DELETE CASCADE,
                    version INTEGER NOT NULL,
                    content TEXT NOT NULL,
                    change_summary TEXT,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (prompt_id, version)
                );
                """
            )

    def upsert_items(self, user_id: str, items: Iterable[WardrobeItem]) -> int:
        timestamp = _utc_now()
        payload: list[tuple[Any, ...]] = [
            (
                user_id,
                item.id,
                item.description,
                item.category,
                item.subcategory,
                json.dumps(list(item.colors)),
                item.fit,
                item.brand,
                json.dumps(list(item.occasions)),
                item.image,
                timestamp,
                timestamp,
            )
            for item in items
        ]
        if not payload:
            return 0

        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO wardrobe_items (
                    user_id, id, description, category, subcategory, colors,
                    fit, brand, occasions, image, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id, id) DO UPDATE SET
                    description=excluded.description,
                    category=excluded.category,
                    subcategory=excluded.subcategory,
                    colors=excluded.colors,
                    fit=excluded.fit,
                    brand=excluded.brand,
                    occasions=excluded.occasions,
                    image=excluded.image,
                    updated_at=excluded.updated_at
                """,
                payload,
            )
        return len(payload)

    def list_items(self, user_id: str, category: str | None = None) -> list[WardrobeItem]:
        with self._connect() as conn:
            if category:
                rows = conn.execute(
                    """
                    SELECT * FROM wardrobe_items
                    WHERE user_id = ? AND lower(category) = lower(?)
                    ORDER BY created_at ASC, id ASC
                    """,
                    (user_id, category),
                ).fetchall()
            else:
                rows = conn.execute(
                    """
                    SELECT * FROM wardrobe_items
                    WHERE user_id = ?
                    ORDER BY created_at ASC, id ASC
                    """,
                    (user_id,),
                ).fetchall()
        return [_row_to_item(row) for row in rows]

    def get_item(self, user_id: str, item_id: str) -> WardrobeItem | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM wardrobe_items WHERE user_id = ? AND id = ?",
                (user_id, item_id),
            ).fetchone()
        return _row_to_item(row) if row else None

    def delete_item(self, user_id: str, item_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM wardrobe_items WHERE user_id = ? AND id = ?",
                (user_id, item_id),
            )
        return cursor.rowcount > 0

    def store_recommendation(
        self,
        *,
        user_id: str,
        gender: str,
        occasion: str,
        note: str | None,
        combinations: list[dict[str, Any]],
        usage: dict[str, Any],
        metadata: dict[str, Any],
    ) -> str:
        session_id = uuid.uuid4().hex
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO recommendation_sessions
                    (session_id, user_id, gender, occasion, note, combinations, usage, metadata, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session_id,
                    user_id,
                    gender,
                    occasion,
                    note,
                    json.dumps(combinations),
                    json.dumps(usage),
                    json.dumps(metadata),
                    _utc_now(),
                ),
            )
        return session_id

    def get_recommendation(self, session_id: str) -> dict[str, Any] | None:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT session_id, user_id, gender, occasion, note, combinations, usage, metadata, created_at
                FROM recommendation_sessions
                WHERE session_id = ?
                """,
                (session_id,),
            ).fetchone()
        if not row:
            return None
        record = dict(row)
        for key in ("combinations", "usage", "metadata"):
            record[key] = json.loads(record[key])
        return record

    @staticmethod
    def _deactivate_prompts(conn: sqlite3.Connection, user_id: str, prompt_type: str, timestamp: str) -> None:
        conn.execute(
            """
            UPDATE prompts SET is_active = 0, updated_at = ?
            WHERE user_id = ? AND type = ? AND is_active = 1
            """,
            (timestamp, user_id, prompt_type),
        )

    def create_prompt(
        self,
        *,
        user_id: str,
        name: str,
        description: str | None,
        prompt_type: str,
        content: str,
        is_active: bool = False,
    ) -> dict[str, Any]:
        prompt_id = uuid.uuid4().hex
        timestamp = _utc_now()
        with self._connect() as conn:
            if is_active:
                self._deactivate_prompts(conn, user_id, prompt_type, timestamp)
            conn.execute(
                """
                INSERT INTO prompts
                    (id, user_id, name, description, type, content, version, is_active, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, 1, ?, ?, ?)
                """,
                (prompt_id, user_id, name, description, prompt_type, content, int(is_active), timestamp, timestamp),
            )
            conn.execute(
                """
                INSERT INTO prompt_versions (prompt_id, version, content, change_summary, created_at)
                VALUES (?, 1, ?, 'Initial version', ?)
                """,
                (prompt_id, content, timestamp),
            )
        return self.get_prompt(user_id, prompt_id) or {}

    def list_prompts(self, user_id: str, prompt_type: str | None = None) -> list[dict[str, Any]]:
        query = "SELECT * FROM prompts WHERE user_id = ?"
        params: list[Any] = [user_id]
        if prompt_type:
            query += " AND type = ?"
            params.append(prompt_type)
        query += " ORDER BY type ASC, created_at DESC, id ASC"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_prompt(row) for row in rows]

    def get_prompt(self, user_id: str, prompt_id: str) -> dict[str, Any] | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM prompts WHERE user_id = ? AND id = ?",
                (user_id, prompt_id),
            ).fetchone()
        return _row_to_prompt(row) if row else None

    def get_active_prompt(self, user_id: str, prompt_type: str) -> dict[str, Any] | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM prompts WHERE user_id = ? AND type = ? AND is_active = 1",
                (user_id, prompt_type),
            ).fetchone()
        return _row_to_prompt(row) if row else None

    def update_prompt(
        self,
        user_id: str,
        prompt_id: str,
        *,
        name: str,
        description: str | None,
        content: str,
        is_active: bool | None = None,
        change_summary: str | None = None,
    ) -> dict[str, Any] | None:
        """Rewrite a prompt; a content change appends a new version."""
        existing = self.get_prompt(user_id, prompt_id)
        if existing is None:
            return None

        timestamp = _utc_now()
        content_changed = content != existing["content"]
        version = existing["version"] + 1 if content_changed else existing["version"]
        active = existing["is_active"] if is_active is None else bool(is_active)

        with self._connect() as conn:
            if active and not existing["is_active"]:
                self._deactivate_prompts(conn, user_id, existing["type"], timestamp)
            if content_changed:
                conn.execute(
                    """
                    INSERT INTO prompt_versions (prompt_id, version, content, change_summary, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (prompt_id, version, content, change_summary or "Prompt content updated", timestamp),
                )
            conn.execute(
                """
                UPDATE prompts
                SET name = ?, description = ?, content = ?, version = ?, is_active = ?, updated_at = ?
                WHERE user_id = ? AND id = ?
                """,
                (name, description, content, version, int(active), timestamp, user_id, prompt_id),
            )
        return self.get_prompt(user_id, prompt_id)

    def activate_prompt(self, user_id: str, prompt_id: str) -> dict[str, Any] | None:
        existing = self.get_prompt(user_id, prompt_id)
        if existing is None or existing["is_active"]:
            return existing

        timestamp = _utc_now()
        with self._connect() as conn:
            self._deactivate_prompts(conn, user_id, existing["type"], timestamp)
            conn.execute(
                "UPDATE prompts SET is_active = 1, updated_at = ? WHERE user_id = ? AND id = ?",
                (timestamp, user_id, prompt_id),
            )
        return self.get_prompt(user_id, prompt_id)

    def delete_prompt(self, user_id: str, prompt_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM prompts WHERE user_id = ? AND id = ?",
                (user_id, prompt_id),
            )
        return cursor.rowcount > 0

    def list_prompt_versions(self, prompt_id: str) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT version, content, change_summary, created_at
                FROM prompt_versions
                WHERE prompt_id = ?
                ORDER BY version DESC
                """,
                (prompt_id,),
            ).fetchall()
        return [dict(row) for row in rows]

    def get_prompt_version(self, prompt_id: str, version: int) -> dict[str, Any] | None:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT version, content, change_summary, created_at
                FROM prompt_versions
                WHERE prompt_id = ? AND version = ?
                """,
                (prompt_id, version),
            ).fetchone()
        return dict(row) if row else None

    def record_prompt_usage(self, prompt_id: str) -> None:
        with self._connect() as conn:
            conn.execute("UPDATE prompts SET usage_count = usage_count + 1 WHERE id = ?", (prompt_id,))

    def stats(self) -> dict[str, Any]:
        with self._connect() as conn:
            counts = conn.execute(
                """
                SELECT
                  (SELECT COUNT(*) FROM wardrobe_items) AS item_count,
                  (SELECT COUNT(DISTINCT user_id) FROM wardrobe_items) AS user_count,
                  (SELECT COUNT(*) FROM recommendation_sessions) AS recommendation_count,
                  (SELECT COUNT(*) FROM prompts) AS prompt_count
                """
            ).fetchone()
        if not counts:
            return {"item_count": 0, "user_count": 0, "recommendation_count": 0, "prompt_count": 0}
        return dict(counts)
