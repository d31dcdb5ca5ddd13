from __future__ import annotations

import argparse
import os
from pathlib import Path
import sys

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from wardrobe_assistant.db import WardrobeDB  # noqa: E402
from wardrobe_assistant.wardrobe import parse_wardrobe_csv, validate_wardrobe_rows  # noqa: E402


def import_wardrobe_csv(csv_path: Path, db_path: Path, user_id: str) -> int:
    rows = parse_wardrobe_csv(csv_path.read_text(encoding="utf-8"))
    items, invalid = validate_wardrobe_rows(rows, user_id=user_id)
    if invalid:
        print(f"Skipping {len(invalid)} invalid rows at CSV lines: {', '.join(str(n) for n in invalid)}")

    imported = WardrobeDB(db_path).upsert_items(user_id, items)
    print(f"Imported {imported} items for {user_id} into {db_path}")
    return imported


def main() -> None:
    parser = argparse.ArgumentParser(description="Load a wardrobe CSV into the local item store.")
    parser.add_argument("csv", help="CSV with columns id, desc, category, subcategory, color[, fit, brand, occasion]")
    parser.add_argument("--user", default="local-user", help="Owner of the imported items")
    parser.add_argument(
        "--db",
        default=str(ROOT_DIR / "data" / "wardrobe.db"),
        help="SQLite database path",
    )
    args = parser.parse_args()

    csv_path = Path(os.path.expanduser(args.csv)).resolve()
    if not csv_path.exists():
        parser.error(f"CSV not found: {csv_path}")
    import_wardrobe_csv(csv_path, Path(os.path.expanduser(args.db)).resolve(), args.user)


if __name__ == "__main__":
    main()
