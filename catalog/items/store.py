"""SQLite-backed storage for published catalog items.

Items are free-form records (camelCase keys, as produced by the editor or
by `EnrichedRecord.to_record()`). The store:
- Requires non-empty `type`, `title` and `href`
- Assigns `id` (uuid4), `createdAt` (UTC ISO 8601) and key `items/<id>.json`
- Trims tags and drops empty ones
- Lists newest first, each item carrying its `_key` for deletion
"""

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from catalog.utils.logger import LoggerManager

REQUIRED_FIELDS = ("type", "title", "href")
KEY_PREFIX = "items/"


class ItemValidationError(ValueError):
    """Item is missing a required field."""

    def __init__(self, missing: List[str]):
        super().__init__(f"Missing required fields ({','.join(REQUIRED_FIELDS)}): {', '.join(missing)}")
        self.missing = missing


def item_key(item_id: str) -> str:
    return f"{KEY_PREFIX}{item_id}.json"


def clean_tags(tags: Any) -> List[str]:
    if not isinstance(tags, list):
        return []
    return [str(t).strip() for t in tags if t is not None and str(t).strip()]


class ItemStore:
    """SQLite-backed storage for catalog items.

    Attributes:
        db_path: Path to SQLite database file
        _conn: SQLite connection (lazy-loaded)
    """

    def __init__(self, db_path: Path):
        """Initialize item store.

        Args:
            db_path: Path to SQLite database (created if not exists)
        """
        self.db_path = Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self.logger = LoggerManager.get_logger(__name__)
        self._ensure_schema()

    def _get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            # FastAPI runs sync endpoints in a worker thread pool
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        return self._conn

    def _ensure_schema(self) -> None:
        """Create tables if they don't exist."""
        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path) as f:
            schema = f.read()

        conn = self._get_connection()
        conn.executescript(schema)
        conn.commit()
        self.logger.info(
            "Item database schema initialized", extra={"db_path": str(self.db_path)}
        )

    def create(self, item: Dict[str, Any]) -> str:
        """Store a new item.

        Args:
            item: Item fields; any extra keys are kept as-is

        Returns:
            The new item id

        Raises:
            ItemValidationError: If type, title or href is missing or blank
        """
        missing = [
            f for f in REQUIRED_FIELDS
            if not isinstance(item.get(f), str) or not item[f].strip()
        ]
        if missing:
            raise ItemValidationError(missing)

        item_id = str(uuid.uuid4())
        created_at = datetime.now(timezone.utc).isoformat()
        key = item_key(item_id)

        stored = {k: v for k, v in item.items() if k != "_key"}
        stored.update(id=item_id, createdAt=created_at, tags=clean_tags(item.get("tags")))

        conn = self._get_connection()
        conn.execute(
            """
            INSERT INTO catalog_items (item_key, item_id, type, title, created_at, data)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (key, item_id, stored["type"], stored["title"], created_at, json.dumps(stored)),
        )
        conn.commit()

        self.logger.info("Created catalog item", extra={"item_id": item_id, "title": stored["title"]})
        return item_id

    def list_items(self) -> List[Dict[str, Any]]:
        """All items, newest first, each with its `_key`."""
        conn = self._get_connection()
        cursor = conn.execute(
            """
            SELECT item_key, data
            FROM catalog_items
            ORDER BY created_at DESC, rowid DESC
            """
        )

        items = []
        for key, data in cursor.fetchall():
            try:
                obj = json.loads(data)
            except ValueError:
                self.logger.warning("Skipping unreadable item", extra={"item_key": key})
                continue
            obj["_key"] = key
            items.append(obj)
        return items

    def get(self, item_id: str) -> Optional[Dict[str, Any]]:
        conn = self._get_connection()
        row = conn.execute(
            "SELECT item_key, data FROM catalog_items WHERE item_id = ?", (item_id,)
        ).fetchone()
        if not row:
            return None
        obj = json.loads(row[1])
        obj["_key"] = row[0]
        return obj

    def delete(self, key: Optional[str] = None, item_id: Optional[str] = None) -> bool:
        """Delete by key (preferred) or by id.

        Returns:
            True if an item was removed

        Raises:
            ValueError: If neither key nor item_id is given
        """
        if key and key.strip():
            target = key.strip()
        elif item_id and item_id.strip():
            target = item_key(item_id.strip())
        else:
            raise ValueError("Missing key or id")

        conn = self._get_connection()
        cursor = conn.execute("DELETE FROM catalog_items WHERE item_key = ?", (target,))
        conn.commit()

        deleted = cursor.rowcount > 0
        self.logger.info("Deleted catalog item", extra={"item_key": target, "deleted": deleted})
        return deleted

    def close(self) -> None:
        """Close database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
