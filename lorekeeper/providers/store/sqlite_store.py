"""SQLite-backed knowledge store.

Persists knowledge entries to a local SQLite database (``data/knowledge.db``
by default).  Uses ``aiosqlite`` for async I/O; keywords and details are
stored as JSON text columns.  ``seq`` preserves insertion order so listings
are stable across restarts.
"""

from __future__ import annotations

import json
from pathlib import Path

import aiosqlite
import structlog

from lorekeeper.interfaces.knowledge_store import IKnowledgeStore
from lorekeeper.models.knowledge import Category, KnowledgeEntry
from lorekeeper.utils.errors import StoreError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/knowledge.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS entries (
    seq         INTEGER PRIMARY KEY AUTOINCREMENT,
    id          TEXT    NOT NULL UNIQUE,
    category    TEXT    NOT NULL,
    title       TEXT    NOT NULL,
    keywords    TEXT    NOT NULL DEFAULT '[]',
    details     TEXT    NOT NULL DEFAULT '{}',
    created_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    updated_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_entries_category ON entries(category);",
]

_INSERT_SQL = """\
INSERT INTO entries (id, category, title, keywords, details)
VALUES (?, ?, ?, ?, ?);
"""

_UPDATE_SQL = """\
UPDATE entries
SET category   = ?,
    title      = ?,
    keywords   = ?,
    details    = ?,
    updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')
WHERE id = ?;
"""

_SELECT_COLUMNS = "SELECT id, category, title, keywords, details FROM entries"


def _row_to_entry(row: aiosqlite.Row) -> KnowledgeEntry:
    return KnowledgeEntry(
        id=row["id"],
        category=Category(row["category"]),
        title=row["title"],
        keywords=json.loads(row["keywords"]),
        details=json.loads(row["details"]),
    )


class SQLiteKnowledgeStore(IKnowledgeStore):
    """SQLite-backed knowledge entry persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the entries table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("knowledge_db_initialized", path=str(self._db_path))

    async def list_entries(self, category: Category | None = None) -> list[KnowledgeEntry]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            if category is not None:
                cursor = await db.execute(
                    f"{_SELECT_COLUMNS} WHERE category = ? ORDER BY seq",
                    (category.value,),
                )
            else:
                cursor = await db.execute(f"{_SELECT_COLUMNS} ORDER BY seq")
            rows = await cursor.fetchall()
        return [_row_to_entry(r) for r in rows]

    async def get_entry(self, entry_id: str) -> KnowledgeEntry | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(f"{_SELECT_COLUMNS} WHERE id = ?", (entry_id,))
            row = await cursor.fetchone()
        return _row_to_entry(row) if row is not None else None

    async def add_entry(
        self,
        category: Category,
        title: str,
        keywords: list[str],
        details: dict[str, str],
    ) -> KnowledgeEntry:
        entry = KnowledgeEntry(
            category=category, title=title, keywords=list(keywords), details=dict(details)
        )
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                _INSERT_SQL,
                (
                    entry.id,
                    entry.category.value,
                    entry.title,
                    json.dumps(entry.keywords, ensure_ascii=False),
                    json.dumps(entry.details, ensure_ascii=False),
                ),
            )
            await db.commit()
        logger.info("entry_added", entry_id=entry.id, category=category.value, title=title)
        return entry

    async def update_entry(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                _UPDATE_SQL,
                (
                    entry.category.value,
                    entry.title,
                    json.dumps(entry.keywords, ensure_ascii=False),
                    json.dumps(entry.details, ensure_ascii=False),
                    entry.id,
                ),
            )
            await db.commit()
            updated = cursor.rowcount
        if updated == 0:
            raise StoreError(
                message=f"No entry with id {entry.id}",
                provider_name=self.get_provider_name(),
            )
        return entry

    async def delete_entry(self, entry_id: str) -> bool:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute("DELETE FROM entries WHERE id = ?", (entry_id,))
            await db.commit()
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("entry_deleted", entry_id=entry_id)
        return deleted

    async def append_to_entry(self, entry_id: str, content: str) -> KnowledgeEntry:
        entry = await self.get_entry(entry_id)
        if entry is None:
            raise StoreError(
                message=f"No entry with id {entry_id}",
                provider_name=self.get_provider_name(),
            )
        return await self.update_entry(entry.with_appended_content(content))

    async def clear(self) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute("DELETE FROM entries")
            await db.commit()
        logger.info("knowledge_db_cleared", path=str(self._db_path))

    def get_provider_name(self) -> str:
        return "sqlite"
