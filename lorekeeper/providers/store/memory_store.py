"""In-memory knowledge store.

Suitable for tests and one-shot CLI runs where nothing needs to outlive the
process.  Insertion order is preserved.
"""

from __future__ import annotations

import structlog

from lorekeeper.interfaces.knowledge_store import IKnowledgeStore
from lorekeeper.models.knowledge import Category, KnowledgeEntry
from lorekeeper.utils.errors import StoreError

logger = structlog.get_logger(logger_name=__name__)


class InMemoryKnowledgeStore(IKnowledgeStore):
    """Dict-backed :class:`IKnowledgeStore`."""

    def __init__(self, entries: list[KnowledgeEntry] | None = None) -> None:
        self._entries: dict[str, KnowledgeEntry] = {e.id: e for e in entries or []}

    # ------------------------------------------------------------------
    # IKnowledgeStore implementation
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        logger.debug("memory_store_initialized", entries=len(self._entries))

    async def list_entries(self, category: Category | None = None) -> list[KnowledgeEntry]:
        return [
            e for e in self._entries.values() if category is None or e.category == category
        ]

    async def get_entry(self, entry_id: str) -> KnowledgeEntry | None:
        return self._entries.get(entry_id)

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
        self._entries[entry.id] = entry
        logger.debug("entry_added", entry_id=entry.id, title=title)
        return entry

    async def update_entry(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        if entry.id not in self._entries:
            raise StoreError(
                message=f"No entry with id {entry.id}",
                provider_name=self.get_provider_name(),
            )
        self._entries[entry.id] = entry
        return entry

    async def delete_entry(self, entry_id: str) -> bool:
        removed = self._entries.pop(entry_id, None)
        if removed is not None:
            logger.debug("entry_deleted", entry_id=entry_id)
        return removed is not None

    async def append_to_entry(self, entry_id: str, content: str) -> KnowledgeEntry:
        entry = self._entries.get(entry_id)
        if entry is None:
            raise StoreError(
                message=f"No entry with id {entry_id}",
                provider_name=self.get_provider_name(),
            )
        updated = entry.with_appended_content(content)
        self._entries[entry_id] = updated
        return updated

    async def clear(self) -> None:
        self._entries.clear()

    def get_provider_name(self) -> str:
        return "memory"
