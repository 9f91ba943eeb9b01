"""Abstract base class for knowledge-base storage.

The knowledge base is an external collaborator: the extraction pipeline
never touches it, while the importer and the merge engine receive a store
explicitly.  There is no global store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from lorekeeper.models.knowledge import APPEND_SEPARATOR, Category, KnowledgeEntry

__all__ = ["APPEND_SEPARATOR", "IKnowledgeStore"]


# Concrete implementations: SQLiteKnowledgeStore, InMemoryKnowledgeStore
# Located in: lorekeeper/providers/store/
class IKnowledgeStore(ABC):
    """Contract for persisting :class:`KnowledgeEntry` records."""

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the backing storage (create tables, open files)."""

    @abstractmethod
    async def list_entries(self, category: Category | None = None) -> list[KnowledgeEntry]:
        """Return entries in insertion order, optionally filtered by *category*."""

    @abstractmethod
    async def get_entry(self, entry_id: str) -> KnowledgeEntry | None:
        """Return the entry with *entry_id*, or ``None``."""

    @abstractmethod
    async def add_entry(
        self,
        category: Category,
        title: str,
        keywords: list[str],
        details: dict[str, str],
    ) -> KnowledgeEntry:
        """Create and return a new entry with a fresh id."""

    @abstractmethod
    async def update_entry(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        """Replace the stored entry with the same id.

        Raises
        ------
        lorekeeper.utils.errors.StoreError
            If no entry with that id exists.
        """

    @abstractmethod
    async def delete_entry(self, entry_id: str) -> bool:
        """Delete an entry; return ``True`` if it existed."""

    @abstractmethod
    async def append_to_entry(self, entry_id: str, content: str) -> KnowledgeEntry:
        """Append *content* to the entry's first detail field.

        Existing non-empty content and the new content are joined by
        :data:`APPEND_SEPARATOR`.

        Raises
        ------
        lorekeeper.utils.errors.StoreError
            If no entry with that id exists.
        """

    @abstractmethod
    async def clear(self) -> None:
        """Delete every entry."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"sqlite"``."""
