"""Knowledge store adapters."""

from lorekeeper.providers.store.memory_store import InMemoryKnowledgeStore
from lorekeeper.providers.store.sqlite_store import SQLiteKnowledgeStore

__all__ = ["InMemoryKnowledgeStore", "SQLiteKnowledgeStore"]
