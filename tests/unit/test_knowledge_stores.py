"""Unit tests for the SQLite and in-memory knowledge stores.

Both implementations run the same contract tests.  The SQLite store uses a
temp file to avoid polluting the real data directory.
"""

from __future__ import annotations

import os
import tempfile

import pytest

from lorekeeper.interfaces.knowledge_store import APPEND_SEPARATOR, IKnowledgeStore
from lorekeeper.models.knowledge import Category, details_with_content
from lorekeeper.providers.store.memory_store import InMemoryKnowledgeStore
from lorekeeper.providers.store.sqlite_store import SQLiteKnowledgeStore
from lorekeeper.utils.errors import StoreError
from tests.conftest import make_entry


@pytest.fixture(params=["sqlite", "memory"])
async def store(request):
    """Yield an initialized store of each kind."""
    if request.param == "memory":
        s = InMemoryKnowledgeStore()
        await s.initialize()
        yield s
        return

    tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    tmp.close()
    s = SQLiteKnowledgeStore(db_path=tmp.name)
    await s.initialize()
    yield s
    os.unlink(tmp.name)


async def _add(store: IKnowledgeStore, title: str, category: Category = Category.CHARACTER, content: str = "About."):
    return await store.add_entry(
        category=category,
        title=title,
        keywords=["k1", "k2"],
        details=details_with_content(category, content),
    )


class TestKnowledgeStoreContract:
    @pytest.mark.asyncio
    async def test_add_and_get(self, store: IKnowledgeStore) -> None:
        entry = await _add(store, "Aria")

        fetched = await store.get_entry(entry.id)

        assert fetched == entry
        assert fetched is not None and fetched.keywords == ["k1", "k2"]

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, store: IKnowledgeStore) -> None:
        assert await store.get_entry("missing") is None

    @pytest.mark.asyncio
    async def test_list_preserves_insertion_order(self, store: IKnowledgeStore) -> None:
        for title in ("Cael", "Aria", "Borin"):
            await _add(store, title)

        assert [e.title for e in await store.list_entries()] == ["Cael", "Aria", "Borin"]

    @pytest.mark.asyncio
    async def test_list_filters_by_category(self, store: IKnowledgeStore) -> None:
        await _add(store, "Aria")
        await _add(store, "Saltmere", category=Category.LOCATION)

        locations = await store.list_entries(Category.LOCATION)

        assert [e.title for e in locations] == ["Saltmere"]

    @pytest.mark.asyncio
    async def test_update(self, store: IKnowledgeStore) -> None:
        entry = await _add(store, "Aria")

        await store.update_entry(entry.model_copy(update={"title": "Aria of Saltmere"}))

        fetched = await store.get_entry(entry.id)
        assert fetched is not None and fetched.title == "Aria of Saltmere"

    @pytest.mark.asyncio
    async def test_update_missing_raises(self, store: IKnowledgeStore) -> None:
        with pytest.raises(StoreError):
            await store.update_entry(make_entry("Ghost"))

    @pytest.mark.asyncio
    async def test_delete(self, store: IKnowledgeStore) -> None:
        entry = await _add(store, "Aria")

        assert await store.delete_entry(entry.id) is True
        assert await store.delete_entry(entry.id) is False
        assert await store.list_entries() == []

    @pytest.mark.asyncio
    async def test_append_to_non_empty_field(self, store: IKnowledgeStore) -> None:
        entry = await _add(store, "Aria", content="First.")

        updated = await store.append_to_entry(entry.id, "Second.")

        assert updated.details["basicInfo"] == f"First.{APPEND_SEPARATOR}Second."
        fetched = await store.get_entry(entry.id)
        assert fetched == updated

    @pytest.mark.asyncio
    async def test_append_to_empty_field_replaces(self, store: IKnowledgeStore) -> None:
        entry = await store.add_entry(
            category=Category.WORLD, title="The Veil", keywords=[], details={}
        )

        updated = await store.append_to_entry(entry.id, "A wall of mist.")

        assert updated.details["overview"] == "A wall of mist."

    @pytest.mark.asyncio
    async def test_append_missing_raises(self, store: IKnowledgeStore) -> None:
        with pytest.raises(StoreError):
            await store.append_to_entry("missing", "text")

    @pytest.mark.asyncio
    async def test_clear(self, store: IKnowledgeStore) -> None:
        await _add(store, "Aria")
        await _add(store, "Borin")

        await store.clear()

        assert await store.list_entries() == []

    @pytest.mark.asyncio
    async def test_unicode_round_trip(self, store: IKnowledgeStore) -> None:
        entry = await store.add_entry(
            category=Category.CHARACTER,
            title="林萧",
            keywords=["剑客", "少年"],
            details=details_with_content(Category.CHARACTER, "出身寒门的少年剑客。"),
        )

        fetched = await store.get_entry(entry.id)

        assert fetched == entry


class TestSQLitePersistence:
    @pytest.mark.asyncio
    async def test_entries_survive_a_new_store_instance(self, tmp_path) -> None:
        db_path = tmp_path / "nested" / "knowledge.db"
        first = SQLiteKnowledgeStore(db_path)
        await first.initialize()
        entry = await _add(first, "Aria")

        second = SQLiteKnowledgeStore(db_path)
        await second.initialize()

        assert await second.list_entries() == [entry]
        assert second.get_provider_name() == "sqlite"

    def test_memory_store_name(self) -> None:
        assert InMemoryKnowledgeStore().get_provider_name() == "memory"
