"""Shared pytest fixtures for the lorekeeper test suite."""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from unittest.mock import AsyncMock, MagicMock

import pytest

from lorekeeper.interfaces.llm_provider import ILLMProvider
from lorekeeper.models.knowledge import Category, KnowledgeEntry, details_with_content
from lorekeeper.models.pipeline import Chunk
from lorekeeper.providers.store.memory_store import InMemoryKnowledgeStore

# ---------------------------------------------------------------------------
# Scripted text-understanding service
# ---------------------------------------------------------------------------

_CHUNK_MARKER = re.compile(r"CHUNK-(\d+)")


def item_reply(index: int) -> str:
    """The canned extraction reply for chunk *index*: one item titled ``Item <index>``."""
    return json.dumps(
        [
            {
                "category": "item",
                "title": f"Item {index}",
                "keywords": [f"k{index}"],
                "content": f"Content extracted from chunk {index}.",
            }
        ]
    )


class ScriptedLLM(ILLMProvider):
    """Fake provider that answers each chunk prompt from a script.

    Chunks built by :func:`make_chunks` carry a ``CHUNK-<n>`` marker; the
    provider finds it in the prompt and answers with :func:`item_reply`
    unless ``overrides[n]`` supplies a reply string, an exception to raise,
    or a list consumed one element per call.
    """

    def __init__(self, overrides: dict[int, object] | None = None) -> None:
        self.overrides: dict[int, object] = dict(overrides or {})
        self.calls: list[int] = []

    async def complete(self, prompt: str) -> str:
        match = _CHUNK_MARKER.search(prompt)
        assert match is not None, "prompt carries no chunk marker"
        index = int(match.group(1))
        self.calls.append(index)

        action = self.overrides.get(index)
        if isinstance(action, list):
            action = action.pop(0) if action else None
        if isinstance(action, BaseException):
            raise action
        if callable(action):
            return await action()
        if isinstance(action, str):
            return action
        return item_reply(index)

    def get_provider_name(self) -> str:
        return "scripted"

    def is_available(self) -> bool:
        return True


def make_chunks(count: int) -> list[Chunk]:
    return [
        Chunk(text=f"CHUNK-{i} The caravan crossed the salt flats at dusk.")
        for i in range(count)
    ]


def make_entry(
    title: str,
    category: Category = Category.CHARACTER,
    content: str = "",
    keywords: Iterable[str] = (),
) -> KnowledgeEntry:
    return KnowledgeEntry(
        category=category,
        title=title,
        keywords=list(keywords),
        details=details_with_content(category, content or f"About {title}."),
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def scripted_llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture
def mock_llm() -> MagicMock:
    """An ILLMProvider mock whose ``complete`` is an AsyncMock."""
    llm = MagicMock(spec=ILLMProvider)
    llm.complete = AsyncMock(return_value="[]")
    llm.get_provider_name.return_value = "mock"
    llm.is_available.return_value = True
    return llm


@pytest.fixture
def memory_store() -> InMemoryKnowledgeStore:
    return InMemoryKnowledgeStore()
