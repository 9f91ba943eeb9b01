"""Turns extraction items into knowledge-base entries.

Items from a long manuscript repeat: the same character is described in
several chunks.  :func:`consolidate_items` folds items sharing
``(category, title)`` together before import; :class:`KnowledgeImporter`
then creates one entry per consolidated item, or, when asked, appends to an
existing entry about the same subject.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from lorekeeper.interfaces.knowledge_store import IKnowledgeStore
from lorekeeper.models.knowledge import (
    Category,
    ExtractionItem,
    ImportReport,
    KnowledgeEntry,
    details_with_content,
)
from lorekeeper.utils.text_normalizer import canonicalize_title, dedupe_preserving_order, fuzzy_match

logger = structlog.get_logger(logger_name=__name__)


def consolidate_items(items: Iterable[ExtractionItem]) -> list[ExtractionItem]:
    """Merge items with the same category and title.

    Contents are joined by a blank line and keywords unioned, both in
    first-seen order.  Output order follows each key's first occurrence.
    """
    merged: dict[tuple[Category, str], ExtractionItem] = {}
    for item in items:
        key = (item.category, item.title)
        existing = merged.get(key)
        if existing is None:
            merged[key] = item
            continue
        merged[key] = existing.model_copy(
            update={
                "content": f"{existing.content}\n\n{item.content}",
                "keywords": dedupe_preserving_order([*existing.keywords, *item.keywords]),
            }
        )
    return list(merged.values())


class KnowledgeImporter:
    """Write extraction items into a knowledge store.

    Parameters
    ----------
    store:
        Destination store.
    match_threshold:
        Minimum rapidfuzz similarity (0.0--1.0) between canonical titles for
        an item to be appended to an existing entry.
    """

    def __init__(self, store: IKnowledgeStore, match_threshold: float = 0.92) -> None:
        self._store = store
        self._match_threshold = match_threshold

    async def import_items(
        self,
        items: Iterable[ExtractionItem],
        append_existing: bool = False,
    ) -> ImportReport:
        """Import *items*, consolidating them first.

        With ``append_existing`` each item is appended to an existing entry
        of the same category whose canonical title matches exactly or
        fuzzily; unmatched items always become new entries.
        """
        consolidated = consolidate_items(items)
        existing: list[KnowledgeEntry] = []
        if append_existing:
            existing = await self._store.list_entries()

        created: list[KnowledgeEntry] = []
        appended: list[KnowledgeEntry] = []

        for item in consolidated:
            target = self._find_target(item, existing) if append_existing else None
            if target is not None:
                updated = await self._store.append_to_entry(target.id, item.content)
                appended.append(updated)
                continue

            entry = await self._store.add_entry(
                category=item.category,
                title=item.title,
                keywords=item.keywords,
                details=details_with_content(item.category, item.content),
            )
            created.append(entry)

        logger.info(
            "knowledge_import_complete",
            items=len(consolidated),
            created=len(created),
            appended=len(appended),
        )
        return ImportReport(created=created, appended=appended)

    def _find_target(
        self, item: ExtractionItem, entries: list[KnowledgeEntry]
    ) -> KnowledgeEntry | None:
        candidates = [e for e in entries if e.category == item.category]
        if not candidates:
            return None

        name = canonicalize_title(item.title)
        for entry in candidates:
            if canonicalize_title(entry.title) == name:
                return entry

        names = [canonicalize_title(e.title) for e in candidates]
        match = fuzzy_match(name, names, threshold=self._match_threshold)
        if match is None:
            return None
        matched_name, score = match
        logger.debug("fuzzy_title_match", title=item.title, matched=matched_name, score=score)
        return candidates[names.index(matched_name)]
