"""Groups knowledge entries that describe the same subject.

Repeated imports of one manuscript produce entries such as ``"Aria"``,
``"Aria (2)"`` and ``"Aria — the healer"``.  The detector keys every entry
on ``(category, canonical title)`` and reports each key shared by two or
more entries.  Detection is a pure function of the entry list; groups are
never persisted.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from lorekeeper.models.knowledge import Category, DuplicateGroup, KnowledgeEntry
from lorekeeper.utils.text_normalizer import canonicalize_title

logger = structlog.get_logger(logger_name=__name__)


def canonicalize(title: str) -> str:
    """Return the canonical name used to group *title*; idempotent."""
    return canonicalize_title(title)


class DuplicateDetector:
    """Find duplicate groups in a collection of knowledge entries.

    Parameters
    ----------
    min_name_length:
        Entries whose canonical name is shorter than this are never grouped;
        one-character names collide far too easily.
    """

    def __init__(self, min_name_length: int = 2) -> None:
        self._min_name_length = min_name_length

    def find_duplicates(self, entries: Iterable[KnowledgeEntry]) -> list[DuplicateGroup]:
        """Return duplicate groups, largest first.

        Groups of equal size keep the order in which their key was first
        seen; entries inside a group keep input order.
        """
        buckets: dict[tuple[Category, str], list[KnowledgeEntry]] = {}
        for entry in entries:
            name = canonicalize(entry.title)
            if len(name) < self._min_name_length:
                continue
            buckets.setdefault((entry.category, name), []).append(entry)

        groups = [
            DuplicateGroup(canonical_name=name, category=category, entries=members)
            for (category, name), members in buckets.items()
            if len(members) > 1
        ]
        # sorted() is stable, so ties stay in first-seen order.
        groups = sorted(groups, key=lambda g: g.size, reverse=True)
        logger.debug(
            "duplicates_found",
            groups=len(groups),
            entries=sum(g.size for g in groups),
        )
        return groups
