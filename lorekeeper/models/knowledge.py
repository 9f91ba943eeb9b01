"""Knowledge-base models: categories, entries, extraction items, duplicate groups.

Defines Pydantic v2 models for everything the extraction pipeline produces
and the merge engine consumes.  All models use frozen config to enforce
immutability; updates produce new instances via ``model_copy(update=...)``.

The category set is closed.  Each :class:`Category` has a fixed detail-field
schema in :data:`CATEGORY_FIELDS`; the mapping is exhaustive over the enum so
a new category cannot be added without declaring its fields.
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lorekeeper.utils.text_normalizer import dedupe_preserving_order


class Category(str, Enum):  # noqa: UP042
    """Closed set of knowledge categories for fiction manuscripts."""

    CHARACTER = "character profile"
    WORLD = "world setting"
    PLOT = "plot synopsis"
    CHAPTER = "chapter summary"
    FORESHADOWING = "subplot and foreshadowing"
    ITEM = "item"
    LOCATION = "location"
    TIMELINE = "timeline"
    MATERIAL = "general material"


DEFAULT_CATEGORY = Category.MATERIAL


class FieldSpec(NamedTuple):
    """One detail field of a category: storage key and display label."""

    key: str
    label: str


CATEGORY_FIELDS: dict[Category, tuple[FieldSpec, ...]] = {
    Category.CHARACTER: (
        FieldSpec("basicInfo", "Basic info"),
        FieldSpec("biography", "Biography"),
        FieldSpec("personality", "Personality"),
        FieldSpec("abilities", "Abilities"),
        FieldSpec("relationships", "Relationships"),
        FieldSpec("notes", "Notes"),
    ),
    Category.WORLD: (
        FieldSpec("overview", "Overview"),
        FieldSpec("history", "History"),
        FieldSpec("rules", "Rules"),
        FieldSpec("factions", "Factions"),
        FieldSpec("geography", "Geography"),
        FieldSpec("glossary", "Glossary"),
    ),
    Category.PLOT: (
        FieldSpec("summary", "Summary"),
        FieldSpec("conflict", "Core conflict"),
        FieldSpec("turningPoints", "Turning points"),
        FieldSpec("ending", "Ending"),
    ),
    Category.CHAPTER: (
        FieldSpec("chapterTitle", "Chapter title"),
        FieldSpec("timeline", "Timeline"),
        FieldSpec("events", "Main events"),
        FieldSpec("characters", "Characters involved"),
        FieldSpec("transition", "Transition"),
    ),
    Category.FORESHADOWING: (
        FieldSpec("description", "Description"),
        FieldSpec("location", "Planted in"),
        FieldSpec("revelation", "Expected reveal"),
        FieldSpec("clues", "Related clues"),
        FieldSpec("status", "Status"),
    ),
    Category.ITEM: (
        FieldSpec("appearance", "Appearance"),
        FieldSpec("origin", "Origin"),
        FieldSpec("abilities", "Abilities"),
        FieldSpec("owner", "Owner"),
        FieldSpec("significance", "Plot significance"),
    ),
    Category.LOCATION: (
        FieldSpec("description", "Description"),
        FieldSpec("atmosphere", "Atmosphere"),
        FieldSpec("history", "History"),
        FieldSpec("inhabitants", "Inhabitants"),
        FieldSpec("events", "Events"),
    ),
    Category.TIMELINE: (
        FieldSpec("date", "Date"),
        FieldSpec("event", "Event"),
        FieldSpec("characters", "Characters involved"),
        FieldSpec("impact", "Impact"),
        FieldSpec("chapter", "Chapter"),
    ),
    Category.MATERIAL: (
        FieldSpec("content", "Content"),
        FieldSpec("source", "Source"),
        FieldSpec("usage", "Usage"),
        FieldSpec("tags", "Tags"),
    ),
}

# Placed between existing and appended content in an entry's first field.
APPEND_SEPARATOR = "\n\n---\n\n"

FORESHADOWING_STATUS_UNREVEALED = "unrevealed"
FORESHADOWING_STATUS_REVEALED = "revealed"


def field_schema(category: Category) -> tuple[FieldSpec, ...]:
    """Return the ordered detail fields of *category*."""
    return CATEGORY_FIELDS[category]


def create_empty_details(category: Category) -> dict[str, str]:
    """Return a details mapping with every field of *category* present.

    All fields start empty except the foreshadowing ``status`` field, which
    starts as ``"unrevealed"``.
    """
    return {
        spec.key: FORESHADOWING_STATUS_UNREVEALED if spec.key == "status" else ""
        for spec in CATEGORY_FIELDS[category]
    }


def details_with_content(category: Category, content: str) -> dict[str, str]:
    """Return empty details for *category* with *content* in the first field."""
    details = create_empty_details(category)
    first_key = CATEGORY_FIELDS[category][0].key
    details[first_key] = content
    return details


# ---------------------------------------------------------------------------
# ExtractionItem: one validated candidate returned for a chunk.
# ---------------------------------------------------------------------------
class ExtractionItem(BaseModel):
    """A knowledge item extracted from one chunk.

    ``category`` has already been normalized; empty ``title`` or
    ``content`` is rejected at construction time.
    """

    model_config = ConfigDict(frozen=True)

    category: Category
    title: str
    keywords: list[str] = Field(default_factory=list)
    content: str

    @field_validator("title", "content")
    @classmethod
    def _require_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("keywords")
    @classmethod
    def _ordered_set(cls, value: list[str]) -> list[str]:
        return dedupe_preserving_order(v.strip() for v in value)


# ---------------------------------------------------------------------------
# KnowledgeEntry: owned by the store; consumed and produced here.
# ---------------------------------------------------------------------------
class KnowledgeEntry(BaseModel):
    """A stored knowledge-base entry."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    category: Category
    title: str
    keywords: list[str] = Field(default_factory=list)
    details: dict[str, str] = Field(default_factory=dict)

    def filled_fields(self) -> list[tuple[FieldSpec, str]]:
        """Return ``(field, value)`` pairs for non-empty details in schema order."""
        filled: list[tuple[FieldSpec, str]] = []
        for spec in CATEGORY_FIELDS[self.category]:
            value = self.details.get(spec.key, "")
            if value and value.strip():
                filled.append((spec, value))
        return filled

    def with_appended_content(self, content: str) -> KnowledgeEntry:
        """Return a copy with *content* appended to the first detail field."""
        first_key = CATEGORY_FIELDS[self.category][0].key
        existing = self.details.get(first_key, "")
        combined = f"{existing}{APPEND_SEPARATOR}{content}" if existing.strip() else content
        return self.model_copy(update={"details": {**self.details, first_key: combined}})


# ---------------------------------------------------------------------------
# DuplicateGroup: derived view, recomputed on every detection pass.
# ---------------------------------------------------------------------------
class DuplicateGroup(BaseModel):
    """Two or more entries sharing a category and canonical name."""

    model_config = ConfigDict(frozen=True)

    canonical_name: str
    category: Category
    entries: list[KnowledgeEntry] = Field(min_length=2)

    @property
    def size(self) -> int:
        return len(self.entries)


class MergeResult(BaseModel):
    """Outcome of merging one duplicate group in a batch."""

    model_config = ConfigDict(frozen=True)

    group: DuplicateGroup
    entry: KnowledgeEntry | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.entry is not None


class MergeReport(BaseModel):
    """Per-group results of :meth:`MergeEngine.merge_all`, in group order."""

    model_config = ConfigDict(frozen=True)

    results: list[MergeResult] = Field(default_factory=list)
    aborted: bool = False

    @property
    def succeeded(self) -> list[MergeResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> list[MergeResult]:
        return [r for r in self.results if not r.ok]


class ImportReport(BaseModel):
    """Entries created or appended to by the knowledge importer."""

    model_config = ConfigDict(frozen=True)

    created: list[KnowledgeEntry] = Field(default_factory=list)
    appended: list[KnowledgeEntry] = Field(default_factory=list)
