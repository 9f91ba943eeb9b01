"""lorekeeper domain models, re-exported for convenience.

    - knowledge.py  -- categories, field schemas, entries, extraction items,
                       duplicate groups and merge/import reports
    - pipeline.py   -- chunks, pipeline status, checkpoint, run outcome and
                       progress updates
"""

from __future__ import annotations

from lorekeeper.models.knowledge import (
    APPEND_SEPARATOR,
    CATEGORY_FIELDS,
    DEFAULT_CATEGORY,
    Category,
    DuplicateGroup,
    ExtractionItem,
    FieldSpec,
    ImportReport,
    KnowledgeEntry,
    MergeReport,
    MergeResult,
    create_empty_details,
    details_with_content,
    field_schema,
)
from lorekeeper.models.pipeline import (
    Chunk,
    PipelineCheckpoint,
    PipelineStatus,
    ProgressUpdate,
    RunOutcome,
)

__all__ = [
    "APPEND_SEPARATOR",
    "CATEGORY_FIELDS",
    "Category",
    "Chunk",
    "DEFAULT_CATEGORY",
    "DuplicateGroup",
    "ExtractionItem",
    "FieldSpec",
    "ImportReport",
    "KnowledgeEntry",
    "MergeReport",
    "MergeResult",
    "PipelineCheckpoint",
    "PipelineStatus",
    "ProgressUpdate",
    "RunOutcome",
    "create_empty_details",
    "details_with_content",
    "field_schema",
]
