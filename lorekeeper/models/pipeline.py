"""Pipeline state models for the extraction pipeline.

Defines Pydantic v2 models for chunks, the pipeline status machine, the
resumable checkpoint and the final outcome of a run.  All models use frozen
config; the pipeline advances the checkpoint by creating new copies via
``model_copy(update={...})``, so any intermediate checkpoint can be handed to
the caller and serialized (``model_dump_json``) without worrying about later
mutation.

State machine::

    IDLE -> RUNNING -> PAUSED | COMPLETED | FAILED | CANCELLED
    PAUSED | FAILED -> RUNNING      (resume)
    PAUSED | FAILED -> IDLE         (restart, checkpoint discarded)
    COMPLETED | CANCELLED -> RUNNING (a fresh run)
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from lorekeeper.models.knowledge import ExtractionItem


class Chunk(BaseModel):
    """A bounded, ordered slice of source text, optionally tagged with its chapter."""

    model_config = ConfigDict(frozen=True)

    text: str
    chapter_label: str | None = None

    @field_validator("text")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("chunk text must not be empty")
        return value


class PipelineStatus(str, Enum):  # noqa: UP042
    """Lifecycle of an :class:`~lorekeeper.pipeline.ExtractionPipeline`."""

    IDLE = "IDLE"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class PipelineCheckpoint(BaseModel):
    """Minimal state needed to resume a paused or failed run exactly.

    ``results_so_far`` holds exactly the items extracted from
    ``chunks[:cursor]``.  The chunk list is frozen for the lifetime of the
    run: resuming never re-segments the source text.
    """

    model_config = ConfigDict(frozen=True)

    chunks: list[Chunk]
    cursor: int = Field(default=0, ge=0)
    results_so_far: list[ExtractionItem] = Field(default_factory=list)

    @model_validator(mode="after")
    def _cursor_in_range(self) -> PipelineCheckpoint:
        if self.cursor > len(self.chunks):
            raise ValueError(
                f"cursor {self.cursor} is past the end of {len(self.chunks)} chunks"
            )
        return self

    @property
    def total(self) -> int:
        return len(self.chunks)

    @property
    def is_complete(self) -> bool:
        return self.cursor >= len(self.chunks)

    def advance(self, items: list[ExtractionItem]) -> PipelineCheckpoint:
        """Return a checkpoint one chunk further on, with *items* appended."""
        return self.model_copy(
            update={
                "cursor": self.cursor + 1,
                "results_so_far": [*self.results_so_far, *items],
            }
        )


class RunOutcome(BaseModel):
    """Final status of one pass of the pipeline over its chunks.

    ``index`` is the chunk index the run stopped at (``None`` on
    completion).  ``checkpoint`` is present for PAUSED and FAILED runs only.
    ``items`` holds every item known at the end of the run, including the
    resumed prefix; for a cancelled run it still lists what was emitted.
    """

    model_config = ConfigDict(frozen=True)

    status: PipelineStatus
    index: int | None = None
    reason: str | None = None
    items: list[ExtractionItem] = Field(default_factory=list)
    checkpoint: PipelineCheckpoint | None = None

    @property
    def resumable(self) -> bool:
        return self.checkpoint is not None


class ProgressUpdate(BaseModel):
    """One progress report for an extraction run.

    ``cursor`` counts finished chunks, including a resumed prefix, and
    ``items`` is the running item total.  ``eta_seconds`` is filled in by
    :class:`~lorekeeper.pipeline.ProgressTracker` once it has timed at least
    one chunk of the current pass.
    """

    model_config = ConfigDict(frozen=True)

    run_id: str
    status: PipelineStatus
    cursor: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    items: int = Field(default=0, ge=0)
    message: str = ""
    eta_seconds: float | None = None

    @property
    def progress(self) -> float:
        """Completion percentage; an empty run is complete only once it has finished."""
        if self.total == 0:
            return 100.0 if self.status is PipelineStatus.COMPLETED else 0.0
        return min(100.0, self.cursor / self.total * 100.0)
