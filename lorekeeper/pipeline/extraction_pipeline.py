"""Resumable, cancellable knowledge extraction over an ordered chunk list.

One :class:`ExtractionPipeline` drives one run at a time, strictly
sequentially: for each chunk it builds a prompt, calls the
text-understanding service through the retrying caller, parses the reply
into validated :class:`ExtractionItem` objects and yields them.

State machine::

    IDLE -> RUNNING -> PAUSED | COMPLETED | FAILED | CANCELLED
    PAUSED | FAILED -> RUNNING        resume()
    PAUSED | FAILED -> IDLE           restart(), checkpoint discarded
    IDLE | COMPLETED | CANCELLED -> RUNNING   run()

Illegal transitions raise :class:`PipelineError`.

The pipeline owns a :class:`PipelineCheckpoint` while running.  After each
chunk the checkpoint is advanced *before* that chunk's items are yielded, so
a pause requested by the consumer while it handles those items resumes at
the next chunk.  PAUSED and FAILED runs hand the checkpoint back to the
caller; CANCELLED runs discard it.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from uuid import uuid4

import structlog

from lorekeeper.interfaces.llm_provider import ILLMProvider
from lorekeeper.models.knowledge import Category, ExtractionItem
from lorekeeper.models.pipeline import (
    Chunk,
    PipelineCheckpoint,
    PipelineStatus,
    ProgressUpdate,
    RunOutcome,
)
from lorekeeper.pipeline.progress_tracker import ProgressTracker
from lorekeeper.services.category_normalizer import CategoryNormalizer
from lorekeeper.services.response_parser import parse_extraction_reply
from lorekeeper.utils.cancellation import CancelIntent, CancelToken, sleep_cancellable
from lorekeeper.utils.errors import (
    CancellationError,
    LoreKeeperError,
    MalformedResponseError,
    PipelineError,
)
from lorekeeper.utils.retry import RetryPolicy, call_with_retry

logger = structlog.get_logger(logger_name=__name__)

_CATEGORY_GUIDE: dict[Category, str] = {
    Category.CHARACTER: (
        "name, appearance, personality, background, relationships, abilities, life events"
    ),
    Category.WORLD: (
        "world background, history, rule systems, factions, geography, special settings, terms"
    ),
    Category.PLOT: "main storyline, core conflict, major turning points (overall direction)",
    Category.CHAPTER: "the concrete events, scenes and developments of the current chapter",
    Category.FORESHADOWING: "hints, foreshadowing, unsolved mysteries, latent clues",
    Category.ITEM: "detailed settings of important props, weapons, tokens",
    Category.LOCATION: "detailed descriptions of important places",
    Category.TIMELINE: "events on the story's timeline",
    Category.MATERIAL: "inspiration, reference material, snippets for later use",
}


def build_extraction_prompt(text: str, chapter_label: str | None = None) -> str:
    """Build the extraction request for one passage.

    Parameters
    ----------
    text:
        The passage to analyse.
    chapter_label:
        Heading of the chapter the passage belongs to; added as a hint.
    """
    guide = "\n".join(
        f"{i}. {category.value}: {_CATEGORY_GUIDE[category]}"
        for i, category in enumerate(Category, start=1)
    )
    allowed = "|".join(category.value for category in Category)
    chapter_hint = f"\nCurrent chapter: {chapter_label}" if chapter_label else ""
    return (
        "You are a professional fiction analyst. Carefully analyse the following "
        "passage of a novel and extract its information in depth.\n"
        "\n"
        "Categories (use only these):\n"
        f"{guide}\n"
        "\n"
        "Requirements:\n"
        "- Describe every item in as much detail as possible; the content field "
        "should be at least 100 characters.\n"
        "- Keywords should include names, places and terms useful for later lookup.\n"
        "\n"
        "Return a JSON array: "
        f'[{{"category":"{allowed}","title":"name","keywords":["keyword1","keyword2"],'
        '"content":"detailed description"}]\n'
        "Return only the JSON array and nothing else. If there is nothing to "
        "extract, return an empty array [].\n"
        f"{chapter_hint}\n"
        "Passage:\n"
        f"{text}"
    )


class PipelineRun:
    """Async iterator over the items of one pipeline pass.

    Finite and not restartable.  :attr:`outcome` is set once the iterator is
    exhausted; :meth:`collect` drains it and returns the outcome.

    A consumer that stops iterating early must close the run, otherwise the
    pipeline stays RUNNING until the iterator is garbage-collected.  Use it
    as an async context manager to close it on exit::

        async with pipeline.run(chunks) as run:
            async for item in run:
                ...
    """

    def __init__(self, pipeline: ExtractionPipeline, cancel_token: CancelToken | None) -> None:
        self.outcome: RunOutcome | None = None
        self._pipeline = pipeline
        self._items = pipeline._drive(self, cancel_token)

    def __aiter__(self) -> PipelineRun:
        return self

    async def __anext__(self) -> ExtractionItem:
        return await self._items.__anext__()

    async def __aenter__(self) -> PipelineRun:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def collect(self) -> RunOutcome:
        """Consume the remaining items and return the final :class:`RunOutcome`."""
        async for _ in self:
            pass
        assert self.outcome is not None
        return self.outcome

    async def aclose(self) -> None:
        """Stop early; an unfinished pass is recorded as paused at its cursor."""
        await self._items.aclose()
        # A generator closed before its first step never ran its handlers.
        if self.outcome is None and self._pipeline.status is PipelineStatus.RUNNING:
            checkpoint = self._pipeline.checkpoint
            assert checkpoint is not None
            self._pipeline._settle(
                self,
                PipelineStatus.PAUSED,
                index=checkpoint.cursor,
                reason="Run closed before completion",
            )


class ExtractionPipeline:
    """Sequential, checkpointed extraction of knowledge items from chunks.

    Parameters
    ----------
    llm_provider:
        The text-understanding service.
    normalizer:
        Maps reply category labels onto :class:`Category`.
    retry_policy:
        Attempt budget and backoff for each chunk's request.
    request_delay:
        Seconds to wait between chunks (not after the last one).
    progress_tracker:
        Optional tracker notified after every chunk and at the end of a run.
    run_id:
        Key for progress updates; a random id by default.
    """

    def __init__(
        self,
        llm_provider: ILLMProvider,
        normalizer: CategoryNormalizer | None = None,
        retry_policy: RetryPolicy | None = None,
        request_delay: float = 0.5,
        progress_tracker: ProgressTracker | None = None,
        run_id: str | None = None,
    ) -> None:
        self._llm = llm_provider
        self._normalizer = normalizer or CategoryNormalizer()
        self._retry_policy = retry_policy or RetryPolicy()
        self._request_delay = request_delay
        self._progress = progress_tracker
        self._run_id = run_id or uuid4().hex
        self._status = PipelineStatus.IDLE
        self._checkpoint: PipelineCheckpoint | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def status(self) -> PipelineStatus:
        return self._status

    @property
    def checkpoint(self) -> PipelineCheckpoint | None:
        """The live or resumable checkpoint; ``None`` when there is nothing to resume."""
        return self._checkpoint

    @property
    def run_id(self) -> str:
        return self._run_id

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def run(
        self,
        chunks: Sequence[Chunk],
        start_index: int = 0,
        cancel_token: CancelToken | None = None,
    ) -> PipelineRun:
        """Start a fresh pass over *chunks* beginning at *start_index*.

        Raises
        ------
        PipelineError
            If a run is in progress or a paused/failed run awaits
            :meth:`resume` or :meth:`restart`.
        ValueError
            If *start_index* is outside ``[0, len(chunks)]``.
        """
        if self._status not in (
            PipelineStatus.IDLE,
            PipelineStatus.COMPLETED,
            PipelineStatus.CANCELLED,
        ):
            raise PipelineError(
                f"Cannot start a new run while {self._status.value}; "
                "resume() or restart() first"
            )
        if not 0 <= start_index <= len(chunks):
            raise ValueError(f"start_index {start_index} outside [0, {len(chunks)}]")

        return self._start(PipelineCheckpoint(chunks=list(chunks), cursor=start_index), cancel_token)

    def resume(
        self,
        cancel_token: CancelToken | None = None,
        checkpoint: PipelineCheckpoint | None = None,
    ) -> PipelineRun:
        """Continue from the held checkpoint, or adopt a persisted *checkpoint*.

        The chunk list is reused as-is and ``results_so_far`` becomes the
        prefix of the run's results.

        Raises
        ------
        PipelineError
            If a run is in progress, or there is nothing to resume.
        """
        if self._status is PipelineStatus.RUNNING:
            raise PipelineError("Cannot resume while a run is in progress")
        if checkpoint is None:
            if self._status not in (PipelineStatus.PAUSED, PipelineStatus.FAILED):
                raise PipelineError(f"Nothing to resume from {self._status.value}")
            checkpoint = self._checkpoint
            assert checkpoint is not None
        logger.info(
            "extraction_resume",
            run_id=self._run_id,
            cursor=checkpoint.cursor,
            total=checkpoint.total,
            prefix_items=len(checkpoint.results_so_far),
        )
        return self._start(checkpoint, cancel_token)

    def restart(self) -> None:
        """Discard a paused or failed run's checkpoint and return to IDLE.

        Raises
        ------
        PipelineError
            Unless the pipeline is PAUSED or FAILED.
        """
        if self._status not in (PipelineStatus.PAUSED, PipelineStatus.FAILED):
            raise PipelineError(f"Cannot restart from {self._status.value}")
        self._checkpoint = None
        self._status = PipelineStatus.IDLE
        logger.info("extraction_restart", run_id=self._run_id)

    def _start(
        self, checkpoint: PipelineCheckpoint, cancel_token: CancelToken | None
    ) -> PipelineRun:
        self._checkpoint = checkpoint
        self._status = PipelineStatus.RUNNING
        return PipelineRun(self, cancel_token)

    # ------------------------------------------------------------------
    # One-shot analysis
    # ------------------------------------------------------------------

    async def analyze_text(
        self, text: str, cancel_token: CancelToken | None = None
    ) -> list[ExtractionItem]:
        """Extract items from one short passage, without segmentation or checkpoints.

        Independent of the run state machine.  A malformed reply yields
        ``[]``; service errors propagate.
        """
        if not text.strip():
            return []
        return await self._extract(build_extraction_prompt(text.strip()), None, cancel_token)

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    async def _drive(
        self, run: PipelineRun, cancel_token: CancelToken | None
    ) -> AsyncIterator[ExtractionItem]:
        assert self._checkpoint is not None
        checkpoint = self._checkpoint
        logger.info(
            "extraction_start",
            run_id=self._run_id,
            cursor=checkpoint.cursor,
            total=checkpoint.total,
        )

        try:
            await self._report(
                checkpoint,
                PipelineStatus.RUNNING,
                f"Starting at chunk {checkpoint.cursor + 1} of {checkpoint.total}",
            )
            while not checkpoint.is_complete:
                index = checkpoint.cursor

                if cancel_token is not None and cancel_token.intent is not None:
                    await self._stop(run, cancel_token.intent, index)
                    return

                chunk = checkpoint.chunks[index]
                prompt = build_extraction_prompt(chunk.text, chunk.chapter_label)
                try:
                    items = await self._extract(prompt, index, cancel_token)
                except CancellationError as exc:
                    await self._stop(run, CancelIntent(exc.intent), index)
                    return
                except LoreKeeperError as exc:
                    logger.error(
                        "chunk_failed",
                        run_id=self._run_id,
                        chunk_index=index,
                        error=str(exc),
                    )
                    await self._finish(
                        run,
                        PipelineStatus.FAILED,
                        index=index,
                        reason=f"Chunk {index + 1} of {checkpoint.total} failed: {exc}",
                    )
                    return

                checkpoint = checkpoint.advance(items)
                self._checkpoint = checkpoint
                await self._report(
                    checkpoint,
                    PipelineStatus.RUNNING,
                    f"Processed chunk {checkpoint.cursor} of {checkpoint.total}",
                )

                for item in items:
                    yield item

                if not checkpoint.is_complete:
                    # A token fired during the delay is handled at the loop top.
                    await sleep_cancellable(self._request_delay, cancel_token)

            await self._finish(run, PipelineStatus.COMPLETED)
        except (GeneratorExit, asyncio.CancelledError):
            if self._status is PipelineStatus.RUNNING:
                self._settle(
                    run,
                    PipelineStatus.PAUSED,
                    index=self._checkpoint.cursor,
                    reason="Run closed before completion",
                )
            raise
        except Exception as exc:
            if self._status is PipelineStatus.RUNNING:
                logger.exception("extraction_crashed", run_id=self._run_id)
                self._settle(
                    run,
                    PipelineStatus.FAILED,
                    index=self._checkpoint.cursor,
                    reason=f"Unexpected error: {exc}",
                )
            raise

    async def _extract(
        self, prompt: str, index: int | None, cancel_token: CancelToken | None
    ) -> list[ExtractionItem]:
        # A bad envelope from the provider and an unparseable reply body are
        # both local to this chunk: it contributes no items.
        try:
            reply = await call_with_retry(
                lambda: self._llm.complete(prompt),
                self._retry_policy,
                cancel_token,
                chunk_index=index,
            )
            items = parse_extraction_reply(reply, self._normalizer, chunk_index=index)
        except MalformedResponseError as exc:
            logger.warning(
                "malformed_reply",
                run_id=self._run_id,
                chunk_index=index,
                error=str(exc),
            )
            return []
        logger.info(
            "chunk_extracted",
            run_id=self._run_id,
            chunk_index=index,
            items=len(items),
        )
        return items

    # ------------------------------------------------------------------
    # Outcome helpers
    # ------------------------------------------------------------------

    async def _stop(self, run: PipelineRun, intent: CancelIntent, index: int) -> None:
        if intent is CancelIntent.PAUSE:
            await self._finish(run, PipelineStatus.PAUSED, index=index, reason="Paused on request")
        else:
            await self._finish(
                run, PipelineStatus.CANCELLED, index=index, reason="Cancelled on request"
            )

    async def _finish(
        self,
        run: PipelineRun,
        status: PipelineStatus,
        index: int | None = None,
        reason: str | None = None,
    ) -> None:
        checkpoint = self._checkpoint
        assert checkpoint is not None
        outcome = self._settle(run, status, index=index, reason=reason)
        logger.info(
            "extraction_finished",
            run_id=self._run_id,
            status=status.value,
            index=index,
            items=len(outcome.items),
            reason=reason,
        )
        await self._report(checkpoint, status, reason or status.value.lower())

    def _settle(
        self,
        run: PipelineRun,
        status: PipelineStatus,
        index: int | None = None,
        reason: str | None = None,
    ) -> RunOutcome:
        assert self._checkpoint is not None
        checkpoint = self._checkpoint
        resumable = status in (PipelineStatus.PAUSED, PipelineStatus.FAILED)
        outcome = RunOutcome(
            status=status,
            index=index,
            reason=reason,
            items=list(checkpoint.results_so_far),
            checkpoint=checkpoint if resumable else None,
        )
        self._status = status
        self._checkpoint = checkpoint if resumable else None
        run.outcome = outcome
        return outcome

    async def _report(
        self, checkpoint: PipelineCheckpoint, status: PipelineStatus, message: str
    ) -> None:
        if self._progress is None:
            return
        await self._progress.update(
            ProgressUpdate(
                run_id=self._run_id,
                status=status,
                cursor=checkpoint.cursor,
                total=checkpoint.total,
                items=len(checkpoint.results_so_far),
                message=message,
            )
        )
