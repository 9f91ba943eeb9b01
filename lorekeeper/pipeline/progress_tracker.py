"""Extraction progress tracking with per-pass timing and listener callbacks.

The pipeline reports a :class:`ProgressUpdate` when a pass starts, after
every chunk, and when the pass settles.  The tracker keeps the latest update
per run, estimates the time left from the chunks finished so far in the
current pass, and hands the enriched update to every listener registered
for that run::

    ExtractionPipeline --update()--> ProgressTracker --callback(update)--> CLI progress line
                                                     --callback(update)--> (any other listener)

A resumed pass starts a fresh clock at its checkpoint cursor, so chunks
finished in an earlier pass never skew the estimate.  Listener errors are
logged and do not reach the pipeline or the other listeners.  Sync and async
callbacks are both supported.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from lorekeeper.models.pipeline import PipelineStatus, ProgressUpdate
from lorekeeper.utils.logging import get_logger


@dataclass
class _PassClock:
    started_at: float
    start_cursor: int


class ProgressTracker:
    """Keeps the latest :class:`ProgressUpdate` per run and notifies listeners.

    Parameters
    ----------
    clock:
        Monotonic time source used for the time-left estimate.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._latest: dict[str, ProgressUpdate] = {}
        self._passes: dict[str, _PassClock] = {}
        self._listeners: dict[str, list[Callable]] = {}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def update(self, update: ProgressUpdate) -> ProgressUpdate:
        """Record *update*, add a time-left estimate and notify listeners.

        Returns the update as stored, which is what listeners receive.
        """
        timed = self._estimate(update)
        self._latest[timed.run_id] = timed

        self._logger.debug(
            "progress_update",
            run_id=timed.run_id,
            status=timed.status.value,
            cursor=timed.cursor,
            total=timed.total,
            items=timed.items,
            eta_seconds=None if timed.eta_seconds is None else round(timed.eta_seconds, 1),
        )

        for callback in list(self._listeners.get(timed.run_id, [])):
            try:
                result = callback(timed)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    run_id=timed.run_id,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
        return timed

    def register_listener(self, run_id: str, callback: Callable) -> None:
        """Call *callback(update)* on every update for *run_id*; duplicates are ignored."""
        listeners = self._listeners.setdefault(run_id, [])
        if callback not in listeners:
            listeners.append(callback)

    def unregister_listener(self, run_id: str, callback: Callable) -> None:
        listeners = self._listeners.get(run_id, [])
        if callback in listeners:
            listeners.remove(callback)

    def get_status(self, run_id: str) -> ProgressUpdate:
        """Latest update for *run_id*; an IDLE placeholder for unknown runs."""
        return self._latest.get(run_id) or ProgressUpdate(
            run_id=run_id, status=PipelineStatus.IDLE
        )

    def _estimate(self, update: ProgressUpdate) -> ProgressUpdate:
        if update.status is not PipelineStatus.RUNNING:
            self._passes.pop(update.run_id, None)
            return update

        now = self._clock()
        clock = self._passes.get(update.run_id)
        if clock is None:
            self._passes[update.run_id] = _PassClock(started_at=now, start_cursor=update.cursor)
            return update

        finished = update.cursor - clock.start_cursor
        if finished <= 0:
            return update
        per_chunk = (now - clock.started_at) / finished
        remaining = update.total - update.cursor
        return update.model_copy(update={"eta_seconds": per_chunk * remaining})
