"""Cooperative cancellation for the extraction and merge loops.

A :class:`CancelToken` is created by whoever drives a run (the CLI's SIGINT
handler, a test, a UI) and passed explicitly through every suspension point.
Two intents are distinguished:

- **pause**: stop at the next suspension point and keep a resumable
  checkpoint.
- **cancel**: stop and discard resumability.

:func:`run_cancellable` races an awaitable against the token so an in-flight
HTTP request is aborted as soon as the token fires, and
:func:`sleep_cancellable` makes rate-limit delays and retry backoff
interruptible.
"""

from __future__ import annotations

import asyncio
import contextlib
from enum import Enum
from typing import Awaitable, TypeVar

from lorekeeper.utils.errors import CancellationError

_T = TypeVar("_T")


class CancelIntent(str, Enum):  # noqa: UP042
    """Why a run was interrupted."""

    PAUSE = "pause"
    CANCEL = "cancel"


class CancelToken:
    """Shared, one-shot cancellation signal.

    The first request wins: once a pause has been requested, a later
    ``request_cancel()`` upgrades it to a cancel (a hard stop is always
    honoured), but a pause never downgrades a cancel.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._intent: CancelIntent | None = None

    def request_pause(self) -> None:
        if self._intent is None:
            self._intent = CancelIntent.PAUSE
        self._event.set()

    def request_cancel(self) -> None:
        self._intent = CancelIntent.CANCEL
        self._event.set()

    @property
    def is_set(self) -> bool:
        return self._event.is_set()

    @property
    def intent(self) -> CancelIntent | None:
        return self._intent

    async def wait(self) -> CancelIntent:
        await self._event.wait()
        assert self._intent is not None
        return self._intent

    def raise_if_set(self) -> None:
        """Raise :class:`CancellationError` if the token has fired."""
        if self._intent is not None:
            raise CancellationError(intent=self._intent.value)


async def run_cancellable(awaitable: Awaitable[_T], token: CancelToken | None) -> _T:
    """Await *awaitable*, aborting it if *token* fires first.

    Raises
    ------
    CancellationError
        If the token fired before the awaitable finished.  The underlying
        task is cancelled and awaited so no request is left dangling.
    """
    if token is None:
        return await awaitable
    if token.is_set:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        token.raise_if_set()

    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(token.wait())
    try:
        await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        raise
    finally:
        if not waiter.done():
            waiter.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await waiter

    # A completed request is returned even if the token fired in the same
    # tick; callers check the token again before their next request.
    if work.done():
        return work.result()

    work.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await work
    raise CancellationError(intent=token.intent.value if token.intent else "cancel")


async def sleep_cancellable(delay: float, token: CancelToken | None) -> bool:
    """Sleep for *delay* seconds; return ``True`` if *token* fired meanwhile."""
    if token is None:
        if delay > 0:
            await asyncio.sleep(delay)
        return False
    if token.is_set:
        return True
    if delay <= 0:
        return False
    try:
        await asyncio.wait_for(token.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return False
    return True
