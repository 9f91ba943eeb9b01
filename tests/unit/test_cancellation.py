"""Unit tests for CancelToken, run_cancellable and sleep_cancellable."""

from __future__ import annotations

import asyncio

import pytest

from lorekeeper.utils.cancellation import (
    CancelIntent,
    CancelToken,
    run_cancellable,
    sleep_cancellable,
)
from lorekeeper.utils.errors import CancellationError


class TestCancelToken:
    def test_starts_unset(self) -> None:
        token = CancelToken()
        assert not token.is_set
        assert token.intent is None
        token.raise_if_set()

    def test_pause(self) -> None:
        token = CancelToken()
        token.request_pause()
        assert token.is_set
        assert token.intent is CancelIntent.PAUSE

    def test_cancel_upgrades_pause(self) -> None:
        token = CancelToken()
        token.request_pause()
        token.request_cancel()
        assert token.intent is CancelIntent.CANCEL

    def test_pause_never_downgrades_cancel(self) -> None:
        token = CancelToken()
        token.request_cancel()
        token.request_pause()
        assert token.intent is CancelIntent.CANCEL

    def test_raise_if_set_carries_intent(self) -> None:
        token = CancelToken()
        token.request_cancel()
        with pytest.raises(CancellationError) as exc_info:
            token.raise_if_set()
        assert exc_info.value.intent == "cancel"


class TestRunCancellable:
    @pytest.mark.asyncio
    async def test_without_token(self) -> None:
        async def work() -> int:
            return 7

        assert await run_cancellable(work(), None) == 7

    @pytest.mark.asyncio
    async def test_completes_before_token(self) -> None:
        async def work() -> str:
            await asyncio.sleep(0)
            return "done"

        assert await run_cancellable(work(), CancelToken()) == "done"

    @pytest.mark.asyncio
    async def test_in_flight_work_is_aborted(self) -> None:
        aborted = asyncio.Event()

        async def slow() -> str:
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                aborted.set()
                raise
            return "late"

        token = CancelToken()
        asyncio.get_running_loop().call_later(0.05, token.request_pause)

        with pytest.raises(CancellationError) as exc_info:
            await asyncio.wait_for(run_cancellable(slow(), token), timeout=5)

        assert exc_info.value.intent == "pause"
        assert aborted.is_set()

    @pytest.mark.asyncio
    async def test_already_fired_token_raises_without_running(self) -> None:
        started = False

        async def work() -> None:
            nonlocal started
            started = True

        token = CancelToken()
        token.request_cancel()
        coro = work()
        with pytest.raises(CancellationError):
            await run_cancellable(coro, token)
        coro.close()
        assert started is False


class TestSleepCancellable:
    @pytest.mark.asyncio
    async def test_sleep_without_token(self) -> None:
        assert await sleep_cancellable(0, None) is False

    @pytest.mark.asyncio
    async def test_full_sleep_returns_false(self) -> None:
        assert await sleep_cancellable(0.01, CancelToken()) is False

    @pytest.mark.asyncio
    async def test_fired_token_returns_true_immediately(self) -> None:
        token = CancelToken()
        token.request_pause()
        assert await sleep_cancellable(30, token) is True

    @pytest.mark.asyncio
    async def test_token_fired_during_sleep(self) -> None:
        token = CancelToken()
        asyncio.get_running_loop().call_later(0.05, token.request_cancel)
        assert await asyncio.wait_for(sleep_cancellable(30, token), timeout=5) is True
