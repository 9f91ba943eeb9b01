"""Retrying caller for requests to the text-understanding service.

Errors are classified by the provider adapters (see
``lorekeeper/providers/llm/``) into the taxonomy in
:mod:`lorekeeper.utils.errors`; this module only decides what to do with
each class:

==========================  ===========================================
Error                       Behaviour
==========================  ===========================================
AuthenticationError         raised immediately (exactly one attempt)
TransientServiceError       retried, delay = ``base_delay * attempt``
CancellationError           raised immediately, never retried
anything else               raised immediately
==========================  ===========================================

Backoff grows linearly with the attempt number, the same shape the RA
GraphQL scraper used for 403/429 responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from lorekeeper.utils.cancellation import CancelToken, run_cancellable, sleep_cancellable
from lorekeeper.utils.errors import CancellationError, TransientServiceError
from lorekeeper.utils.logging import get_logger

_T = TypeVar("_T")

_logger = get_logger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded linear backoff.

    ``max_attempts`` counts the first request, so ``max_attempts=3`` means
    one request plus at most two retries.
    """

    max_attempts: int = 3
    base_delay: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")

    def delay_for(self, attempt: int) -> float:
        """Return the wait before retrying after failed attempt number *attempt*."""
        return self.base_delay * attempt


async def call_with_retry(
    operation: Callable[[], Awaitable[_T]],
    policy: RetryPolicy,
    cancel_token: CancelToken | None = None,
    **log_context: Any,
) -> _T:
    """Invoke *operation* under *policy*, honouring *cancel_token*.

    Parameters
    ----------
    operation:
        Zero-argument callable returning a fresh awaitable per attempt.
    policy:
        Attempt budget and backoff.
    cancel_token:
        Checked before each attempt, raced against the in-flight request and
        against the backoff sleep.
    log_context:
        Extra key/values bound into the retry log lines (e.g. ``chunk_index``).

    Raises
    ------
    TransientServiceError
        When every attempt failed transiently; ``attempts`` records how many
        were made.
    """
    for attempt in range(1, policy.max_attempts + 1):
        if cancel_token is not None:
            cancel_token.raise_if_set()
        try:
            return await run_cancellable(operation(), cancel_token)
        except TransientServiceError as exc:
            if attempt >= policy.max_attempts:
                exc.attempts = attempt
                _logger.warning(
                    "retries_exhausted",
                    attempts=attempt,
                    status_code=exc.status_code,
                    error=str(exc),
                    **log_context,
                )
                raise
            backoff = policy.delay_for(attempt)
            _logger.warning(
                "transient_service_error",
                attempt=attempt,
                status_code=exc.status_code,
                backoff_s=backoff,
                error=str(exc),
                **log_context,
            )
            if await sleep_cancellable(backoff, cancel_token):
                assert cancel_token is not None and cancel_token.intent is not None
                raise CancellationError(intent=cancel_token.intent.value) from exc

    # Unreachable: the loop either returns or raises.
    raise AssertionError("retry loop exited without a result")
