"""Utility modules for lorekeeper.

Available utility modules (all re-exported here for convenience):

- **errors** -- Exception hierarchy rooted at LoreKeeperError; the retrying
  caller and the pipeline branch on the subclass, never on message text.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **cancellation** -- CancelToken with pause/cancel intents, plus helpers
  that race requests and sleeps against it.
- **retry** -- RetryPolicy and the retrying caller used for every request
  to the text-understanding service.
- **text_normalizer** -- title canonicalization, rapidfuzz matching and
  keyword coercion.
"""

# -- Exception hierarchy ----------------------------------------------------
from lorekeeper.utils.errors import (
    AuthenticationError,
    CancellationError,
    CandidateValidationError,
    ConfigurationError,
    LoreKeeperError,
    MalformedResponseError,
    MergeError,
    PipelineError,
    ServiceRequestError,
    StoreError,
    TransientServiceError,
    UnsupportedFormatError,
)

# -- Structured logging setup -----------------------------------------------
from lorekeeper.utils.logging import configure_logging, get_logger

# -- Cooperative cancellation -----------------------------------------------
from lorekeeper.utils.cancellation import (
    CancelIntent,
    CancelToken,
    run_cancellable,
    sleep_cancellable,
)

# -- Retry policy -------------------------------------------------------------
from lorekeeper.utils.retry import RetryPolicy, call_with_retry

# -- Text normalization -------------------------------------------------------
from lorekeeper.utils.text_normalizer import (
    canonicalize_title,
    coerce_keywords,
    dedupe_preserving_order,
    fuzzy_match,
)

__all__ = [
    "AuthenticationError",
    "CancelIntent",
    "CancelToken",
    "CancellationError",
    "CandidateValidationError",
    "ConfigurationError",
    "LoreKeeperError",
    "MalformedResponseError",
    "MergeError",
    "PipelineError",
    "RetryPolicy",
    "ServiceRequestError",
    "StoreError",
    "TransientServiceError",
    "UnsupportedFormatError",
    "call_with_retry",
    "canonicalize_title",
    "coerce_keywords",
    "configure_logging",
    "dedupe_preserving_order",
    "fuzzy_match",
    "get_logger",
    "run_cancellable",
    "sleep_cancellable",
]
