"""Custom exception hierarchy for lorekeeper.

All application exceptions inherit from :class:`LoreKeeperError`, which
carries an optional ``provider_name`` naming the adapter ("openai",
"chat-completions", "sqlite") that raised it.

The hierarchy is organized by how the extraction pipeline reacts:

    LoreKeeperError  (base -- catch-all for any lorekeeper error)
    +-- AuthenticationError      (HTTP 401: fatal, never retried)
    +-- TransientServiceError    (HTTP 5xx / 429 / transport: retried)
    +-- ServiceRequestError      (any other client error: fatal)
    +-- CancellationError        (pause / cancel control-flow signal)
    +-- MalformedResponseError   (reply could not be parsed: unit yields nothing)
    +-- CandidateValidationError (one extracted candidate is unusable)
    +-- MergeError               (a duplicate group could not be merged)
    +-- PipelineError            (illegal pipeline state transition)
    +-- ConfigurationError       (startup / missing config)
    +-- UnsupportedFormatError   (input document cannot be read)
    +-- StoreError               (knowledge store failure)
"""

from __future__ import annotations


class LoreKeeperError(Exception):
    """Base exception for all lorekeeper errors.

    ``str(exc)`` is ``"[<provider>] <message>"`` when a provider name is
    set (``[chat-completions] Credentials rejected (HTTP 401)``) and the
    bare message otherwise.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# External service errors
# ---------------------------------------------------------------------------

class AuthenticationError(LoreKeeperError):
    """Raised when the service rejects the credentials (HTTP 401).

    Never retried: a bad key stays bad.
    """

    def __init__(
        self,
        message: str = "Authentication with the service failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class TransientServiceError(LoreKeeperError):
    """Raised for server errors (5xx), rate limiting (429) and transport failures.

    ``status_code`` is ``None`` for transport-level failures (timeouts,
    refused connections).  ``attempts`` is filled in by the retrying caller
    once the retry budget is exhausted.
    """

    def __init__(
        self,
        message: str = "The service is temporarily unavailable",
        provider_name: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self.status_code = status_code
        self.attempts = 0


class ServiceRequestError(LoreKeeperError):
    """Raised for non-retryable client errors (4xx other than 401 and 429)."""

    def __init__(
        self,
        message: str = "The service rejected the request",
        provider_name: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self.status_code = status_code


class MalformedResponseError(LoreKeeperError):
    """Raised when a reply cannot be parsed into the expected JSON shape."""

    def __init__(
        self,
        message: str = "The service returned a malformed response",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Control flow
# ---------------------------------------------------------------------------

class CancellationError(LoreKeeperError):
    """Signals that a cancel token fired; ``intent`` is ``"pause"`` or ``"cancel"``.

    Not a failure.  The pipeline turns a pause into a resumable checkpoint
    and a cancel into a terminal, non-resumable stop.
    """

    def __init__(
        self,
        intent: str = "cancel",
        message: str | None = None,
    ) -> None:
        super().__init__(message=message or f"Operation interrupted ({intent})")
        self.intent = intent


# ---------------------------------------------------------------------------
# Domain errors
# ---------------------------------------------------------------------------

class CandidateValidationError(LoreKeeperError):
    """Raised when one extracted candidate is missing required fields."""

    def __init__(
        self,
        message: str = "Extracted candidate is invalid",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class MergeError(LoreKeeperError):
    """Raised when a duplicate group cannot be merged into one entry."""

    def __init__(
        self,
        message: str = "Merging duplicate entries failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PipelineError(LoreKeeperError):
    """Raised when the extraction pipeline is driven through an illegal transition."""

    def __init__(
        self,
        message: str = "Pipeline orchestration failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(LoreKeeperError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UnsupportedFormatError(LoreKeeperError):
    """Raised when an input document is of an unsupported or corrupt format."""

    def __init__(
        self,
        message: str = "Unsupported or corrupt document format",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StoreError(LoreKeeperError):
    """Raised when the knowledge store cannot complete an operation."""

    def __init__(
        self,
        message: str = "Knowledge store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
