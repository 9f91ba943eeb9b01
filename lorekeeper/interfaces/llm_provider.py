"""Abstract base class for text-understanding service providers.

Defines the contract for the chat-completions backend used for knowledge
extraction and duplicate merging.  Implementations wrap a raw HTTP endpoint
(httpx) or the official ``openai`` SDK; every call-site stays
provider-agnostic.

Implementations must translate their transport's failures into the error
taxonomy in :mod:`lorekeeper.utils.errors` so the retrying caller can
classify them without importing httpx or openai.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: ChatCompletionsProvider, OpenAILLMProvider
# Located in: lorekeeper/providers/llm/
class ILLMProvider(ABC):
    """Contract for the text-understanding service."""

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """Send *prompt* as a single user message and return the reply text.

        Parameters
        ----------
        prompt:
            The full instruction plus data for the request.

        Returns
        -------
        str
            The model's text reply (``choices[0].message.content``).

        Raises
        ------
        lorekeeper.utils.errors.AuthenticationError
            The service rejected the credentials (HTTP 401).
        lorekeeper.utils.errors.TransientServiceError
            HTTP 429 / 5xx, a timeout, or a transport failure.
        lorekeeper.utils.errors.ServiceRequestError
            Any other HTTP error status.
        lorekeeper.utils.errors.MalformedResponseError
            The response envelope lacked the reply text.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"chat-completions"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider has the credentials it needs.

        Does not contact the remote service.
        """
