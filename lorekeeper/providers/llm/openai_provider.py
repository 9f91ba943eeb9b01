"""OpenAI SDK adapter implementing :class:`ILLMProvider`.

Wraps ``openai.AsyncOpenAI``.  When ``llm_base_url`` is configured the
client points at that URL instead of the default OpenAI endpoint, so any
OpenAI-compatible service works.

The SDK's own retry loop is disabled (``max_retries=0``): retries belong to
:func:`lorekeeper.utils.retry.call_with_retry`, which needs to see every
failure to count attempts and honour cancellation.
"""

from __future__ import annotations

import openai
import structlog

from lorekeeper.config.settings import Settings
from lorekeeper.interfaces.llm_provider import ILLMProvider
from lorekeeper.utils.errors import (
    AuthenticationError,
    ConfigurationError,
    MalformedResponseError,
    ServiceRequestError,
    TransientServiceError,
)

logger = structlog.get_logger(logger_name=__name__)


class OpenAILLMProvider(ILLMProvider):
    """LLM provider backed by the official ``openai`` async client."""

    def __init__(self, settings: Settings, client: openai.AsyncOpenAI | None = None) -> None:
        if not settings.llm_api_key and client is None:
            raise ConfigurationError(
                message="LLM_API_KEY is not set",
                provider_name="openai",
            )
        self._api_key = settings.llm_api_key
        self._model = settings.llm_model
        self._provider_label = "openai-compatible" if settings.llm_base_url else "openai"

        if client is None:
            client_kwargs: dict = {
                "api_key": self._api_key,
                "timeout": openai.Timeout(settings.llm_timeout, connect=10.0),
                "max_retries": 0,
            }
            if settings.llm_base_url:
                client_kwargs["base_url"] = settings.llm_base_url
            client = openai.AsyncOpenAI(**client_kwargs)
        self._client = client

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(self, prompt: str) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
            )
        except openai.AuthenticationError as exc:
            raise AuthenticationError(
                message=f"Credentials rejected: {exc}",
                provider_name=self._provider_label,
            ) from exc
        except openai.RateLimitError as exc:
            raise TransientServiceError(
                message=f"Rate limited: {exc}",
                provider_name=self._provider_label,
                status_code=429,
            ) from exc
        except openai.InternalServerError as exc:
            raise TransientServiceError(
                message=f"Server error: {exc}",
                provider_name=self._provider_label,
                status_code=exc.status_code,
            ) from exc
        except openai.APIStatusError as exc:
            raise ServiceRequestError(
                message=f"Request rejected: {exc}",
                provider_name=self._provider_label,
                status_code=exc.status_code,
            ) from exc
        except openai.APIConnectionError as exc:
            # Includes APITimeoutError.
            raise TransientServiceError(
                message=f"Connection failed: {exc}",
                provider_name=self._provider_label,
            ) from exc
        except openai.APIError as exc:
            raise MalformedResponseError(
                message=f"Unexpected API response: {exc}",
                provider_name=self._provider_label,
            ) from exc

        if not response.choices or response.choices[0].message.content is None:
            raise MalformedResponseError(
                message=f"{self._provider_label} returned empty response",
                provider_name=self._provider_label,
            )
        logger.info(
            "openai_completion",
            model=self._model,
            provider=self._provider_label,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return response.choices[0].message.content

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        return bool(self._api_key)
