"""Raw HTTP adapter for an OpenAI-compatible chat-completions endpoint.

Posts ``{"model": ..., "messages": [{"role": "user", "content": ...}]}`` to
the configured URL with a bearer token, using ``httpx``.  Works with any
service that speaks the chat-completions wire format without pulling in a
vendor SDK.

Status mapping:

    401                  -> AuthenticationError
    429, 5xx             -> TransientServiceError
    timeout / transport  -> TransientServiceError (status_code=None)
    other >= 400         -> ServiceRequestError
    bad envelope         -> MalformedResponseError
"""

from __future__ import annotations

from typing import Any

import httpx
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

_PROVIDER_NAME = "chat-completions"


def _error_detail(response: httpx.Response) -> str:
    """Pull a readable message out of an error response body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return response.text[:200] or response.reason_phrase


def raise_for_status(response: httpx.Response, provider_name: str = _PROVIDER_NAME) -> None:
    """Translate an HTTP error status into the lorekeeper error taxonomy."""
    status = response.status_code
    if status < 400:
        return
    detail = _error_detail(response)
    if status == 401:
        raise AuthenticationError(
            message=f"Credentials rejected (HTTP 401): {detail}",
            provider_name=provider_name,
        )
    if status == 429 or status >= 500:
        raise TransientServiceError(
            message=f"HTTP {status}: {detail}",
            provider_name=provider_name,
            status_code=status,
        )
    raise ServiceRequestError(
        message=f"HTTP {status}: {detail}",
        provider_name=provider_name,
        status_code=status,
    )


def extract_reply_text(body: Any, provider_name: str = _PROVIDER_NAME) -> str:
    """Return ``choices[0].message.content`` from a decoded response body."""
    try:
        content = body["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise MalformedResponseError(
            message="Response has no choices[0].message.content",
            provider_name=provider_name,
        ) from exc
    if not isinstance(content, str):
        raise MalformedResponseError(
            message="Reply content is not a string",
            provider_name=provider_name,
        )
    return content


class ChatCompletionsProvider(ILLMProvider):
    """LLM provider that talks to a chat-completions URL over plain HTTP.

    Parameters
    ----------
    settings:
        Supplies ``llm_api_url``, ``llm_api_key``, ``llm_model`` and
        ``llm_timeout``.
    transport:
        Optional httpx transport; tests pass ``httpx.MockTransport``.
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not settings.llm_api_key:
            raise ConfigurationError(
                message="LLM_API_KEY is not set",
                provider_name=_PROVIDER_NAME,
            )
        self._api_url = settings.llm_api_url
        self._api_key = settings.llm_api_key
        self._model = settings.llm_model
        self._timeout = httpx.Timeout(settings.llm_timeout, connect=10.0)
        self._transport = transport

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(self, prompt: str) -> str:
        payload = {
            "model": self._model,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(self._api_url, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise TransientServiceError(
                message=f"Request timed out: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc
        except httpx.TransportError as exc:
            raise TransientServiceError(
                message=f"Transport error: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

        raise_for_status(response)

        try:
            body = response.json()
        except ValueError as exc:
            raise MalformedResponseError(
                message="Response body is not JSON",
                provider_name=_PROVIDER_NAME,
            ) from exc

        content = extract_reply_text(body)
        usage = body.get("usage") if isinstance(body, dict) else None
        logger.info(
            "chat_completion",
            model=self._model,
            tokens=usage.get("total_tokens") if isinstance(usage, dict) else None,
        )
        return content

    def get_provider_name(self) -> str:
        return _PROVIDER_NAME

    def is_available(self) -> bool:
        return bool(self._api_key)
