"""
AI dispatcher: send one message to a large-language-model provider.

Each provider is described by a ``ProviderSpec`` holding its endpoint,
auth header, request-body builder and response extractor. ``AIDispatcher``
looks the ProviderSpec up by ``Provider``, performs the HTTP call with httpx and
retries exactly once, after a fixed delay, when the provider answers 429.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from enhancer.config import Settings
from enhancer.models import Provider

logger = logging.getLogger(__name__)


# ── Errors ────────────────────────────────────────────────────────────

class LLMError(Exception):
    """Raised when a provider call fails or its response can't be used."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        upstream_status: int | None = None,
        url: str | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.upstream_status = upstream_status
        self.url = url
        super().__init__(message)


class UnsupportedProviderError(LLMError):
    """The requested provider is not one the dispatcher knows."""


class MissingCredentialError(LLMError):
    """The provider's API key is not configured."""


class LLMResponseShapeError(LLMError):
    """The provider answered 2xx but the completion text was not where expected."""


# ── Provider specs ────────────────────────────────────────────────────

@dataclass(frozen=True)
class ProviderSpec:
    credential_env: str
    credential: Callable[[Settings], str]
    build_url: Callable[[Settings], str]
    build_headers: Callable[[str], dict[str, str]]
    build_body: Callable[[Settings, str], dict[str, Any]]
    extract: Callable[[Any], str]


def _grok_extract(data: Any) -> str:
    return data["choices"][0]["message"]["content"]


def _gemini_extract(data: Any) -> str:
    return data["candidates"][0]["content"]["parts"][0]["text"]


PROVIDERS: dict[Provider, ProviderSpec] = {
    Provider.GROK: ProviderSpec(
        credential_env="GROK_API_KEY",
        credential=lambda s: s.grok_api_key,
        build_url=lambda s: s.grok_api_url,
        build_headers=lambda key: {
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        },
        build_body=lambda s, message: {
            "model": s.grok_model,
            "messages": [{"role": "user", "content": message}],
        },
        extract=_grok_extract,
    ),
    Provider.GEMINI: ProviderSpec(
        credential_env="GEMINI_API_KEY",
        credential=lambda s: s.gemini_api_key,
        build_url=lambda s: f"{s.gemini_api_base}/models/{s.gemini_model}:generateContent",
        build_headers=lambda key: {
            "x-goog-api-key": key,
            "Content-Type": "application/json",
        },
        build_body=lambda s, message: {
            "contents": [{"parts": [{"text": message}]}],
        },
        extract=_gemini_extract,
    ),
}


def _resolve_provider(provider: Provider | str) -> Provider:
    try:
        return Provider(provider)
    except ValueError:
        raise UnsupportedProviderError(
            f"Unsupported provider: {provider!r}. "
            f"Expected one of: {', '.join(p.value for p in Provider)}.",
            status_code=400,
        )


def _error_detail(response: httpx.Response) -> str | None:
    """Pull a structured error message out of a provider's error body."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict):
        return error.get("message")
    if isinstance(error, str):
        return error
    return None


# ── Dispatcher ────────────────────────────────────────────────────────

class AIDispatcher:
    """Send messages to a provider through a caller-owned httpx client."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient):
        self.settings = settings
        self.client = client

    async def dispatch(self, provider: Provider | str, message: str) -> str:
        """
        Send ``message`` to ``provider`` and return the completion text.

        Raises:
            UnsupportedProviderError: unknown provider, before any network call.
            MissingCredentialError: provider key not configured.
            LLMError: transport failure or non-2xx response.
            LLMResponseShapeError: completion text missing from the response.
        """
        provider = _resolve_provider(provider)
        spec = PROVIDERS[provider]

        key = spec.credential(self.settings)
        if not key:
            raise MissingCredentialError(
                f"{spec.credential_env} environment variable is not set.",
                status_code=500,
            )

        url = spec.build_url(self.settings)
        headers = spec.build_headers(key)
        body = spec.build_body(self.settings, message)

        logger.info(
            "Calling provider=%s url=%s message_chars=%d",
            provider.value, url, len(message),
        )
        response = await self._post(url, headers, body)

        if response.status_code == 429:
            logger.warning(
                "Provider %s rate limited, retrying once in %.1fs",
                provider.value, self.settings.retry_delay_seconds,
            )
            await asyncio.sleep(self.settings.retry_delay_seconds)
            response = await self._post(url, headers, body)

        return self._extract(provider, spec, response, url)

    async def _post(
        self, url: str, headers: dict[str, str], body: dict[str, Any]
    ) -> httpx.Response:
        try:
            return await self.client.post(
                url,
                headers=headers,
                json=body,
                timeout=self.settings.llm_timeout,
            )
        except httpx.HTTPError as exc:
            raise LLMError(f"API call failed: {exc} (url: {url})", url=url) from exc

    @staticmethod
    def _extract(
        provider: Provider, spec: ProviderSpec, response: httpx.Response, url: str
    ) -> str:
        if not response.is_success:
            detail = _error_detail(response)
            message = f"API call failed with status {response.status_code}"
            if detail:
                message += f": {detail}"
            raise LLMError(
                f"{message} (url: {url})",
                upstream_status=response.status_code,
                url=url,
            )

        try:
            text = spec.extract(response.json())
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise LLMResponseShapeError(
                f"Unexpected response shape from {provider.value}: {exc!r}",
                upstream_status=response.status_code,
                url=url,
            ) from exc

        if not isinstance(text, str):
            raise LLMResponseShapeError(
                f"Unexpected response shape from {provider.value}: "
                f"completion is {type(text).__name__}, not text",
                upstream_status=response.status_code,
                url=url,
            )
        return text
