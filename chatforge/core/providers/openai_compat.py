"""OpenAI-compatible provider adapters (OpenRouter and A4F).

Both families speak the ``/chat/completions`` and ``/images/generations``
dialect over HTTPS with a bearer key, so one httpx-based adapter serves
both; the subclasses only pin the base URL and headers.

OpenRouter API docs: https://openrouter.ai/docs

Examples:
    >>> adapter = OpenRouterAdapter(Credential(1, ProviderFamily.OPENROUTER, "sk-or-v1-..."))
    >>> response = await adapter.complete(
    ...     "qwen/qwen3-4b:free",
    ...     ProviderRequest(prompt="Explain quantum computing"),
    ... )

Tests:
    - tests/unit/test_openai_compat.py
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from chatforge.config import A4F_BASE_URL, OPENROUTER_BASE_URL, ProviderFamily
from chatforge.core.credentials import Credential
from chatforge.core.providers.base import (
    AuthenticationError,
    ContentPolicyError,
    FailureKind,
    ProviderAdapter,
    ProviderError,
    ProviderRequest,
    ProviderResponse,
    ProviderTimeoutError,
    QuotaExhaustedError,
    RateLimitError,
    classify_status,
    usage_from,
)

logger = logging.getLogger(__name__)


class OpenAICompatibleAdapter(ProviderAdapter):
    """Adapter for providers exposing the OpenAI REST dialect.

    Attributes:
        base_url: API base URL
        extra_headers: Headers sent on every request besides auth
    """

    base_url: str
    extra_headers: dict[str, str] = {}

    def __init__(
        self,
        credential: Credential,
        timeout: float = 60.0,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(credential, timeout)
        if base_url is not None:
            self.base_url = base_url
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get httpx async client (lazy initialization)."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                    **self.extra_headers,
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _handle_error(self, response: httpx.Response) -> None:
        """Convert HTTP errors to provider errors.

        Raises:
            AuthenticationError: For 401/403.
            RateLimitError: For 429 without a quota marker.
            QuotaExhaustedError: For 402, or 429 mentioning quota.
            ContentPolicyError: For policy rejections.
            ProviderError: For everything else, classified by status.
        """
        try:
            error_data = response.json()
            error = error_data.get("error", {})
            message = error.get("message", response.text) if isinstance(error, dict) else str(error)
        except ValueError:
            message = response.text

        kind = classify_status(response.status_code, message)

        if kind == FailureKind.AUTH:
            raise AuthenticationError(self.family, status_code=response.status_code)
        if kind == FailureKind.RATE_LIMIT:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                self.family,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if kind == FailureKind.QUOTA:
            raise QuotaExhaustedError(self.family, message, status_code=response.status_code)
        if kind == FailureKind.CONTENT_POLICY:
            raise ContentPolicyError(self.family, message)

        raise ProviderError(
            message=message or f"HTTP {response.status_code}",
            family=self.family,
            status_code=response.status_code,
            kind=kind,
        )

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST JSON and return the decoded body, raising ProviderError on failure."""
        try:
            response = await self.client.post(path, json=payload)
        except httpx.TimeoutException as e:
            logger.warning(f"{self.credential.label} timed out on {path}")
            raise ProviderTimeoutError(self.family, self.timeout) from e
        except httpx.HTTPError as e:
            logger.error(f"{self.family.value} HTTP error: {e}")
            raise ProviderError(
                message=str(e) or type(e).__name__,
                family=self.family,
                kind=FailureKind.SERVER,
            ) from e

        if response.status_code != 200:
            self._handle_error(response)

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                message="Provider returned a non-JSON body",
                family=self.family,
                status_code=response.status_code,
                kind=FailureKind.SERVER,
            ) from e

    def _chat_payload(self, model: str, request: ProviderRequest, content: Any) -> dict[str, Any]:
        return {
            "model": model,
            "messages": [{"role": "user", "content": content}],
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
        }

    def _text_response(self, model: str, data: dict[str, Any], start_time: float) -> ProviderResponse:
        try:
            raw_content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(
                message=f"Invalid response format for model {model}",
                family=self.family,
                kind=FailureKind.SERVER,
            ) from e

        if not raw_content or not str(raw_content).strip():
            raise ProviderError(
                message=f"Empty response from model {model}",
                family=self.family,
                kind=FailureKind.SERVER,
            )

        return ProviderResponse(
            content=str(raw_content).strip(),
            model=model,
            family=self.family,
            usage=usage_from(data),
            latency_ms=int((time.perf_counter() - start_time) * 1000),
        )

    async def complete(self, model: str, request: ProviderRequest) -> ProviderResponse:
        """Generate text with the chat/completions API."""
        start_time = time.perf_counter()
        data = await self._post("/chat/completions", self._chat_payload(model, request, request.prompt))
        return self._text_response(model, data, start_time)

    async def analyze(self, model: str, request: ProviderRequest) -> ProviderResponse:
        """Generate text from a prompt plus images as ``image_url`` content parts."""
        start_time = time.perf_counter()

        content: list[dict[str, Any]] = [{"type": "text", "text": request.prompt}]
        for part in request.images:
            url = part.data if part.is_url else f"data:{part.mime_type};base64,{part.data}"
            content.append({"type": "image_url", "image_url": {"url": url}})

        data = await self._post("/chat/completions", self._chat_payload(model, request, content))
        return self._text_response(model, data, start_time)

    async def generate_image(self, model: str, request: ProviderRequest) -> ProviderResponse:
        """Generate an image with the images/generations API.

        Returns:
            ProviderResponse with ``content_type`` "image_url" or "image_base64".
        """
        start_time = time.perf_counter()
        payload = {
            "model": model,
            "prompt": request.prompt,
            "n": 1,
            "size": request.size,
            "response_format": "url",
        }
        data = await self._post("/images/generations", payload)

        items = data.get("data") or []
        first = items[0] if items else {}
        if first.get("url"):
            content, content_type = first["url"], "image_url"
        elif first.get("b64_json"):
            content, content_type = first["b64_json"], "image_base64"
        else:
            raise ProviderError(
                message=f"No image generated by model {model}",
                family=self.family,
                kind=FailureKind.SERVER,
            )

        return ProviderResponse(
            content=content,
            content_type=content_type,
            model=model,
            family=self.family,
            latency_ms=int((time.perf_counter() - start_time) * 1000),
        )


class OpenRouterAdapter(OpenAICompatibleAdapter):
    """OpenRouter multi-model API."""

    family = ProviderFamily.OPENROUTER
    base_url = OPENROUTER_BASE_URL
    extra_headers = {
        "HTTP-Referer": "https://chatforge.app",
        "X-Title": "ChatForge",
    }


class A4FAdapter(OpenAICompatibleAdapter):
    """A4F gateway, the family serving ``provider-N/...`` text and image models."""

    family = ProviderFamily.A4F
    base_url = A4F_BASE_URL
