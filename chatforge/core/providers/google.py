"""Google Gen AI SDK adapter.

Talks to Gemini models through the google-genai SDK. Each adapter owns a
client bound to its own credential, so failing over to the next Gemini key
really does switch keys.

Examples:
    >>> adapter = GoogleAdapter(Credential(1, ProviderFamily.GOOGLE, "AIza..."))
    >>> response = await adapter.complete(
    ...     "gemini-2.5-flash", ProviderRequest(prompt="Write a haiku about coding")
    ... )

Tests:
    - tests/unit/test_google_adapter.py
"""

from __future__ import annotations

import base64
import logging
import time
from typing import Any

from chatforge.config import ProviderFamily
from chatforge.core.credentials import Credential
from chatforge.core.providers.base import (
    AuthenticationError,
    ContentPolicyError,
    FailureKind,
    ProviderAdapter,
    ProviderError,
    ProviderRequest,
    ProviderResponse,
    QuotaExhaustedError,
    RateLimitError,
    classify_status,
)

logger = logging.getLogger(__name__)


def _make_client(api_key: str, timeout: float) -> Any:
    """Create a Gen AI client for one key.

    Raises:
        ImportError: If google-genai is not installed.
    """
    try:
        from google import genai
        from google.genai import types
    except ImportError as e:
        raise ImportError(
            "google-genai is required for the Google adapter. "
            "Install with: pip install google-genai"
        ) from e

    return genai.Client(
        api_key=api_key,
        http_options=types.HttpOptions(timeout=int(timeout * 1000)),
    )


class GoogleAdapter(ProviderAdapter):
    """Gemini text, vision and image generation via google-genai.

    Available Models:
        - gemini-2.5-flash: default text and vision model
        - gemini-2.5-flash-image: native image generation
        - imagen-*: Imagen image generation
    """

    family = ProviderFamily.GOOGLE

    def __init__(self, credential: Credential, timeout: float = 60.0, client: Any = None) -> None:
        super().__init__(credential, timeout)
        self._client: Any = client

    @property
    def client(self) -> Any:
        """Get Gen AI client (lazy initialization)."""
        if self._client is None:
            self._client = _make_client(self.api_key, self.timeout)
        return self._client

    def _handle_error(self, error: Exception) -> None:
        """Convert Google SDK errors to provider errors.

        The SDK reports ``code`` on APIError; the message carries markers such
        as API_KEY_INVALID, QUOTA_EXCEEDED, RATE_LIMIT_EXCEEDED and
        PERMISSION_DENIED that decide the kind when no code is present.

        Raises:
            ProviderError: Always, classified.
        """
        if isinstance(error, ProviderError):
            raise error

        code = getattr(error, "code", None)
        status_code = code if isinstance(code, int) else None
        message = str(error)
        kind = classify_status(status_code, message)

        if kind == FailureKind.AUTH:
            raise AuthenticationError(self.family, status_code=status_code or 401) from error
        if kind == FailureKind.RATE_LIMIT:
            raise RateLimitError(self.family) from error
        if kind == FailureKind.QUOTA:
            raise QuotaExhaustedError(self.family, message) from error
        if kind == FailureKind.CONTENT_POLICY:
            raise ContentPolicyError(self.family, message) from error

        raise ProviderError(
            message=message,
            family=self.family,
            status_code=status_code,
            kind=kind,
        ) from error

    def _usage(self, response: Any) -> dict[str, int]:
        usage: dict[str, int] = {}
        if getattr(response, "usage_metadata", None):
            usage = {
                "input_tokens": getattr(response.usage_metadata, "prompt_token_count", 0) or 0,
                "output_tokens": getattr(response.usage_metadata, "candidates_token_count", 0) or 0,
            }
        return usage

    async def _generate_text(self, model: str, request: ProviderRequest, contents: Any) -> ProviderResponse:
        start_time = time.perf_counter()

        try:
            from google.genai import types

            config = types.GenerateContentConfig(
                temperature=request.temperature,
                max_output_tokens=request.max_tokens,
            )
            response = await self.client.aio.models.generate_content(
                model=model,
                contents=contents,
                config=config,
            )
        except Exception as e:
            logger.error(f"Google API error ({self.credential.label}): {e}")
            self._handle_error(e)
            raise

        text = response.text or ""
        if not text.strip():
            raise ProviderError(
                message=f"Empty response from model {model}",
                family=self.family,
                kind=FailureKind.SERVER,
            )

        return ProviderResponse(
            content=text.strip(),
            model=model,
            family=self.family,
            usage=self._usage(response),
            latency_ms=int((time.perf_counter() - start_time) * 1000),
        )

    async def complete(self, model: str, request: ProviderRequest) -> ProviderResponse:
        """Generate text from a prompt."""
        return await self._generate_text(model, request, request.prompt)

    async def analyze(self, model: str, request: ProviderRequest) -> ProviderResponse:
        """Generate text from the prompt followed by inline image parts."""
        from google.genai import types

        contents: list[Any] = [types.Part.from_text(text=request.prompt)]
        for part in request.images:
            if part.is_url:
                contents.append(types.Part.from_uri(file_uri=part.data, mime_type=part.mime_type))
            else:
                contents.append(
                    types.Part.from_bytes(data=base64.b64decode(part.data or ""), mime_type=part.mime_type)
                )
        return await self._generate_text(model, request, contents)

    async def generate_image(self, model: str, request: ProviderRequest) -> ProviderResponse:
        """Generate an image.

        Imagen models use ``generate_images``; Gemini image models use
        ``generate_content`` with the IMAGE response modality.
        """
        start_time = time.perf_counter()

        try:
            from google.genai import types

            if model.startswith("imagen-"):
                response = await self.client.aio.models.generate_images(
                    model=model,
                    prompt=request.prompt,
                    config=types.GenerateImagesConfig(number_of_images=1),
                )
                image_data = (
                    response.generated_images[0].image.image_bytes
                    if response.generated_images
                    else None
                )
            else:
                response = await self.client.aio.models.generate_content(
                    model=model,
                    contents=request.prompt,
                    config=types.GenerateContentConfig(response_modalities=["IMAGE"]),
                )
                image_data = None
                if response.candidates and response.candidates[0].content:
                    for part in response.candidates[0].content.parts:
                        if getattr(part, "inline_data", None):
                            image_data = part.inline_data.data
                            break
        except Exception as e:
            logger.error(f"Google image generation error ({self.credential.label}): {e}")
            self._handle_error(e)
            raise

        if not image_data:
            raise ProviderError(
                message=f"No image generated by model {model}",
                family=self.family,
                kind=FailureKind.SERVER,
            )

        return ProviderResponse(
            content=base64.b64encode(image_data).decode("utf-8"),
            content_type="image_base64",
            model=model,
            family=self.family,
            latency_ms=int((time.perf_counter() - start_time) * 1000),
        )
