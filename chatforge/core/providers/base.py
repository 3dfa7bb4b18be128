"""Base provider abstraction layer.

Defines the adapter interface every provider family implements, the request
and response wrappers, and the failure taxonomy the failover executor acts
on. Every adapter failure is raised as a ``ProviderError`` carrying a
``FailureKind``; the kind decides whether the executor moves to the next
credential, skips to the next candidate, or aborts.

Examples:
    >>> classify_status(429, "Resource has been exhausted (QUOTA_EXCEEDED)")
    <FailureKind.QUOTA: 'quota'>
    >>> FailureKind.CONTENT_POLICY.scope
    <FailureScope.NEXT_CANDIDATE: 'next_candidate'>

Tests:
    - tests/unit/test_providers.py::TestClassifyStatus
    - tests/unit/test_providers.py::TestProviderErrors
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from chatforge.config import ProviderFamily
from chatforge.core.credentials import Credential

__all__ = [
    "AuthenticationError",
    "CallKind",
    "ContentPart",
    "ContentPolicyError",
    "FailureKind",
    "FailureScope",
    "ProviderAdapter",
    "ProviderError",
    "ProviderRequest",
    "ProviderResponse",
    "ProviderTimeoutError",
    "QuotaExhaustedError",
    "RateLimitError",
    "classify_message",
    "classify_status",
]


class CallKind(str, Enum):
    """Shape of a provider call."""

    COMPLETION = "completion"
    VISION = "vision"
    IMAGE = "image"


class FailureScope(str, Enum):
    """What the failover executor does after a failure."""

    NEXT_CREDENTIAL = "next_credential"
    NEXT_CANDIDATE = "next_candidate"
    ABORT = "abort"


class FailureKind(str, Enum):
    """Classified cause of a failed provider attempt."""

    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    QUOTA = "quota"
    MODEL_UNAVAILABLE = "model_unavailable"
    TIMEOUT = "timeout"
    SERVER = "server"
    CONTENT_POLICY = "content_policy"
    BAD_REQUEST = "bad_request"
    INVALID_REQUEST = "invalid_request"

    @property
    def scope(self) -> FailureScope:
        if self in (FailureKind.CONTENT_POLICY, FailureKind.BAD_REQUEST):
            return FailureScope.NEXT_CANDIDATE
        if self == FailureKind.INVALID_REQUEST:
            return FailureScope.ABORT
        return FailureScope.NEXT_CREDENTIAL


# Vendor error markers, checked case-insensitively against error text
_CONTENT_POLICY_MARKERS = ("content policy", "content_policy", "safety", "moderation", "blocked")
_QUOTA_MARKERS = ("quota_exceeded", "quota", "insufficient credits", "resource_exhausted")
_RATE_LIMIT_MARKERS = ("rate_limit_exceeded", "rate limit", "too many requests")
_AUTH_MARKERS = ("api_key_invalid", "invalid api key", "permission_denied", "unauthorized")
_MODEL_MARKERS = ("model not found", "no endpoints found", "is not a valid model", "not supported")
_TIMEOUT_MARKERS = ("timeout", "timed out", "deadline")


def classify_message(message: str) -> FailureKind | None:
    """Classify an error by vendor marker strings alone.

    Returns:
        The matching FailureKind, or None when no marker is present.
    """
    text = message.lower()
    if any(m in text for m in _CONTENT_POLICY_MARKERS):
        return FailureKind.CONTENT_POLICY
    if any(m in text for m in _AUTH_MARKERS):
        return FailureKind.AUTH
    if any(m in text for m in _QUOTA_MARKERS):
        return FailureKind.QUOTA
    if any(m in text for m in _RATE_LIMIT_MARKERS):
        return FailureKind.RATE_LIMIT
    if any(m in text for m in _MODEL_MARKERS):
        return FailureKind.MODEL_UNAVAILABLE
    if any(m in text for m in _TIMEOUT_MARKERS):
        return FailureKind.TIMEOUT
    return None


def classify_status(status_code: int | None, message: str = "") -> FailureKind:
    """Map an HTTP-like status code and error text to a FailureKind.

    Args:
        status_code: HTTP status (None when the vendor SDK gives none).
        message: Error body or exception text.

    Returns:
        FailureKind for the failure.

    Examples:
        >>> classify_status(401)
        <FailureKind.AUTH: 'auth'>
        >>> classify_status(400, "Your request was rejected by the safety system")
        <FailureKind.CONTENT_POLICY: 'content_policy'>
        >>> classify_status(524)
        <FailureKind.TIMEOUT: 'timeout'>
    """
    hinted = classify_message(message) if message else None

    if status_code is None:
        return hinted or FailureKind.SERVER
    if status_code in (401, 403):
        return FailureKind.AUTH
    if status_code == 402:
        return FailureKind.QUOTA
    if status_code == 429:
        return FailureKind.QUOTA if hinted == FailureKind.QUOTA else FailureKind.RATE_LIMIT
    if status_code == 404:
        return FailureKind.MODEL_UNAVAILABLE
    if status_code in (408, 504, 524):
        return FailureKind.TIMEOUT
    if status_code >= 500:
        return FailureKind.SERVER
    if status_code in (400, 422):
        if hinted in (FailureKind.CONTENT_POLICY, FailureKind.MODEL_UNAVAILABLE, FailureKind.AUTH):
            return hinted
        return FailureKind.BAD_REQUEST
    return hinted or FailureKind.BAD_REQUEST


class ContentPart(BaseModel):
    """One piece of multi-modal input.

    Attributes:
        type: "text" or "image"
        text: Text content for text parts
        mime_type: MIME type for image parts
        data: Base64-encoded image bytes, or an http(s) URL
    """

    type: str = Field(default="text", pattern="^(text|image)$")
    text: str | None = None
    mime_type: str = "image/jpeg"
    data: str | None = None

    @classmethod
    def from_text(cls, text: str) -> "ContentPart":
        return cls(type="text", text=text)

    @classmethod
    def from_image(cls, data: str, mime_type: str = "image/jpeg") -> "ContentPart":
        return cls(type="image", data=data, mime_type=mime_type)

    @property
    def is_url(self) -> bool:
        return bool(self.data) and self.data.startswith(("http://", "https://"))


class ProviderRequest(BaseModel):
    """Uniform input for every adapter call.

    Attributes:
        prompt: Main text prompt
        parts: Extra content parts (images) sent after the prompt for vision calls
        max_tokens: Output token cap for text calls
        temperature: Sampling temperature for text calls
        size: "WIDTHxHEIGHT" for image calls
    """

    prompt: str
    parts: list[ContentPart] = Field(default_factory=list)
    max_tokens: int = Field(default=2048, ge=1)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    size: str = "1024x1024"

    @property
    def images(self) -> list[ContentPart]:
        return [p for p in self.parts if p.type == "image"]


class ProviderResponse(BaseModel):
    """Standardized adapter response.

    Attributes:
        content: Generated text, or for image calls a URL or base64 payload
        content_type: "text", "image_url" or "image_base64"
        model: Model ID used
        family: Provider family used
        usage: Token usage statistics
        latency_ms: Response latency in milliseconds
    """

    content: str
    content_type: str = "text"
    model: str
    family: ProviderFamily
    usage: dict[str, int] = Field(default_factory=dict)
    latency_ms: int = Field(default=0, ge=0)


class ProviderError(Exception):
    """Base exception for provider failures.

    Attributes:
        family: The provider family that raised the error
        status_code: HTTP status code (if applicable)
        kind: Classified failure kind
    """

    def __init__(
        self,
        message: str,
        family: ProviderFamily,
        status_code: int | None = None,
        kind: FailureKind | None = None,
    ) -> None:
        super().__init__(message)
        self.family = family
        self.status_code = status_code
        self.kind = kind or classify_status(status_code, message)

    @property
    def message(self) -> str:
        return self.args[0]

    @property
    def retryable(self) -> bool:
        """Whether another credential of the same candidate may succeed."""
        return self.kind.scope == FailureScope.NEXT_CREDENTIAL

    def __str__(self) -> str:
        parts = [f"[{self.family.value}]", self.args[0]]
        if self.status_code:
            parts.insert(1, f"({self.status_code})")
        return " ".join(parts)


class RateLimitError(ProviderError):
    """Rate limit exceeded for this credential."""

    def __init__(self, family: ProviderFamily, retry_after: int | None = None) -> None:
        message = "Rate limit exceeded"
        if retry_after:
            message += f", retry after {retry_after}s"
        super().__init__(message, family, status_code=429, kind=FailureKind.RATE_LIMIT)
        self.retry_after = retry_after


class QuotaExhaustedError(ProviderError):
    """Credential's quota or credit balance is used up."""

    def __init__(
        self,
        family: ProviderFamily,
        message: str | None = None,
        status_code: int | None = 429,
    ) -> None:
        super().__init__(
            message or "Provider quota exhausted",
            family,
            status_code=status_code,
            kind=FailureKind.QUOTA,
        )


class AuthenticationError(ProviderError):
    """Credential rejected."""

    def __init__(self, family: ProviderFamily, status_code: int = 401) -> None:
        super().__init__(
            "Authentication failed - check API key",
            family,
            status_code=status_code,
            kind=FailureKind.AUTH,
        )


class ContentPolicyError(ProviderError):
    """Request rejected for its content. Other credentials would reject it too."""

    def __init__(self, family: ProviderFamily, message: str | None = None) -> None:
        super().__init__(
            message or "Request violates the provider's content policy",
            family,
            status_code=400,
            kind=FailureKind.CONTENT_POLICY,
        )


class ProviderTimeoutError(ProviderError):
    """No response within the call timeout."""

    def __init__(self, family: ProviderFamily, timeout: float | None = None) -> None:
        message = "Request timed out"
        if timeout:
            message += f" after {timeout:g}s"
        super().__init__(message, family, kind=FailureKind.TIMEOUT)


class ProviderAdapter(ABC):
    """Abstract base class for one provider family bound to one credential.

    Attributes:
        family: The provider family this adapter talks to
        credential: Credential used for every call made by this instance
        timeout: Per-request timeout in seconds

    Examples:
        >>> class MyAdapter(ProviderAdapter):
        ...     family = ProviderFamily.OPENROUTER
        ...     async def complete(self, model, request):
        ...         ...
    """

    family: ProviderFamily

    def __init__(self, credential: Credential, timeout: float = 60.0) -> None:
        self.credential = credential
        self.timeout = timeout

    @property
    def api_key(self) -> str:
        return self.credential.secret

    @abstractmethod
    async def complete(self, model: str, request: ProviderRequest) -> ProviderResponse:
        """Generate text from a prompt.

        Raises:
            ProviderError: If the call fails.
        """

    @abstractmethod
    async def analyze(self, model: str, request: ProviderRequest) -> ProviderResponse:
        """Generate text from a prompt plus image parts.

        Raises:
            ProviderError: If the call fails.
        """

    @abstractmethod
    async def generate_image(self, model: str, request: ProviderRequest) -> ProviderResponse:
        """Generate one image.

        Returns:
            ProviderResponse whose content is an image URL or base64 payload.

        Raises:
            ProviderError: If the call fails.
        """

    async def call(self, kind: CallKind, model: str, request: ProviderRequest) -> ProviderResponse:
        """Dispatch by call kind."""
        if kind == CallKind.IMAGE:
            return await self.generate_image(model, request)
        if kind == CallKind.VISION:
            return await self.analyze(model, request)
        return await self.complete(model, request)

    async def close(self) -> None:
        """Release network resources held by the adapter."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__}({self.credential.label})>"


def usage_from(data: dict[str, Any]) -> dict[str, int]:
    """Token usage from an OpenAI-style ``usage`` block."""
    usage_data = data.get("usage") or {}
    return {
        "input_tokens": usage_data.get("prompt_tokens", 0) or 0,
        "output_tokens": usage_data.get("completion_tokens", 0) or 0,
    }
