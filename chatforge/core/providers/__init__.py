"""Provider adapters and the failure taxonomy.

Re-exports base classes and adapter implementations for convenient imports.
"""

from chatforge.core.providers.base import (
    AuthenticationError,
    CallKind,
    ContentPart,
    ContentPolicyError,
    FailureKind,
    FailureScope,
    ProviderAdapter,
    ProviderError,
    ProviderRequest,
    ProviderResponse,
    ProviderTimeoutError,
    QuotaExhaustedError,
    RateLimitError,
    classify_message,
    classify_status,
)
from chatforge.core.providers.google import GoogleAdapter
from chatforge.core.providers.openai_compat import (
    A4FAdapter,
    OpenAICompatibleAdapter,
    OpenRouterAdapter,
)
from chatforge.core.providers.registry import AdapterRegistry

__all__ = [
    # Base classes
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
    # Implementations
    "A4FAdapter",
    "AdapterRegistry",
    "GoogleAdapter",
    "OpenAICompatibleAdapter",
    "OpenRouterAdapter",
]
