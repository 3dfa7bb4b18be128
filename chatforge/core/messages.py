"""User-facing failure messages.

Operators get the full attempt log in ``GenerationJob.diagnostics``;
users get one short sentence chosen from the cause.

Examples:
    >>> describe_failure(ContentPolicyError(ProviderFamily.A4F, "blocked"))
    'The prompt violates content policy. Please modify your prompt and try again.'
"""

from __future__ import annotations

from chatforge.core.errors import InvalidRequestError, QuotaExceededError, StorageError
from chatforge.core.failover import AggregateFailure
from chatforge.core.providers.base import FailureKind, ProviderError

GENERIC_FAILURE = "Generation failed. Please try again."

FAILURE_MESSAGES: dict[FailureKind, str] = {
    FailureKind.AUTH: "All configured provider keys were rejected. Please contact support.",
    FailureKind.RATE_LIMIT: (
        "All providers have exceeded quota or hit rate limits. Please wait and try again."
    ),
    FailureKind.QUOTA: (
        "All providers have exceeded quota or hit rate limits. Please wait and try again."
    ),
    FailureKind.CONTENT_POLICY: (
        "The prompt violates content policy. Please modify your prompt and try again."
    ),
    FailureKind.MODEL_UNAVAILABLE: (
        "The specified model is not available. Please try a different model."
    ),
    FailureKind.TIMEOUT: "Generation timed out. Please try again with a simpler prompt.",
}

NO_PROVIDERS = "No AI provider is configured for this request. Please contact support."
STORAGE_FAILURE = "The result could not be saved. Please try again."


def describe_failure(error: BaseException) -> str:
    """Short user-visible message for a failed generation."""
    if isinstance(error, QuotaExceededError):
        return str(error)
    if isinstance(error, InvalidRequestError):
        return str(error)
    if isinstance(error, StorageError):
        return STORAGE_FAILURE
    if isinstance(error, AggregateFailure):
        if not error.attempts and error.skipped:
            return NO_PROVIDERS
        kind = error.last_kind
        if kind == FailureKind.INVALID_REQUEST:
            return str(error.last_error)
        return FAILURE_MESSAGES.get(kind, GENERIC_FAILURE) if kind else GENERIC_FAILURE
    if isinstance(error, ProviderError):
        return FAILURE_MESSAGES.get(error.kind, GENERIC_FAILURE)
    return GENERIC_FAILURE
