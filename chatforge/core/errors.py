"""Core exceptions that are not provider failures.

Provider failures live in ``chatforge.core.providers.base``; the ones here
are raised by the orchestrator, job store and storage layer and are mapped
to HTTP responses in ``chatforge.main``.
"""

from __future__ import annotations


class InvalidRequestError(ValueError):
    """Caller error such as a missing prompt. Never retried."""


class QuotaExceededError(Exception):
    """User hit their plan's generation limit. Rejected before any provider call.

    Attributes:
        operation: The operation that was refused (image, research)
        used: Requests already counted in the current window
        limit: Plan limit for the window
        window: "day" or "month"
    """

    def __init__(self, operation: str, used: int, limit: int, window: str) -> None:
        super().__init__(
            f"{operation.capitalize()} limit reached: {used}/{limit} per {window}. "
            f"Upgrade to Pro for unlimited {operation} generations."
        )
        self.operation = operation
        self.used = used
        self.limit = limit
        self.window = window


class StorageError(Exception):
    """Object storage upload or download failed. Not retried automatically."""


class StaleAttemptError(Exception):
    """A conditional job write matched no row.

    Raised when a job was regenerated (or already finished) after the
    writing attempt started, so its result must not be recorded.
    """

    def __init__(self, job_id: str, attempt: int) -> None:
        super().__init__(f"Job {job_id} attempt {attempt} is no longer current")
        self.job_id = job_id
        self.attempt = attempt


class JobNotFoundError(LookupError):
    """No job with the given id exists."""
