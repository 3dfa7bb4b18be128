"""Failover executor: walk a candidate chain across credential pools.

Given an ordered list of (provider family, model) candidates, tries each
candidate with each of its family's credentials, in configuration order,
until one call succeeds. Failures are classified by ``FailureKind.scope``:

- next_credential (auth, rate limit, quota, model unavailable, timeout, 5xx):
  try the next credential, then the next candidate
- next_candidate (content policy, bad request): skip the rest of this
  candidate's credentials
- abort (invalid request): stop immediately

The executor is stateless between calls. The only shared mutable state it
touches is the credential pools' rotation cursor.

Examples:
    >>> executor = FailoverExecutor(pools, AdapterRegistry(), call_timeout=60)
    >>> result = await executor.execute(
    ...     [ProviderCandidate(ProviderFamily.GOOGLE, "gemini-2.5-flash")],
    ...     lambda adapter, candidate: adapter.complete(candidate.model, request),
    ... )
    >>> result.value.content, len(result.attempts)
    ('...', 1)

Tests:
    - tests/unit/test_failover.py
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Sequence, TypeVar

from chatforge.config import ProviderFamily
from chatforge.core.credentials import Credential, CredentialPools
from chatforge.core.errors import InvalidRequestError
from chatforge.core.providers.base import (
    CallKind,
    FailureKind,
    FailureScope,
    ProviderAdapter,
    ProviderError,
    ProviderTimeoutError,
)
from chatforge.core.providers.registry import AdapterRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")

RequestBuilder = Callable[[ProviderAdapter, "ProviderCandidate"], Awaitable[T]]


@dataclass(frozen=True)
class ProviderCandidate:
    """One (family, model) entry of a candidate chain."""

    family: ProviderFamily
    model: str
    kind: CallKind = CallKind.COMPLETION

    def __str__(self) -> str:
        return f"{self.family.value}:{self.model}"


@dataclass
class Attempt:
    """Diagnostic record of one (candidate, credential) call."""

    candidate: ProviderCandidate
    credential: str
    success: bool
    failure: FailureKind | None = None
    status_code: int | None = None
    message: str | None = None
    latency_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "family": self.candidate.family.value,
            "model": self.candidate.model,
            "credential": self.credential,
            "success": self.success,
            "failure": self.failure.value if self.failure else None,
            "status_code": self.status_code,
            "message": self.message,
            "latency_ms": self.latency_ms,
        }


@dataclass
class FailoverResult(Generic[T]):
    """Successful outcome of a failover run.

    Attributes:
        value: What the request builder returned
        candidate: Candidate that succeeded
        credential: Label of the credential that succeeded
        attempts: Every attempt made, the successful one last
        skipped: Candidates passed over because their pool was empty
    """

    value: T
    candidate: ProviderCandidate
    credential: str
    attempts: list[Attempt] = field(default_factory=list)
    skipped: list[ProviderCandidate] = field(default_factory=list)

    def diagnostics(self) -> dict[str, Any]:
        return {
            "attempts": [a.to_dict() for a in self.attempts],
            "skipped": [str(c) for c in self.skipped],
        }


class AggregateFailure(Exception):
    """Every candidate and credential failed, or a fatal error aborted the run.

    Attributes:
        attempts: Every attempt made, in order
        last_error: Exception from the last attempt (None if nothing was tried)
        aborted: True when a fatal error stopped the run early
        skipped: Candidates passed over because their pool was empty
    """

    def __init__(
        self,
        attempts: list[Attempt],
        last_error: BaseException | None,
        aborted: bool = False,
        skipped: list[ProviderCandidate] | None = None,
    ) -> None:
        if last_error is not None:
            message = f"All {len(attempts)} provider attempts failed; last error: {last_error}"
        else:
            message = "No provider credentials configured for any candidate"
        if aborted:
            message = f"Request aborted: {last_error}"
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error
        self.aborted = aborted
        self.skipped = skipped or []

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    @property
    def last_kind(self) -> FailureKind | None:
        """FailureKind of the last attempt, if it failed with a classified error."""
        if isinstance(self.last_error, ProviderError):
            return self.last_error.kind
        if isinstance(self.last_error, InvalidRequestError):
            return FailureKind.INVALID_REQUEST
        return None

    def diagnostics(self) -> dict[str, Any]:
        return {
            "attempts": [a.to_dict() for a in self.attempts],
            "skipped": [str(c) for c in self.skipped],
            "aborted": self.aborted,
            "last_error": str(self.last_error) if self.last_error else None,
        }


class FailoverExecutor:
    """Runs a candidate chain against the credential pools.

    Args:
        pools: Credential pools for every family.
        adapters: Registry handing out one adapter per credential.
        call_timeout: Upper bound on each attempt, in seconds.
    """

    def __init__(
        self,
        pools: CredentialPools,
        adapters: AdapterRegistry,
        call_timeout: float = 60.0,
    ) -> None:
        self.pools = pools
        self.adapters = adapters
        self.call_timeout = call_timeout

    def _classify(self, candidate: ProviderCandidate, error: BaseException) -> ProviderError | InvalidRequestError:
        if isinstance(error, (ProviderError, InvalidRequestError)):
            return error
        if isinstance(error, asyncio.TimeoutError):
            return ProviderTimeoutError(candidate.family, self.call_timeout)
        return ProviderError(
            message=f"{type(error).__name__}: {error}",
            family=candidate.family,
            kind=FailureKind.SERVER,
        )

    async def execute(
        self,
        chain: Sequence[ProviderCandidate],
        request_builder: RequestBuilder[T],
    ) -> FailoverResult[T]:
        """Try candidates in order, each with its credentials in order.

        Args:
            chain: Ordered candidates.
            request_builder: Coroutine function performing one call with an
                adapter for the given candidate.

        Returns:
            FailoverResult for the first successful (candidate, credential).

        Raises:
            AggregateFailure: When every attempt failed or one was fatal.
        """
        attempts: list[Attempt] = []
        skipped: list[ProviderCandidate] = []
        last_error: BaseException | None = None

        for candidate in chain:
            credentials: list[Credential] = self.pools.acquire(candidate.family)
            if not credentials:
                logger.warning(f"No credentials for {candidate.family.value}, skipping {candidate}")
                skipped.append(candidate)
                continue

            for credential in credentials:
                adapter = self.adapters.get(credential)
                start_time = time.perf_counter()
                try:
                    value = await asyncio.wait_for(
                        request_builder(adapter, candidate),
                        timeout=self.call_timeout,
                    )
                except Exception as raw:
                    error = self._classify(candidate, raw)
                    latency_ms = int((time.perf_counter() - start_time) * 1000)
                    kind = error.kind if isinstance(error, ProviderError) else FailureKind.INVALID_REQUEST
                    attempts.append(
                        Attempt(
                            candidate=candidate,
                            credential=credential.label,
                            success=False,
                            failure=kind,
                            status_code=getattr(error, "status_code", None),
                            message=str(error),
                            latency_ms=latency_ms,
                        )
                    )
                    last_error = error
                    logger.warning(
                        f"Attempt {len(attempts)} failed: {candidate} with {credential.label} "
                        f"({kind.value}): {error}"
                    )

                    if kind.scope == FailureScope.ABORT:
                        raise AggregateFailure(attempts, error, aborted=True, skipped=skipped) from raw
                    if kind.scope == FailureScope.NEXT_CANDIDATE:
                        break
                    continue

                attempts.append(
                    Attempt(
                        candidate=candidate,
                        credential=credential.label,
                        success=True,
                        latency_ms=int((time.perf_counter() - start_time) * 1000),
                    )
                )
                if len(attempts) > 1:
                    logger.info(f"{candidate} succeeded with {credential.label} after {len(attempts) - 1} failures")
                return FailoverResult(
                    value=value,
                    candidate=candidate,
                    credential=credential.label,
                    attempts=attempts,
                    skipped=skipped,
                )

        logger.error(f"Failover exhausted after {len(attempts)} attempts")
        raise AggregateFailure(attempts, last_error, skipped=skipped)
