"""Generation orchestrator.

Ties the pieces together for the three caller-facing operations:

- submit: validate, check the user's quota, create the job in
  ``generating`` and record usage. Running the job is a separate
  coroutine, ``run(job_id, attempt)``, scheduled by the API layer.
- poll / regenerate: read or reset the job through the job store.
- research: quota check, usage record, research pipeline.

``run`` never raises. Every outcome lands on the job record: the result
with ``complete`` or a user-facing message with ``fail``. Diagnostics
(attempt log, raw cause) are stored next to either one. A run whose
attempt was superseded by a regeneration drops its result.

Examples:
    >>> orchestrator = GenerationOrchestrator(executor, router, job_store, quota, storage, research)
    >>> submitted = await orchestrator.submit(GenerationRequest(prompt="hi", owner_email="a@b.co"))
    >>> await orchestrator.run(submitted.job_id, submitted.attempt)
    >>> (await orchestrator.poll(submitted.job_id)).status
    <JobStatus.COMPLETED: 'completed'>

Tests:
    - tests/unit/test_orchestrator.py
    - tests/integration/test_scenarios.py
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from chatforge.config import IMAGE_MODELS
from chatforge.core.errors import InvalidRequestError, JobNotFoundError, StaleAttemptError, StorageError
from chatforge.core.failover import AggregateFailure, FailoverExecutor
from chatforge.core.imaging import normalize
from chatforge.core.job_store import JobStore, JobView
from chatforge.core.messages import describe_failure
from chatforge.core.providers.base import FailureKind, ProviderError, ProviderRequest, ProviderResponse
from chatforge.core.quota import UsageQuotaGate
from chatforge.core.research import ResearchPipeline, ResearchResult
from chatforge.core.router import ContentRouter, image_chain, is_auto
from chatforge.models import GenerationJob, JobKind, JobStatus
from chatforge.schemas import GenerationRequest
from chatforge.storage.backends.base import ObjectStorage
from chatforge.storage.naming import image_object_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmittedJob:
    """Acknowledgement returned by submit()."""

    job_id: str
    status: JobStatus
    attempt: int


class GenerationOrchestrator:
    """Submit, run, poll and regenerate generation jobs.

    Args:
        executor: Failover executor over the credential pools.
        router: Content router for chat requests.
        job_store: Job persistence.
        quota_gate: User quota checks and usage ledger.
        storage: Object storage for generated images.
        research: Research pipeline (None disables research).
        default_image_model: Image model used for "best" and as fallback.
        image_source_size: Native square size providers return.
        storage_timeout: Seconds allowed for image download and upload.
        transport: Optional httpx transport for image downloads.
    """

    def __init__(
        self,
        executor: FailoverExecutor,
        router: ContentRouter,
        job_store: JobStore,
        quota_gate: UsageQuotaGate,
        storage: ObjectStorage,
        research: ResearchPipeline | None = None,
        default_image_model: str = "provider-4/flux-schnell",
        image_source_size: int = 1024,
        storage_timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.executor = executor
        self.router = router
        self.job_store = job_store
        self.quota_gate = quota_gate
        self.storage = storage
        self.research_pipeline = research
        self.default_image_model = default_image_model
        self.image_source_size = image_source_size
        self.storage_timeout = storage_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """HTTP client for downloading provider image URLs."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.storage_timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
        if self.research_pipeline is not None:
            await self.research_pipeline.close()

    # Submission

    def _prepare(self, request: GenerationRequest) -> GenerationRequest:
        """Validate a request and fill in image defaults.

        Raises:
            InvalidRequestError: If required fields are missing or invalid.
        """
        if request.kind == JobKind.RESEARCH:
            raise InvalidRequestError("Research runs through the research endpoint")

        if request.kind == JobKind.CHAT:
            if not request.prompt.strip() and not request.attachments:
                raise InvalidRequestError("Either prompt or attachments must be provided")
            return request

        if not request.prompt.strip():
            raise InvalidRequestError("Prompt is required for image generation")
        model = self.default_image_model if is_auto(request.model) else request.model.strip()
        if model not in IMAGE_MODELS:
            raise InvalidRequestError(f"Unknown image model '{model}'. Available: {', '.join(IMAGE_MODELS)}")
        return request.model_copy(
            update={
                "model": model,
                "width": request.width or self.image_source_size,
                "height": request.height or self.image_source_size,
            }
        )

    async def submit(self, request: GenerationRequest) -> SubmittedJob:
        """Accept a generation request.

        Raises:
            InvalidRequestError: If the request is malformed.
            QuotaExceededError: If the user is over their plan limit.
        """
        request = self._prepare(request)
        await self.quota_gate.enforce(request.owner_email, request.kind)

        existing = await self.job_store.get(request.job_id) if request.job_id else None
        if existing is not None:
            # Resubmitting a known id resets that job with the new input
            if existing.kind != request.kind:
                raise InvalidRequestError(f"Job {existing.id} is a {existing.kind.value} job")
            job_id = existing.id
            attempt = await self.job_store.regenerate(job_id, payload=request.to_payload())
        else:
            job = await self.job_store.create(
                request.owner_email,
                request.kind,
                request.to_payload(),
                job_id=request.job_id,
            )
            job_id, attempt = job.id, job.attempt

        await self.quota_gate.record_usage(request.owner_email, request.kind, request.model, job_id)
        return SubmittedJob(job_id=job_id, status=JobStatus.GENERATING, attempt=attempt)

    async def poll(self, job_id: str) -> JobView:
        return await self.job_store.poll(job_id)

    async def regenerate(self, job_id: str) -> SubmittedJob:
        """Reset a job for another run with its stored input.

        Counts against the owner's quota like a fresh submission.

        Raises:
            JobNotFoundError: If the job does not exist.
            QuotaExceededError: If the owner is over their plan limit.
        """
        job = await self.job_store.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        await self.quota_gate.enforce(job.owner_email, job.kind)

        attempt = await self.job_store.regenerate(job_id)
        model = (job.input_payload or {}).get("model")
        await self.quota_gate.record_usage(job.owner_email, job.kind, model, job_id)
        return SubmittedJob(job_id=job_id, status=JobStatus.GENERATING, attempt=attempt)

    # Execution

    async def run(self, job_id: str, attempt: int) -> None:
        """Execute one attempt of a job and record its outcome."""
        job = await self.job_store.get(job_id)
        if job is None:
            logger.error(f"Job {job_id} vanished before it could run")
            return
        if job.attempt != attempt or job.status != JobStatus.GENERATING:
            logger.info(f"Skipping job {job_id} attempt {attempt}: now attempt {job.attempt} ({job.status.value})")
            return

        logger.info(f"Running job {job_id} ({job.kind.value}, attempt {attempt})")
        try:
            request = self._request_for(job)
            if job.kind == JobKind.IMAGE:
                await self._run_image(job_id, attempt, request)
            else:
                await self._run_chat(job_id, attempt, request)
        except StaleAttemptError as e:
            logger.info(f"Dropping result: {e}")
        except Exception as e:
            await self._record_failure(job_id, attempt, e)

    def _request_for(self, job: GenerationJob) -> GenerationRequest:
        return GenerationRequest(
            job_id=job.id,
            kind=job.kind,
            owner_email=job.owner_email,
            **(job.input_payload or {}),
        )

    async def _record_failure(self, job_id: str, attempt: int, error: Exception) -> None:
        message = describe_failure(error)
        diagnostics: dict[str, Any]
        if isinstance(error, AggregateFailure):
            diagnostics = error.diagnostics()
        else:
            diagnostics = {"error_type": type(error).__name__, "last_error": str(error)}
        logger.error(f"Job {job_id} attempt {attempt} failed: {error}")
        try:
            await self.job_store.fail(job_id, attempt, message, diagnostics)
        except StaleAttemptError as e:
            logger.info(f"Dropping failure: {e}")

    async def _run_chat(self, job_id: str, attempt: int, request: GenerationRequest) -> None:
        routed = await self.router.route(request)
        if routed.is_identity:
            await self.job_store.complete(
                job_id,
                attempt,
                routed.identity_answer or "",
                model_used="identity",
                diagnostics={"strategy": routed.strategy.value, "attempts": []},
            )
            return

        provider_request = routed.to_provider_request()
        result = await self.executor.execute(
            routed.chain,
            lambda adapter, candidate: adapter.call(candidate.kind, candidate.model, provider_request),
        )
        await self.job_store.complete(
            job_id,
            attempt,
            result.value.content,
            model_used=str(result.candidate),
            diagnostics={"strategy": routed.strategy.value, **result.diagnostics()},
        )

    async def _run_image(self, job_id: str, attempt: int, request: GenerationRequest) -> None:
        width = request.width or self.image_source_size
        height = request.height or self.image_source_size
        size = f"{self.image_source_size}x{self.image_source_size}"
        provider_request = ProviderRequest(prompt=request.prompt, size=size)

        result = await self.executor.execute(
            image_chain(request.model, self.default_image_model),
            lambda adapter, candidate: adapter.generate_image(candidate.model, provider_request),
        )
        raw = await self._image_bytes(result.value)
        final = await asyncio.to_thread(normalize, raw, width, height)

        path = image_object_path(
            result.candidate.model,
            job_id,
            width,
            height,
            family=result.candidate.family.value,
        )
        try:
            url = await asyncio.wait_for(
                self.storage.upload(path, final, "image/png"),
                timeout=self.storage_timeout,
            )
        except asyncio.TimeoutError as e:
            raise StorageError(f"Upload of {path} timed out") from e

        await self.job_store.complete(
            job_id,
            attempt,
            url,
            result_path=path,
            model_used=str(result.candidate),
            diagnostics=result.diagnostics(),
        )

    async def _image_bytes(self, response: ProviderResponse) -> bytes:
        """Raw image bytes from a URL or base64 provider response."""
        if response.content_type == "image_url":
            try:
                download = await self.client.get(response.content)
                download.raise_for_status()
            except httpx.TimeoutException as e:
                raise ProviderError(
                    "Image download timed out", response.family, kind=FailureKind.TIMEOUT
                ) from e
            except httpx.HTTPError as e:
                raise ProviderError(
                    f"Image download failed: {e}", response.family, kind=FailureKind.SERVER
                ) from e
            return download.content

        try:
            return base64.b64decode(response.content, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ProviderError(
                "Provider returned undecodable image data", response.family, kind=FailureKind.SERVER
            ) from e

    # Research

    async def research(
        self,
        query: str,
        owner_email: str,
        max_sources: int | None = None,
        diverse: bool = True,
    ) -> ResearchResult:
        """Quota-gated research run.

        Raises:
            InvalidRequestError: If the query is empty or research is unavailable.
            QuotaExceededError: If the user used up their monthly research.
        """
        if not query.strip():
            raise InvalidRequestError("Search input is required")
        if self.research_pipeline is None:
            raise InvalidRequestError("Research is not configured")

        await self.quota_gate.enforce(owner_email, JobKind.RESEARCH)
        await self.quota_gate.record_usage(owner_email, JobKind.RESEARCH, model="research")
        return await self.research_pipeline.run(query.strip(), max_sources=max_sources, diverse=diverse)
