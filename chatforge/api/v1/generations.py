"""Generation API endpoints.

Submission returns immediately; the job runs as a background task and
clients poll until it reaches a terminal status.

Endpoints:
    POST /api/v1/generations - Submit a chat or image generation
    GET /api/v1/generations/{job_id} - Poll a job
    POST /api/v1/generations/{job_id}/regenerate - Run a job again

Examples:
    >>> POST /api/v1/generations
    >>> {"kind": "image", "prompt": "a lighthouse", "owner_email": "ada@example.com",
    ...  "width": 1024, "height": 768}
    >>>
    >>> # Response (202)
    >>> {"job_id": "...", "status": "generating", "attempt": 1}

Tests:
    - tests/integration/test_api.py::TestGenerationsAPI
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from pydantic import BaseModel

from chatforge.api.deps import get_orchestrator
from chatforge.core.errors import JobNotFoundError
from chatforge.core.orchestrator import GenerationOrchestrator
from chatforge.schemas import GenerationRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/generations", tags=["generations"])


class GenerationAccepted(BaseModel):
    """Acknowledgement of a submitted or regenerated job."""

    job_id: str
    status: str
    attempt: int


class JobResponse(BaseModel):
    """Current view of a job.

    Attributes:
        job_id: Job identifier
        status: generating, completed or failed
        kind: chat or image (None while the record is not visible yet)
        result: Generated text or public image URL
        error: User-facing failure message
        model_used: "family:model" that produced the result
        attempt: Attempt number of the current run
    """

    job_id: str
    status: str
    kind: str | None = None
    result: str | None = None
    error: str | None = None
    model_used: str | None = None
    attempt: int = 0


@router.post("", response_model=GenerationAccepted, status_code=status.HTTP_202_ACCEPTED)
async def submit_generation(
    request: GenerationRequest,
    background_tasks: BackgroundTasks,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> GenerationAccepted:
    """Submit a generation.

    Raises:
        QuotaExceededError: Mapped to 429 by the application.
        InvalidRequestError: Mapped to 422 by the application.
    """
    logger.info(f"Generation request: {request.kind.value} from {request.owner_email}")

    submitted = await orchestrator.submit(request)
    background_tasks.add_task(orchestrator.run, submitted.job_id, submitted.attempt)

    return GenerationAccepted(
        job_id=submitted.job_id,
        status=submitted.status.value,
        attempt=submitted.attempt,
    )


@router.get("/{job_id}", response_model=JobResponse)
async def get_generation(
    job_id: str,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> JobResponse:
    """Poll a job. Unknown ids read as generating."""
    view = await orchestrator.poll(job_id)
    return JobResponse(**view.to_dict())


@router.post(
    "/{job_id}/regenerate",
    response_model=GenerationAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
async def regenerate_generation(
    job_id: str,
    background_tasks: BackgroundTasks,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> GenerationAccepted:
    """Reset a job to generating and run it again with its stored input."""
    try:
        submitted = await orchestrator.regenerate(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")

    background_tasks.add_task(orchestrator.run, submitted.job_id, submitted.attempt)
    return GenerationAccepted(
        job_id=submitted.job_id,
        status=submitted.status.value,
        attempt=submitted.attempt,
    )
