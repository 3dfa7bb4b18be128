"""Research API endpoint.

Retrieval and enrichment run inside the request. The cited synthesis is
not generated here: when ``synthesis_available`` is true, clients submit a
chat generation carrying the returned sources and poll it like any other
job.

Endpoints:
    POST /api/v1/research - Multi-angle search with enriched sources

Tests:
    - tests/integration/test_api.py::TestResearchAPI
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field

from chatforge.api.deps import get_orchestrator
from chatforge.core.orchestrator import GenerationOrchestrator
from chatforge.schemas import Source

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/research", tags=["research"])


class ResearchRequest(BaseModel):
    """Research request.

    Attributes:
        query: Research topic
        owner_email: Requesting user
        max_sources: Optional cap on returned sources
        include_diversity: Expand the topic into variant queries
    """

    query: str = Field(..., min_length=1, max_length=500)
    owner_email: EmailStr
    max_sources: int | None = Field(default=None, ge=1, le=50)
    include_diversity: bool = True


class ResearchResponse(BaseModel):
    """Enriched sources and the synthesis prompt built from them."""

    query: str
    sources: list[Source] = Field(default_factory=list)
    synthesis_available: bool
    synthesis_prompt: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


@router.post("", response_model=ResearchResponse)
async def run_research(
    request: ResearchRequest,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> ResearchResponse:
    """Run the research pipeline for a topic.

    Raises:
        QuotaExceededError: Mapped to 429 by the application.
    """
    logger.info(f"Research request from {request.owner_email}: {request.query[:60]}")
    result = await orchestrator.research(
        request.query,
        request.owner_email,
        max_sources=request.max_sources,
        diverse=request.include_diversity,
    )
    return ResearchResponse(**result.to_dict())
