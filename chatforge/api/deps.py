"""FastAPI dependencies shared by the v1 routers."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from chatforge.core.orchestrator import GenerationOrchestrator


def get_orchestrator(request: Request) -> GenerationOrchestrator:
    """Orchestrator built by the application lifespan."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up",
        )
    return orchestrator
