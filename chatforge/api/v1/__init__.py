"""API v1 module.

Contains all v1 API routes.
"""

from fastapi import APIRouter

from chatforge.api.v1.generations import router as generations_router
from chatforge.api.v1.research import router as research_router

router = APIRouter(prefix="/api/v1")
router.include_router(generations_router)
router.include_router(research_router)

__all__ = ["router"]
