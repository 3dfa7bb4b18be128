"""API module for ChatForge.

Contains versioned API routers.
"""

from chatforge.api.v1 import router as v1_router

__all__ = ["v1_router"]
