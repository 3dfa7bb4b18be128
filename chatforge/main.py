"""FastAPI application for ChatForge.

Builds the credential pools, adapters, failover executor, router, job
store, quota gate, storage and research pipeline once at startup and
hands them to the orchestrator on ``app.state``.

Run with:
    uvicorn chatforge.main:app --reload

Examples:
    >>> # Health check
    >>> curl http://localhost:8000/health

    >>> # Submit and poll
    >>> curl -X POST http://localhost:8000/api/v1/generations -d '{"prompt": "hi", ...}'
    >>> curl http://localhost:8000/api/v1/generations/<job_id>

Tests:
    - tests/integration/test_api.py::TestHealth
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chatforge import __version__
from chatforge.api.v1 import router as v1_router
from chatforge.config import Settings, get_settings
from chatforge.core.credentials import CredentialPools
from chatforge.core.errors import (
    InvalidRequestError,
    JobNotFoundError,
    QuotaExceededError,
    StaleAttemptError,
    StorageError,
)
from chatforge.core.failover import FailoverExecutor
from chatforge.core.job_store import JobStore
from chatforge.core.orchestrator import GenerationOrchestrator
from chatforge.core.providers.registry import AdapterRegistry
from chatforge.core.quota import QuotaLimits, UsageQuotaGate
from chatforge.core.research import ResearchPipeline
from chatforge.core.router import ContentRouter, SummaryCache
from chatforge.database import check_db_connection, close_db, get_session_factory, init_db
from chatforge.search import GoogleSearchClient
from chatforge.storage import LocalObjectStorage, StorageConfig

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# Response models
class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: bool
    providers: dict[str, bool]
    search: bool


def build_orchestrator(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    pools: CredentialPools | None = None,
) -> GenerationOrchestrator:
    """Wire every collaborator from settings."""
    pools = pools or CredentialPools.from_settings(settings)
    storage_config = StorageConfig.from_settings(settings)
    storage = LocalObjectStorage(storage_config.root, storage_config.public_url)

    executor = FailoverExecutor(
        pools,
        AdapterRegistry(timeout=settings.PROVIDER_TIMEOUT),
        call_timeout=settings.PROVIDER_TIMEOUT,
    )
    router = ContentRouter(
        storage=storage,
        summary_cache=SummaryCache(settings.SUMMARY_CACHE_SIZE, settings.SUMMARY_CACHE_TTL),
        brand=settings.BRAND_NAME,
        storage_timeout=storage_config.timeout,
    )
    search = GoogleSearchClient(settings.search_credentials(), timeout=settings.SEARCH_TIMEOUT)

    return GenerationOrchestrator(
        executor=executor,
        router=router,
        job_store=JobStore(session_factory),
        quota_gate=UsageQuotaGate(session_factory, QuotaLimits.from_settings(settings)),
        storage=storage,
        research=ResearchPipeline.from_settings(search, settings),
        default_image_model=settings.DEFAULT_IMAGE_MODEL,
        image_source_size=settings.IMAGE_SOURCE_SIZE,
        storage_timeout=storage_config.timeout,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Handles startup and shutdown tasks:
    - Initialize database and build the orchestrator on startup
    - Close provider clients and connections on shutdown
    """
    logger.info(f"Starting ChatForge v{__version__}")

    try:
        await init_db()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")

    pools = CredentialPools.from_settings(settings)
    for family, configured in pools.configured_families().items():
        if not configured:
            logger.warning(f"No credentials configured for {family}")

    orchestrator = build_orchestrator(settings, get_session_factory(), pools)
    app.state.pools = pools
    app.state.orchestrator = orchestrator

    yield

    logger.info("Shutting down ChatForge")
    await orchestrator.executor.adapters.aclose()
    await orchestrator.close()
    await close_db()


# Create FastAPI app
settings = get_settings()

app = FastAPI(
    title="ChatForge",
    description="Multi-provider AI generation service",
    version=__version__,
    lifespan=lifespan,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(v1_router)

# Generated images, served from local object storage unless a CDN fronts it
if settings.STORAGE_PUBLIC_URL.startswith("/"):
    app.mount(
        settings.STORAGE_PUBLIC_URL,
        StaticFiles(directory=settings.STORAGE_ROOT, check_dir=False),
        name="files",
    )


# Exception handlers
def _error(status_code: int, error: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "detail": detail})


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle HTTP exceptions with consistent response format."""
    return _error(exc.status_code, exc.detail)


@app.exception_handler(QuotaExceededError)
async def quota_exception_handler(request, exc: QuotaExceededError):
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "error": str(exc),
            "detail": {
                "operation": exc.operation,
                "used": exc.used,
                "limit": exc.limit,
                "window": exc.window,
            },
        },
    )


@app.exception_handler(InvalidRequestError)
async def invalid_request_handler(request, exc: InvalidRequestError):
    return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc))


@app.exception_handler(JobNotFoundError)
async def job_not_found_handler(request, exc: JobNotFoundError):
    return _error(status.HTTP_404_NOT_FOUND, str(exc))


@app.exception_handler(StaleAttemptError)
async def stale_attempt_handler(request, exc: StaleAttemptError):
    return _error(status.HTTP_409_CONFLICT, str(exc))


@app.exception_handler(StorageError)
async def storage_error_handler(request, exc: StorageError):
    logger.error(f"Storage error: {exc}")
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Storage unavailable", str(exc) if settings.DEBUG else None)


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    detail = str(exc) if settings.DEBUG else None
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", detail)


# Health endpoints
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Check application health.

    Returns status of:
    - Application
    - Database connection
    - Provider families with at least one credential
    - Search collaborator credentials
    """
    db_healthy = await check_db_connection()
    pools = getattr(app.state, "pools", None) or CredentialPools.from_settings(settings)

    return HealthResponse(
        status="healthy" if db_healthy else "degraded",
        version=__version__,
        database=db_healthy,
        providers=pools.configured_families(),
        search=bool(settings.search_credentials()),
    )


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint with basic info."""
    return {
        "name": "ChatForge",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


# Entry point for development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "chatforge.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
