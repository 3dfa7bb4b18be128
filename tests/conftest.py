"""
Pytest configuration and fixtures for ChatForge tests.

Every test runs against an in-memory SQLite database (aiosqlite with a
shared StaticPool connection), so no external services are needed.
"""
import base64
import io
import logging
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from chatforge.config import ProviderFamily
from chatforge.core.credentials import CredentialPools
from chatforge.core.failover import FailoverExecutor
from chatforge.core.job_store import JobStore
from chatforge.core.orchestrator import GenerationOrchestrator
from chatforge.core.providers import AdapterRegistry, ProviderAdapter, ProviderResponse
from chatforge.core.quota import QuotaLimits, UsageQuotaGate
from chatforge.core.router import ContentRouter
from chatforge.database import create_engine_for, init_db, make_session_factory
from chatforge.storage import LocalObjectStorage

logger = logging.getLogger(__name__)

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ============================================
# Database Fixtures
# ============================================

@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory database with all tables created."""
    engine = create_engine_for(TEST_DATABASE_URL)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(db_engine)


@pytest.fixture
def job_store(session_factory) -> JobStore:
    return JobStore(session_factory)


@pytest.fixture
def quota_gate(session_factory) -> UsageQuotaGate:
    return UsageQuotaGate(session_factory, QuotaLimits(daily_images=10, monthly_research=5))


# ============================================
# Collaborator Fixtures
# ============================================

@pytest.fixture
def storage(tmp_path) -> LocalObjectStorage:
    return LocalObjectStorage(root=str(tmp_path / "objects"), public_url="/files")


@pytest.fixture
def pools() -> CredentialPools:
    """Two Gemini keys, one OpenRouter key and one A4F key."""
    return CredentialPools.from_secrets(
        {
            ProviderFamily.GOOGLE: ["gem-key-1", "gem-key-2"],
            ProviderFamily.OPENROUTER: ["or-key-1"],
            ProviderFamily.A4F: ["a4f-key-1"],
        }
    )


def make_png(width: int = 1024, height: int = 1024, color=(200, 40, 40)) -> bytes:
    """Solid-color PNG bytes."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_factory():
    return make_png


@pytest.fixture
def square_png() -> bytes:
    return make_png()


@pytest.fixture
def square_png_b64(square_png: bytes) -> str:
    return base64.b64encode(square_png).decode("ascii")


# ============================================
# Provider Fakes
# ============================================

class FakeAdapter(ProviderAdapter):
    """Adapter whose outcome per (credential label, model) is scripted.

    A script value may be an exception to raise, a ProviderResponse, a
    string (returned as text content) or a callable taking the request.
    Unscripted calls answer ``"{label}:{model}"``.
    """

    def __init__(self, credential, script, calls):
        super().__init__(credential)
        self.family = credential.family
        self.script = script
        self.calls = calls

    async def _respond(self, model, request, content_type="text"):
        self.calls.append((self.credential.label, model))
        outcome = self.script.get((self.credential.label, model))
        if callable(outcome):
            outcome = outcome(request)
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, ProviderResponse):
            return outcome
        content = outcome if outcome is not None else f"{self.credential.label}:{model}"
        return ProviderResponse(content=content, content_type=content_type, model=model, family=self.family)

    async def complete(self, model, request):
        return await self._respond(model, request)

    async def analyze(self, model, request):
        return await self._respond(model, request)

    async def generate_image(self, model, request):
        return await self._respond(model, request, content_type="image_base64")


class ScriptedProviders:
    """Registry of FakeAdapters sharing one script and call log."""

    def __init__(self, script=None):
        self.script = dict(script or {})
        self.calls: list[tuple[str, str]] = []

    def registry(self) -> AdapterRegistry:
        factory = lambda credential: FakeAdapter(credential, self.script, self.calls)  # noqa: E731
        return AdapterRegistry(factories={family: factory for family in ProviderFamily})


@pytest.fixture
def providers() -> ScriptedProviders:
    return ScriptedProviders()


@pytest.fixture
def orchestrator(pools, providers, job_store, quota_gate, storage) -> GenerationOrchestrator:
    """Orchestrator over fake adapters, in-memory DB and tmp storage."""
    return GenerationOrchestrator(
        executor=FailoverExecutor(pools, providers.registry(), call_timeout=5),
        router=ContentRouter(storage=storage),
        job_store=job_store,
        quota_gate=quota_gate,
        storage=storage,
    )


# ============================================
# Pytest Configuration
# ============================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "fast: Fast unit tests (no external API calls)"
    )
    config.addinivalue_line(
        "markers", "integration: Multi-component scenarios against in-memory collaborators"
    )
