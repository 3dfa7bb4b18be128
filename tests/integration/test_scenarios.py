"""End-to-end scenarios over fake providers, in-memory DB and tmp storage.

Run with:
    pytest tests/integration -v -m integration
"""

import asyncio
import io

import httpx
import pytest
from PIL import Image

from chatforge.config import OPENROUTER_FREE_LADDER, ProviderFamily
from chatforge.core.errors import QuotaExceededError
from chatforge.core.messages import FAILURE_MESSAGES
from chatforge.core.providers import FailureKind, RateLimitError
from chatforge.core.research import ResearchPipeline, expand_queries
from chatforge.models import JobKind, JobStatus
from chatforge.schemas import GenerationRequest, Source
from chatforge.search.base import SearchClient, SearchError

EMAIL = "ada@example.com"


class TimingOutSearch(SearchClient):
    """Two of five variant queries never answer in time."""

    def __init__(self, topic):
        queries = expand_queries(topic, limit=5)
        self.slow = {queries[1], queries[3]}
        self.index = {q: i for i, q in enumerate(queries)}

    async def search(self, query):
        if query in self.slow:
            await asyncio.sleep(10)
        i = self.index[query]
        return [
            Source(url=f"https://site{i}.example/article", title=f"Article {i}"),
            Source(url="https://shared.example/overview", title="Shared overview"),
        ]


class EmptySearch(SearchClient):
    async def search(self, query):
        raise SearchError("no credentials")


@pytest.mark.integration
class TestImageScenario:
    @pytest.mark.asyncio
    async def test_wide_image_is_cropped_and_stored(self, orchestrator, providers, storage, square_png_b64):
        providers.script[("a4f#1", "provider-4/flux-schnell")] = square_png_b64

        submitted = await orchestrator.submit(
            GenerationRequest(
                kind=JobKind.IMAGE,
                prompt="a lighthouse at dusk",
                owner_email=EMAIL,
                width=1024,
                height=768,
            )
        )
        assert submitted.status == JobStatus.GENERATING
        await orchestrator.run(submitted.job_id, submitted.attempt)

        view = await orchestrator.poll(submitted.job_id)
        assert view.status == JobStatus.COMPLETED
        assert view.result.startswith("/files/generated-images/")

        job = await orchestrator.job_store.get(submitted.job_id)
        stored = await storage.download(job.result_path)
        with Image.open(io.BytesIO(stored)) as image:
            assert image.size == (1024, 768)


@pytest.mark.integration
class TestFailoverScenario:
    @pytest.mark.asyncio
    async def test_rate_limited_keys_fall_through_to_next_family(self, orchestrator, providers, job_store):
        providers.script[("google#1", "gemini-2.5-flash")] = RateLimitError(ProviderFamily.GOOGLE)
        providers.script[("google#2", "gemini-2.5-flash")] = RateLimitError(ProviderFamily.GOOGLE)
        providers.script[("openrouter#1", "openai/gpt-oss-20b:free")] = "Tides come from the moon's pull."

        submitted = await orchestrator.submit(
            GenerationRequest(prompt="How do tides work?", owner_email=EMAIL, model="best")
        )
        await orchestrator.run(submitted.job_id, submitted.attempt)

        job = await job_store.get(submitted.job_id)
        assert job.status == JobStatus.COMPLETED
        assert job.result_ref == "Tides come from the moon's pull."
        assert job.model_used == "openrouter:openai/gpt-oss-20b:free"

        attempts = job.diagnostics["attempts"]
        assert len(attempts) == 3
        assert [a["failure"] for a in attempts] == ["rate_limit", "rate_limit", None]
        assert job.diagnostics["strategy"] == "direct"

    @pytest.mark.asyncio
    async def test_every_key_exhausted(self, orchestrator, providers, job_store):
        # Requested model first, then the ladder without its duplicate: 1 + 2 + 4 attempts
        scripted = [("google#1", "gemini-2.5-flash"), ("google#2", "gemini-2.5-flash")]
        scripted += [("openrouter#1", m) for m in OPENROUTER_FREE_LADDER]
        for label, model in scripted:
            family = ProviderFamily.GOOGLE if label.startswith("google") else ProviderFamily.OPENROUTER
            providers.script[(label, model)] = RateLimitError(family)

        submitted = await orchestrator.submit(
            GenerationRequest(prompt="hi", owner_email=EMAIL, model="qwen/qwen3-4b:free")
        )
        await orchestrator.run(submitted.job_id, submitted.attempt)

        job = await job_store.get(submitted.job_id)
        assert job.status == JobStatus.FAILED
        assert job.error_message == FAILURE_MESSAGES[FailureKind.RATE_LIMIT]
        assert len(job.diagnostics["attempts"]) == 7
        assert job.diagnostics["attempts"][0]["model"] == "qwen/qwen3-4b:free"


@pytest.mark.integration
class TestResearchScenario:
    @pytest.mark.asyncio
    async def test_slow_queries_do_not_sink_the_run(self, orchestrator):
        pages = httpx.MockTransport(
            lambda request: httpx.Response(200, text="<p>Tides rise. Tides fall. The moon pulls.</p>")
        )
        orchestrator.research_pipeline = ResearchPipeline(
            TimingOutSearch("ocean tides"), search_timeout=0.1, transport=pages
        )

        result = await orchestrator.research("ocean tides", EMAIL)

        assert result.synthesis_available
        assert result.metadata["queries_executed"] == 5
        assert result.metadata["total_sources_found"] == 6
        urls = [s.url for s in result.sources]
        assert urls == [
            "https://site0.example/article",
            "https://shared.example/overview",
            "https://site2.example/article",
            "https://site4.example/article",
        ]
        assert [s.id for s in result.sources] == [1, 2, 3, 4]
        assert result.sources[0].summary == "Tides rise. Tides fall. The moon pulls."
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_research_quota(self, orchestrator):
        orchestrator.research_pipeline = ResearchPipeline(EmptySearch())
        for _ in range(5):
            result = await orchestrator.research("tides", EMAIL)
            assert result.metadata["research_depth"] == "direct_model"

        with pytest.raises(QuotaExceededError):
            await orchestrator.research("tides", EMAIL)
