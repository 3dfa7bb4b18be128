"""Tests for the research pipeline.

The search collaborator is a scripted fake; page fetches go through
httpx.MockTransport.
"""

import asyncio

import httpx
import pytest

from chatforge.core.research import (
    QUERY_TEMPLATES,
    ResearchPipeline,
    deduplicate,
    expand_queries,
    extract_text,
    normalize_url,
)
from chatforge.schemas import Source
from chatforge.search.base import SearchClient, SearchError

PAGE = """
<html><head><title>T</title><style>body {color: red}</style>
<script>var tracking = 1;</script></head>
<body><noscript>enable js</noscript>
<h1>Tides</h1><p>The moon pulls the ocean. The sun helps a little. Tides repeat twice daily.
Spring tides are larger. Neap tides are smaller. Coastlines shape local tides. Extra sentence.</p>
</body></html>
"""


class FakeSearch(SearchClient):
    """Returns scripted results per query; 'hang' sleeps past any timeout."""

    def __init__(self, script=None, default=None):
        self.script = script or {}
        self.default = default if default is not None else []
        self.queries = []
        self.closed = False

    async def search(self, query):
        self.queries.append(query)
        outcome = self.script.get(query, self.default)
        if outcome == "hang":
            await asyncio.sleep(10)
        if isinstance(outcome, Exception):
            raise outcome
        return list(outcome)

    async def close(self):
        self.closed = True


def _source(url, title="t"):
    return Source(url=url, title=title, snippet=f"snippet for {url}")


def _pages(handler=None):
    return httpx.MockTransport(handler or (lambda request: httpx.Response(200, text=PAGE)))


@pytest.mark.fast
class TestHelpers:
    def test_expand_queries(self):
        queries = expand_queries("  rust  ", limit=5)
        assert queries[0] == "rust"
        assert len(queries) == 5
        assert len(expand_queries("rust")) == len(QUERY_TEMPLATES) == 15
        assert expand_queries("rust", limit=5, diverse=False) == ["rust"]

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("HTTPS://Example.com/a/?utm=1#top", "https://example.com/a"),
            ("https://example.com/a", "https://example.com/a"),
            ("https://example.com/", "https://example.com"),
        ],
    )
    def test_normalize_url(self, url, expected):
        assert normalize_url(url) == expected

    def test_deduplicate_first_wins_and_renumbers(self):
        sources = [
            _source("https://a.example/x", "first"),
            _source("https://A.example/x/?ref=2", "duplicate"),
            _source("https://b.example/y", "second"),
        ]
        unique = deduplicate(sources)
        assert [s.title for s in unique] == ["first", "second"]
        assert [s.id for s in unique] == [1, 2]

    def test_deduplicate_cap(self):
        sources = [_source(f"https://s{i}.example") for i in range(30)]
        assert len(deduplicate(sources, limit=20)) == 20

    def test_extract_text_strips_non_content(self):
        text = extract_text(PAGE)
        assert "tracking" not in text
        assert "color: red" not in text
        assert "enable js" not in text
        assert text.startswith("T Tides The moon pulls the ocean.")
        assert len(extract_text(PAGE, max_chars=10)) == 10


@pytest.mark.fast
class TestPipeline:
    @pytest.mark.asyncio
    async def test_runs_first_five_queries(self):
        search = FakeSearch(default=[_source("https://a.example")])
        pipeline = ResearchPipeline(search, transport=_pages())

        result = await pipeline.run("tides")

        assert search.queries == expand_queries("tides", limit=5)
        assert result.metadata["queries_executed"] == 5
        assert result.metadata["total_sources_found"] == 5
        assert result.metadata["unique_sources"] == 1
        await pipeline.close()
        assert search.closed

    @pytest.mark.asyncio
    async def test_partial_failure_tolerated(self):
        queries = expand_queries("tides", limit=5)
        search = FakeSearch(
            script={
                queries[0]: [_source("https://a.example"), _source("https://b.example")],
                queries[1]: "hang",
                queries[2]: SearchError("quota"),
                queries[3]: [_source("https://a.example/"), _source("https://c.example")],
                queries[4]: "hang",
            }
        )
        pipeline = ResearchPipeline(search, search_timeout=0.05, transport=_pages())

        result = await pipeline.run("tides")

        assert result.synthesis_available
        assert [s.url for s in result.sources] == [
            "https://a.example",
            "https://b.example",
            "https://c.example",
        ]
        assert "[1]" in result.synthesis_prompt and "[3]" in result.synthesis_prompt
        assert result.metadata["research_depth"] == "comprehensive"

    @pytest.mark.asyncio
    async def test_enrichment(self):
        search = FakeSearch(default=[_source("https://a.example")])
        pipeline = ResearchPipeline(search, transport=_pages())

        source = (await pipeline.run("tides", diverse=False)).sources[0]

        assert source.summary == "T Tides The moon pulls the ocean. The sun helps a little. Tides repeat twice daily."
        assert source.key_points == ["Spring tides are larger.", "Neap tides are smaller.", "Coastlines shape local tides."]
        assert source.content_length > 0
        assert len(source.content_excerpt) <= 600

    @pytest.mark.asyncio
    async def test_only_first_sources_enriched(self):
        search = FakeSearch(default=[_source(f"https://s{i}.example") for i in range(12)])
        fetched = []

        def handler(request):
            fetched.append(str(request.url))
            return httpx.Response(200, text=PAGE)

        pipeline = ResearchPipeline(search, transport=_pages(handler))
        result = await pipeline.run("tides", diverse=False)

        assert len(fetched) == 8
        assert result.metadata["enriched_sources"] == 8
        assert all(s.summary for s in result.sources[:8])
        assert not any(s.summary for s in result.sources[8:])

    @pytest.mark.asyncio
    async def test_failed_fetch_leaves_source_unenriched(self):
        search = FakeSearch(default=[_source("https://a.example")])
        pipeline = ResearchPipeline(search, transport=_pages(lambda r: httpx.Response(500)))

        result = await pipeline.run("tides", diverse=False)

        assert result.synthesis_available
        assert result.sources[0].content_excerpt == ""
        assert result.sources[0].summary == ""

    @pytest.mark.asyncio
    async def test_no_sources_falls_back_to_direct_model(self):
        pipeline = ResearchPipeline(FakeSearch(default=[]), transport=_pages())
        result = await pipeline.run("tides")
        assert not result.synthesis_available
        assert result.synthesis_prompt is None
        assert result.metadata["research_depth"] == "direct_model"
        assert result.to_dict()["sources"] == []

    @pytest.mark.asyncio
    async def test_max_sources_cap(self):
        search = FakeSearch(default=[_source(f"https://s{i}.example") for i in range(30)])
        pipeline = ResearchPipeline(search, transport=_pages())

        assert len((await pipeline.run("tides", diverse=False)).sources) == 20
        assert len((await pipeline.run("tides", max_sources=3, diverse=False)).sources) == 3
        # A per-call cap above the configured maximum is ignored
        assert len((await pipeline.run("tides", max_sources=50, diverse=False)).sources) == 20
