"""Research pipeline: expand, fan out, deduplicate, enrich, assemble.

1. Query expansion: fixed templates derive variant queries from the topic;
   only the first few are executed.
2. Fan-out: variants run concurrently against the search collaborator, each
   with its own timeout. A failed or slow branch contributes no results.
3. Aggregation: results are flattened in branch order, deduplicated by
   normalized URL (first occurrence wins) and capped.
4. Enrichment: the first few sources get their page text fetched and a
   heuristic summary. A failed fetch leaves the excerpt empty.
5. Synthesis prompt: sources are listed with ``[n]`` markers. With no
   sources, ``synthesis_available`` is False and callers fall back to a
   direct-knowledge answer.

Examples:
    >>> pipeline = ResearchPipeline(GoogleSearchClient(settings.search_credentials()))
    >>> result = await pipeline.run("solid-state batteries")
    >>> result.synthesis_available, result.metadata["queries_executed"]
    (True, 5)

Tests:
    - tests/unit/test_research.py
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import httpx
from bs4 import BeautifulSoup

from chatforge.core.text import collapse_whitespace, heuristic_summary
from chatforge.prompts.synthesis import get_research_prompt
from chatforge.schemas import Source
from chatforge.search.base import SearchClient

logger = logging.getLogger(__name__)

# Variant query templates, most direct first
QUERY_TEMPLATES: tuple[str, ...] = (
    "{topic}",
    "comprehensive overview of {topic}",
    "latest developments and updates on {topic}",
    "expert analysis of {topic}",
    "detailed explanation of {topic}",
    "pros and cons of {topic}",
    "statistics and data about {topic}",
    "common misconceptions about {topic}",
    "future trends in {topic}",
    "best practices for {topic}",
    "why {topic} matters",
    "impact and implications of {topic}",
    "historical context of {topic}",
    "case studies on {topic}",
    "challenges and solutions for {topic}",
)

EXCERPT_CHARS = 600

# Page elements whose text is never content
_NON_CONTENT_TAGS = ("script", "style", "noscript")


def expand_queries(topic: str, limit: int | None = None, diverse: bool = True) -> list[str]:
    """Variant queries for a topic.

    Examples:
        >>> expand_queries("rust", limit=2)
        ['rust', 'comprehensive overview of rust']
    """
    topic = topic.strip()
    if not diverse:
        return [topic]
    queries = [template.format(topic=topic) for template in QUERY_TEMPLATES]
    return queries[:limit] if limit is not None else queries


def normalize_url(url: str) -> str:
    """Canonical form used for deduplication.

    Lowercases scheme and host and drops the query string, fragment and
    trailing slash.

    Examples:
        >>> normalize_url("HTTPS://Example.com/a/?utm=1#top")
        'https://example.com/a'
    """
    parts = urlsplit(url.strip())
    path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, "", ""))


def deduplicate(sources: list[Source], limit: int | None = None) -> list[Source]:
    """Keep the first source per normalized URL, renumbering ids from 1."""
    seen: set[str] = set()
    unique: list[Source] = []
    for source in sources:
        if not source.url:
            continue
        key = normalize_url(source.url)
        if key in seen:
            continue
        seen.add(key)
        unique.append(source)
        if limit is not None and len(unique) >= limit:
            break
    return [s.model_copy(update={"id": i}) for i, s in enumerate(unique, start=1)]


def extract_text(html: str, max_chars: int = 8000) -> str:
    """Visible text of an HTML page, whitespace-collapsed and capped."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(list(_NON_CONTENT_TAGS)):
        tag.decompose()
    return collapse_whitespace(soup.get_text(" "))[:max_chars]


@dataclass
class ResearchResult:
    """Outcome of one research run.

    Attributes:
        query: The original topic
        sources: Deduplicated, enriched sources
        synthesis_available: Whether there is anything to cite
        synthesis_prompt: Citation-grounded prompt (None without sources)
        metadata: Counters describing the run
    """

    query: str
    sources: list[Source] = field(default_factory=list)
    synthesis_available: bool = False
    synthesis_prompt: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "sources": [s.model_dump() for s in self.sources],
            "synthesis_available": self.synthesis_available,
            "synthesis_prompt": self.synthesis_prompt,
            "metadata": self.metadata,
        }


class ResearchPipeline:
    """Multi-angle search with partial-failure tolerant fan-out.

    Args:
        search: Search collaborator.
        max_queries: Number of variant queries executed.
        max_sources: Cap on deduplicated sources.
        enrich_count: Number of sources whose pages are fetched.
        excerpt_chars: Cap on fetched page text.
        search_timeout: Per-query timeout in seconds.
        enrich_timeout: Per-page fetch timeout in seconds.
        transport: Optional httpx transport for page fetches.
    """

    def __init__(
        self,
        search: SearchClient,
        max_queries: int = 5,
        max_sources: int = 20,
        enrich_count: int = 8,
        excerpt_chars: int = 8000,
        search_timeout: float = 30.0,
        enrich_timeout: float = 12.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.search = search
        self.max_queries = max_queries
        self.max_sources = max_sources
        self.enrich_count = enrich_count
        self.excerpt_chars = excerpt_chars
        self.search_timeout = search_timeout
        self.enrich_timeout = enrich_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, search: SearchClient, settings) -> "ResearchPipeline":
        return cls(
            search,
            max_queries=settings.RESEARCH_MAX_QUERIES,
            max_sources=settings.RESEARCH_MAX_SOURCES,
            enrich_count=settings.RESEARCH_ENRICH_COUNT,
            excerpt_chars=settings.RESEARCH_EXCERPT_CHARS,
            search_timeout=settings.SEARCH_TIMEOUT,
            enrich_timeout=settings.ENRICH_TIMEOUT,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create HTTP client for page fetches."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.enrich_timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
        await self.search.close()

    async def _search_branch(self, query: str) -> list[Source]:
        try:
            results = await asyncio.wait_for(self.search.search(query), timeout=self.search_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Search timed out after {self.search_timeout}s: {query[:60]}")
            return []
        except Exception as e:
            logger.warning(f"Search failed for {query[:60]}: {e}")
            return []
        logger.info(f"Query '{query[:40]}' returned {len(results)} results")
        return results

    async def fetch_page_text(self, url: str) -> str:
        """Best-effort page text; empty on any failure."""
        try:
            response = await asyncio.wait_for(self.client.get(url), timeout=self.enrich_timeout)
            response.raise_for_status()
        except asyncio.TimeoutError:
            logger.debug(f"Page fetch timed out: {url}")
            return ""
        except httpx.HTTPError as e:
            logger.debug(f"Page fetch failed for {url}: {e}")
            return ""
        try:
            return extract_text(response.text, self.excerpt_chars)
        except Exception as e:
            logger.debug(f"Page text extraction failed for {url}: {e}")
            return ""

    async def _enrich(self, source: Source) -> Source:
        content = await self.fetch_page_text(source.url)
        summary, key_points = heuristic_summary(content)
        return source.model_copy(
            update={
                "content_excerpt": content[:EXCERPT_CHARS],
                "content_length": len(content),
                "summary": summary,
                "key_points": key_points,
            }
        )

    async def run(self, query: str, max_sources: int | None = None, diverse: bool = True) -> ResearchResult:
        """Research a topic.

        Args:
            query: The research topic.
            max_sources: Optional per-call cap below the configured maximum.
            diverse: Expand into variant queries (False runs the topic alone).
        """
        queries = expand_queries(query, limit=self.max_queries, diverse=diverse)
        branches = await asyncio.gather(*(self._search_branch(q) for q in queries))
        found = [source for branch in branches for source in branch]

        cap = min(max_sources or self.max_sources, self.max_sources)
        sources = deduplicate(found, limit=cap)
        logger.info(f"Research '{query[:40]}': {len(found)} results, {len(sources)} unique")

        if not sources:
            return ResearchResult(
                query=query,
                metadata={
                    "total_sources_found": 0,
                    "unique_sources": 0,
                    "queries_executed": len(queries),
                    "research_depth": "direct_model",
                    "enriched_sources": 0,
                },
            )

        targets = sources[: self.enrich_count]
        enriched = await asyncio.gather(*(self._enrich(s) for s in targets))
        sources = list(enriched) + sources[len(targets):]

        return ResearchResult(
            query=query,
            sources=sources,
            synthesis_available=True,
            synthesis_prompt=get_research_prompt(query, [s.model_dump() for s in sources]),
            metadata={
                "total_sources_found": len(found),
                "unique_sources": len(sources),
                "queries_executed": len(queries),
                "research_depth": "comprehensive",
                "enriched_sources": len(targets),
            },
        )
