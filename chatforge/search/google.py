"""Google Programmable Search (Custom Search JSON API) client.

Each configured (api key, cx id) pair is tried in order; a rejected or
rate-limited pair falls through to the next one.

Examples:
    >>> client = GoogleSearchClient(settings.search_credentials(), timeout=10)
    >>> sources = await client.search("solid-state batteries")
    >>> sources[0].url
    'https://...'

Tests:
    - tests/unit/test_search.py
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from chatforge.schemas import Source
from chatforge.search.base import SearchClient, SearchError

logger = logging.getLogger(__name__)

SEARCH_URL = "https://www.googleapis.com/customsearch/v1"


def _first(pagemap: dict[str, Any], key: str) -> dict[str, Any]:
    values = pagemap.get(key) or []
    return values[0] if values and isinstance(values[0], dict) else {}


def source_from_item(item: dict[str, Any]) -> Source:
    """Map one Custom Search result item to a Source.

    Thumbnail preference: cse_thumbnail, imageobject, cse_image.
    """
    pagemap = item.get("pagemap") or {}
    metatags = _first(pagemap, "metatags")

    thumbnail = (
        _first(pagemap, "cse_thumbnail").get("src")
        or _first(pagemap, "imageobject").get("url")
        or _first(pagemap, "cse_image").get("src")
        or ""
    )

    metadata: dict[str, Any] = {"type": metatags.get("og:type") or "article"}
    author = _first(pagemap, "person").get("name")
    if author:
        metadata["author"] = author
    published = metatags.get("article:published_time")
    if published:
        metadata["publish_date"] = published

    return Source(
        url=item.get("link", ""),
        title=item.get("title") or "Untitled",
        snippet=item.get("snippet") or "",
        display_link=item.get("displayLink") or "",
        thumbnail=thumbnail,
        metadata=metadata,
    )


class GoogleSearchClient(SearchClient):
    """Custom Search client with (key, cx) failover.

    Args:
        credentials: Ordered (api_key, cx_id) pairs.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (tests use MockTransport).
    """

    def __init__(
        self,
        credentials: list[tuple[str, str]],
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.credentials = list(credentials)
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def search(self, query: str) -> list[Source]:
        """Run one query, trying each credential pair until one answers.

        Raises:
            SearchError: If no credentials are configured or every pair failed.
        """
        if not self.credentials:
            raise SearchError("No search credentials configured")

        last_error = ""
        for index, (key, cx) in enumerate(self.credentials, start=1):
            try:
                response = await self.client.get(
                    SEARCH_URL,
                    params={"key": key, "cx": cx, "q": query},
                )
            except httpx.HTTPError as e:
                last_error = f"{type(e).__name__}: {e}"
                logger.warning(f"Search pair {index} request failed: {last_error}")
                continue

            if response.status_code != 200:
                last_error = f"HTTP {response.status_code}"
                logger.warning(f"Search pair {index} rejected query ({last_error})")
                continue

            items = response.json().get("items") or []
            return [source_from_item(item) for item in items if item.get("link")]

        raise SearchError(f"All {len(self.credentials)} search credentials failed: {last_error}")
