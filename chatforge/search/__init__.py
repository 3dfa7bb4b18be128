"""Web search collaborators used by the research pipeline."""

from chatforge.search.base import SearchClient, SearchError
from chatforge.search.google import GoogleSearchClient, source_from_item

__all__ = ["SearchClient", "SearchError", "GoogleSearchClient", "source_from_item"]
