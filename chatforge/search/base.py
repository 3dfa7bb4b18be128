"""Search collaborator interface."""

from __future__ import annotations

import abc

from chatforge.schemas import Source


class SearchError(Exception):
    """Search collaborator failed for a query."""


class SearchClient(abc.ABC):
    """Executes one web search and returns normalized sources."""

    @abc.abstractmethod
    async def search(self, query: str) -> list[Source]:  # pragma: no cover
        raise NotImplementedError

    async def close(self) -> None:
        """Release any held connections."""
        return None
