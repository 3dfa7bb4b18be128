"""Adapter construction and reuse.

One adapter instance exists per credential so its HTTP client (and its
connection pool) is reused across requests.
"""

from __future__ import annotations

import logging
from typing import Callable, Mapping

from chatforge.config import ProviderFamily
from chatforge.core.credentials import Credential
from chatforge.core.providers.base import ProviderAdapter
from chatforge.core.providers.google import GoogleAdapter
from chatforge.core.providers.openai_compat import A4FAdapter, OpenRouterAdapter

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[Credential], ProviderAdapter]

ADAPTER_CLASSES: dict[ProviderFamily, type[ProviderAdapter]] = {
    ProviderFamily.GOOGLE: GoogleAdapter,
    ProviderFamily.OPENROUTER: OpenRouterAdapter,
    ProviderFamily.A4F: A4FAdapter,
}


class AdapterRegistry:
    """Hands out the adapter bound to a credential, creating it on first use.

    Args:
        timeout: Request timeout passed to every adapter.
        factories: Per-family overrides for building adapters.
    """

    def __init__(
        self,
        timeout: float = 60.0,
        factories: Mapping[ProviderFamily, AdapterFactory] | None = None,
    ) -> None:
        self.timeout = timeout
        self._factories = dict(factories or {})
        self._adapters: dict[tuple[ProviderFamily, int], ProviderAdapter] = {}

    def _build(self, credential: Credential) -> ProviderAdapter:
        factory = self._factories.get(credential.family)
        if factory is not None:
            return factory(credential)
        return ADAPTER_CLASSES[credential.family](credential, timeout=self.timeout)

    def get(self, credential: Credential) -> ProviderAdapter:
        """Adapter for a credential."""
        key = (credential.family, credential.id)
        adapter = self._adapters.get(key)
        if adapter is None:
            adapter = self._build(credential)
            self._adapters[key] = adapter
        return adapter

    async def aclose(self) -> None:
        """Close every adapter created so far."""
        for adapter in self._adapters.values():
            try:
                await adapter.close()
            except Exception as e:
                logger.warning(f"Failed to close {adapter!r}: {e}")
        self._adapters.clear()
