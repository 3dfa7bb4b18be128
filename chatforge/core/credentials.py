"""Credential pools for provider families.

A pool holds the interchangeable secrets for one provider family, in
configuration order. Pools are built once at startup and passed down the
call chain; nothing here reads the environment on its own.

Examples:
    >>> pools = CredentialPools.from_settings(settings)
    >>> pool = pools.get(ProviderFamily.OPENROUTER)
    >>> [c.label for c in pool.acquire()]
    ['openrouter#1', 'openrouter#2']

Tests:
    - tests/unit/test_credentials.py
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Mapping

from chatforge.config import ProviderFamily, RotationMode

if TYPE_CHECKING:
    from chatforge.config import Settings


@dataclass(frozen=True)
class Credential:
    """One API secret for a provider family.

    Attributes:
        id: 1-based position in the configured slot order
        family: Provider family the secret belongs to
        secret: The API key itself (never logged or persisted)
    """

    id: int
    family: ProviderFamily
    secret: str = field(repr=False)

    @property
    def label(self) -> str:
        """Loggable identity, e.g. ``openrouter#2``."""
        return f"{self.family.value}#{self.id}"


class CredentialPool:
    """Ordered, immutable set of credentials for one family.

    ``acquire()`` returns every credential exactly once. In sequential mode
    the order is always configuration order; in round-robin mode each call
    starts one position further along, wrapping around. The cursor is the
    only mutable state and is guarded by a lock so concurrent requests each
    see a distinct starting offset.
    """

    def __init__(
        self,
        family: ProviderFamily,
        secrets: Iterable[str],
        mode: RotationMode = RotationMode.SEQUENTIAL,
    ) -> None:
        cleaned = [s.strip() for s in secrets if s and s.strip()]
        self.family = family
        self.mode = mode
        self._credentials: tuple[Credential, ...] = tuple(
            Credential(id=i, family=family, secret=secret)
            for i, secret in enumerate(cleaned, start=1)
        )
        self._cursor = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._credentials)

    def __bool__(self) -> bool:
        return bool(self._credentials)

    def __repr__(self) -> str:
        return f"<CredentialPool({self.family.value}, size={len(self)}, mode={self.mode.value})>"

    @property
    def credentials(self) -> tuple[Credential, ...]:
        return self._credentials

    def acquire(self) -> list[Credential]:
        """Credentials to try for one request, each exactly once."""
        if not self._credentials:
            return []
        if self.mode == RotationMode.SEQUENTIAL:
            return list(self._credentials)

        with self._lock:
            start = self._cursor
            self._cursor = (self._cursor + 1) % len(self._credentials)
        return list(self._credentials[start:] + self._credentials[:start])


class CredentialPools:
    """Per-family pools, injected into the failover executor."""

    def __init__(self, pools: Mapping[ProviderFamily, CredentialPool]) -> None:
        self._pools = dict(pools)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "CredentialPools":
        """Build every family's pool from numbered settings slots."""
        return cls(
            {
                family: CredentialPool(
                    family,
                    settings.credentials_for(family),
                    mode=settings.CREDENTIAL_ROTATION,
                )
                for family in ProviderFamily
            }
        )

    @classmethod
    def from_secrets(
        cls,
        secrets: Mapping[ProviderFamily, Iterable[str]],
        mode: RotationMode = RotationMode.SEQUENTIAL,
    ) -> "CredentialPools":
        """Build pools from explicit secret lists (families not listed are empty)."""
        return cls(
            {
                family: CredentialPool(family, secrets.get(family, ()), mode=mode)
                for family in ProviderFamily
            }
        )

    def get(self, family: ProviderFamily) -> CredentialPool:
        """Pool for a family; an empty pool when nothing is configured."""
        pool = self._pools.get(family)
        if pool is None:
            pool = CredentialPool(family, ())
        return pool

    def acquire(self, family: ProviderFamily) -> list[Credential]:
        """Ordered credentials for a family."""
        return self.get(family).acquire()

    def configured_families(self) -> dict[str, bool]:
        """Family name → whether any credential is configured."""
        return {family.value: bool(self.get(family)) for family in ProviderFamily}
