"""Storage configuration model."""

from __future__ import annotations

from pydantic import BaseModel, Field


class StorageConfig(BaseModel):
    """Configuration for object storage.

    Attributes:
        root: Root directory for stored objects.
        public_url: URL prefix objects are served from.
        timeout: Seconds allowed for one upload or download.
    """

    root: str = Field(default="./output", description="Object storage root directory")
    public_url: str = Field(default="/files", description="Public URL prefix")
    timeout: float = Field(default=30.0, gt=0, description="Per-operation timeout")

    @classmethod
    def from_settings(cls, settings) -> "StorageConfig":
        return cls(
            root=settings.STORAGE_ROOT,
            public_url=settings.STORAGE_PUBLIC_URL,
            timeout=settings.STORAGE_TIMEOUT,
        )
