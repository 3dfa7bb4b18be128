"""Abstract base class for object storage backends."""

from __future__ import annotations

from abc import ABC, abstractmethod


class ObjectStorage(ABC):
    """Durable object storage for generated images and user uploads.

    Paths are relative object keys such as
    ``generated-images/a4f_provider-4_flux-schnell_job_1024x768_1700000000.png``.
    Implementations raise ``StorageError`` on any I/O failure.
    """

    @abstractmethod
    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Store bytes under a key.

        Args:
            path: Object key.
            data: Object bytes.
            content_type: MIME type of the object.

        Returns:
            Public URL of the stored object.
        """

    @abstractmethod
    async def download(self, path: str) -> bytes:
        """Read an object's bytes.

        Args:
            path: Object key.

        Returns:
            The stored bytes.
        """

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check if an object exists."""

    @abstractmethod
    def public_url(self, path: str) -> str:
        """Public URL for an object key."""
