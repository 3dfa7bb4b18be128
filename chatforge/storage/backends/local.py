"""Local filesystem object storage using pathlib."""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath

from chatforge.core.errors import StorageError
from chatforge.storage.backends.base import ObjectStorage

logger = logging.getLogger(__name__)


class LocalObjectStorage(ObjectStorage):
    """Stores objects as files under a root directory.

    Args:
        root: Directory holding all objects.
        public_url: URL prefix the objects are served from.
    """

    def __init__(self, root: str, public_url: str = "/files") -> None:
        self.root = Path(root)
        self.base_url = public_url.rstrip("/")

    def _resolve(self, path: str) -> Path:
        key = PurePosixPath(path)
        if key.is_absolute() or ".." in key.parts or not key.parts:
            raise StorageError(f"Invalid object key: {path!r}")
        return self.root.joinpath(*key.parts)

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Write bytes to ``{root}/{path}``."""
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Upload of {path} failed: {e}") from e
        logger.info(f"Stored {path} ({len(data)} bytes, {content_type})")
        return self.public_url(path)

    async def download(self, path: str) -> bytes:
        """Read bytes from ``{root}/{path}``."""
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except OSError as e:
            raise StorageError(f"Download of {path} failed: {e}") from e

    async def exists(self, path: str) -> bool:
        """Check if a local object exists."""
        return self._resolve(path).is_file()
