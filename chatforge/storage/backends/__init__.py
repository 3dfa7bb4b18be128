"""Object storage backends."""

from chatforge.storage.backends.base import ObjectStorage
from chatforge.storage.backends.local import LocalObjectStorage

__all__ = ["ObjectStorage", "LocalObjectStorage"]
