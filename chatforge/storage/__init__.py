"""Object storage package.

Stores generated images and serves user uploads to the content router.

Examples:
    >>> from chatforge.storage import LocalObjectStorage
    >>> storage = LocalObjectStorage(root="./output")
    >>> url = await storage.upload("generated-images/x.png", data, "image/png")
"""

from chatforge.storage.backends import LocalObjectStorage, ObjectStorage
from chatforge.storage.config import StorageConfig
from chatforge.storage.naming import image_object_path, sanitize_component

__all__ = [
    "LocalObjectStorage",
    "ObjectStorage",
    "StorageConfig",
    "image_object_path",
    "sanitize_component",
]
