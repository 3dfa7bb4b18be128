"""Object key naming for generated artifacts.

Format: ``generated-images/a4f_{model}_{job_id}_{width}x{height}_{timestamp}.png``
with ``/`` in the model id replaced by ``_``.

Examples:
    >>> image_object_path("provider-4/flux-schnell", "job-1", 1024, 768, timestamp=1700000000)
    'generated-images/a4f_provider-4_flux-schnell_job-1_1024x768_1700000000.png'
"""

from __future__ import annotations

import re
import time

IMAGE_PREFIX = "generated-images"


def sanitize_component(value: str) -> str:
    """Make a string safe to embed in an object key.

    Slashes become underscores; anything outside ``[A-Za-z0-9._-]`` is dropped.
    """
    value = value.replace("/", "_")
    return re.sub(r"[^A-Za-z0-9._-]", "", value)


def image_object_path(
    model: str,
    job_id: str,
    width: int,
    height: int,
    timestamp: int | None = None,
    family: str = "a4f",
) -> str:
    """Object key for a generated image."""
    if timestamp is None:
        timestamp = int(time.time() * 1000)
    return (
        f"{IMAGE_PREFIX}/{family}_{sanitize_component(model)}_{sanitize_component(job_id)}"
        f"_{width}x{height}_{timestamp}.png"
    )
