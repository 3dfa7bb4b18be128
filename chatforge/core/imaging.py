"""Image post-processing for generated images.

Image providers return a fixed square resolution. Requests for another
aspect ratio are center-cropped to that ratio at full source size and then
resized with LANCZOS to the exact requested dimensions. Square requests
pass through byte-identical.

Examples:
    >>> out = normalize(png_bytes_1024, 1024, 768)
    >>> Image.open(io.BytesIO(out)).size
    (1024, 768)

Tests:
    - tests/unit/test_imaging.py
"""

from __future__ import annotations

import io
import logging

from PIL import Image

logger = logging.getLogger(__name__)


def crop_box(src_width: int, src_height: int, width: int, height: int) -> tuple[int, int, int, int]:
    """Centered crop box (left, top, right, bottom) matching width:height.

    Offsets are clamped to the source bounds. A target wider than the
    source keeps the full width and trims top and bottom, since cropping
    at full height could never widen the ratio.

    Examples:
        >>> crop_box(1024, 1024, 1024, 768)
        (0, 128, 1024, 896)
        >>> crop_box(1024, 1024, 768, 1024)
        (128, 0, 896, 1024)
    """
    target_ratio = width / height
    src_ratio = src_width / src_height

    if target_ratio > src_ratio:
        # Wider than the source: keep full width, trim top and bottom
        crop_w = src_width
        crop_h = round(src_width / target_ratio)
    else:
        crop_h = src_height
        crop_w = round(src_height * target_ratio)

    left = max(0, min((src_width - crop_w) // 2, src_width))
    top = max(0, min((src_height - crop_h) // 2, src_height))
    right = min(src_width, left + crop_w)
    bottom = min(src_height, top + crop_h)
    return left, top, right, bottom


def _to_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def normalize(raw: bytes, width: int, height: int) -> bytes:
    """Fit provider output to the requested dimensions.

    Args:
        raw: Encoded image bytes from the provider.
        width: Requested width in pixels.
        height: Requested height in pixels.

    Returns:
        The input unchanged for square requests, otherwise PNG bytes of
        exactly width x height. If cropping fails, a plain resize is used.
    """
    if width == height:
        return raw

    try:
        with Image.open(io.BytesIO(raw)) as image:
            image.load()
            box = crop_box(image.width, image.height, width, height)
            cropped = image.crop(box)
            return _to_png(cropped.resize((width, height), Image.Resampling.LANCZOS))
    except Exception as e:
        logger.warning(f"Crop to {width}x{height} failed, falling back to plain resize: {e}")

    with Image.open(io.BytesIO(raw)) as image:
        return _to_png(image.resize((width, height)))
