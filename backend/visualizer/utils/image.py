"""Pillow helpers for encoded photo bytes."""

from __future__ import annotations

import io

import structlog
from PIL import Image

from visualizer.models.contracts import GeneratedImage

logger = structlog.get_logger()

# Gemini-supported aspect ratios and their numeric values (width/height)
_SUPPORTED_RATIOS: list[tuple[str, float]] = [
    ("1:1", 1.0),
    ("3:4", 3 / 4),
    ("4:3", 4 / 3),
    ("9:16", 9 / 16),
    ("16:9", 16 / 9),
]

SUPPORTED_RATIOS = frozenset(label for label, _ in _SUPPORTED_RATIOS)


def open_image(data: bytes) -> Image.Image:
    """Decode image bytes fully. Raises ValueError for anything Pillow cannot read."""
    try:
        img = Image.open(io.BytesIO(data))
        img.load()  # Force full decode to catch truncation
    except (OSError, SyntaxError, Image.DecompressionBombError) as exc:
        raise ValueError(f"Could not decode image: {exc}") from exc
    return img


# Pillow format -> media type accepted by both Claude and Gemini.
# MPO is a JPEG stream with extra frames (common on phone cameras).
_API_MEDIA_TYPES = {
    "JPEG": "image/jpeg",
    "MPO": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}


def detect_mime_type(data: bytes, default: str = "image/jpeg") -> str:
    """API media type from the image header; ``default`` for anything else."""
    try:
        fmt = (Image.open(io.BytesIO(data)).format or "").upper()
    except (OSError, SyntaxError):
        return default
    return _API_MEDIA_TYPES.get(fmt, default)


def normalize_photo(data: bytes) -> GeneratedImage:
    """Decode ``data`` and label it for the APIs, re-encoding BMP, TIFF etc. as PNG."""
    img = open_image(data)
    mime_type = _API_MEDIA_TYPES.get((img.format or "").upper())
    if mime_type is None:
        logger.info("photo_reencoded", source_format=img.format)
        if img.mode not in ("1", "L", "LA", "P", "RGB", "RGBA"):
            img = img.convert("RGB")
        return GeneratedImage(data=to_png_bytes(img), mime_type="image/png")
    return GeneratedImage(data=data, mime_type=mime_type)


def detect_aspect_ratio(img: Image.Image) -> str:
    """Snap an image's aspect ratio to the nearest Gemini-supported value."""
    w, h = img.size
    if h == 0 or w == 0:
        logger.warning("aspect_ratio_degenerate_image", width=w, height=h)
        return "1:1"
    ratio = w / h
    return min(_SUPPORTED_RATIOS, key=lambda item: abs(ratio - item[1]))[0]


def to_png_bytes(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
