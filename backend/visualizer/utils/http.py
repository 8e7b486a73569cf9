"""Room photo loading for Temporal activities.

Photos arrive either as ``data:`` URLs (uploaded inline by the caller) or as
presigned HTTPS URLs. Both come back as validated ``GeneratedImage`` bytes
with an API media type taken from the image header, not the transport.
"""

from __future__ import annotations

import httpx
import structlog
from temporalio.exceptions import ApplicationError

from visualizer.models.contracts import GeneratedImage
from visualizer.utils.image import normalize_photo

logger = structlog.get_logger()


def _validated(data: bytes, source: str) -> GeneratedImage:
    try:
        return normalize_photo(data)
    except ValueError as exc:
        raise ApplicationError(
            f"Photo is corrupt or not an image: {source[:100]}",
            non_retryable=True,
        ) from exc


async def fetch_photo(client: httpx.AsyncClient, url: str, timeout: float = 30.0) -> GeneratedImage:
    """Download and validate one photo using the given HTTP client."""
    try:
        response = await client.get(url, timeout=timeout)
    except httpx.TimeoutException as exc:
        raise ApplicationError(
            f"Timeout downloading photo: {url[:100]}",
            non_retryable=False,
        ) from exc
    except httpx.RequestError as exc:
        raise ApplicationError(
            f"Network error downloading photo: {url[:100]}: {type(exc).__name__}",
            non_retryable=False,
        ) from exc

    if response.status_code >= 400:
        # 429 is throttling; other 4xx are client errors that won't heal on retry
        is_non_retryable = response.status_code < 500 and response.status_code != 429
        raise ApplicationError(
            f"HTTP {response.status_code} downloading photo: {url[:100]}",
            non_retryable=is_non_retryable,
        )

    content_type = response.headers.get("content-type", "")
    if content_type and not content_type.startswith("image/"):
        raise ApplicationError(
            f"Expected image content-type, got: {content_type}",
            non_retryable=True,
        )

    return _validated(response.content, url)


async def load_photo(source: str, timeout: float = 30.0) -> GeneratedImage:
    """Resolve a photo reference: inline data URL or downloadable URL."""
    if source.startswith("data:"):
        try:
            inline = GeneratedImage.from_data_url(source)
        except ValueError as exc:
            raise ApplicationError("Inline photo is not valid base64", non_retryable=True) from exc
        return _validated(inline.data, "inline data URL")

    async with httpx.AsyncClient() as client:
        photo = await fetch_photo(client, source, timeout=timeout)
    logger.info("photo_downloaded", size_bytes=len(photo.data), mime_type=photo.mime_type)
    return photo
