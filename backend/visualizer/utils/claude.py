"""Shared Anthropic plumbing: image content blocks, tool-call extraction, error mapping."""

from __future__ import annotations

import base64
from typing import Any

import anthropic

from visualizer.errors import (
    AnalysisFailed,
    CapabilityQuotaExceeded,
    CapabilityUnavailable,
    VisualizerError,
)
from visualizer.models.contracts import GeneratedImage
from visualizer.utils.image import detect_mime_type


def get_async_client(api_key: str) -> anthropic.AsyncAnthropic | None:
    """Client for the configured key, or None when Anthropic is not configured."""
    if not api_key:
        return None
    return anthropic.AsyncAnthropic(api_key=api_key)


def image_block(image: GeneratedImage) -> dict[str, Any]:
    """Base64 image content block; the media type comes from the bytes, not the label."""
    return {
        "type": "image",
        "source": {
            "type": "base64",
            "media_type": detect_mime_type(image.data, default=image.mime_type),
            "data": base64.b64encode(image.data).decode(),
        },
    }


def extract_tool_input(response: anthropic.types.Message, tool_name: str) -> dict[str, Any]:
    """Input of the named tool call, or {} when the model didn't call it."""
    for block in response.content:
        if block.type == "tool_use" and block.name == tool_name:
            return block.input  # type: ignore[return-value]
    return {}


def classify_error(
    exc: anthropic.APIError,
    capability: str,
    fallback: type[VisualizerError] = AnalysisFailed,
) -> VisualizerError:
    """Map an Anthropic SDK error onto the pipeline taxonomy."""
    if isinstance(exc, anthropic.RateLimitError):
        return CapabilityQuotaExceeded(f"Claude rate limited: {exc}", capability=capability)
    if isinstance(exc, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
        return CapabilityUnavailable(f"Claude credentials rejected: {exc}", capability=capability)
    if isinstance(exc, anthropic.APIStatusError):
        return fallback(f"Claude API error ({exc.status_code}): {exc}", capability=capability)
    return fallback(f"Claude request failed: {type(exc).__name__}: {exc}", capability=capability)
