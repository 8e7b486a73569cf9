"""Test builders shared across modules: images, Anthropic responses, capabilities."""

from __future__ import annotations

import io
from unittest.mock import AsyncMock, MagicMock

import httpx
from PIL import Image, ImageDraw

from visualizer.activities.extraction import KeywordPreferenceExtractor
from visualizer.capabilities import Capabilities
from visualizer.models.contracts import GeneratedImage, ValidationResult


def make_photo_bytes(width: int = 160, height: int = 120, fmt: str = "JPEG") -> bytes:
    """A room-ish test image: flat walls with a window rectangle and a floor line."""
    img = Image.new("RGB", (width, height), color=(210, 205, 195))
    draw = ImageDraw.Draw(img)
    draw.rectangle([width // 4, height // 5, width // 2, height // 2], fill=(40, 60, 90))
    draw.line([(0, height * 3 // 4), (width, height * 3 // 4)], fill=(20, 20, 20), width=3)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def make_mpo_bytes(width: int = 160, height: int = 120) -> bytes:
    """Two-frame MPO, the multi-picture JPEG many phone cameras write."""
    first = Image.open(io.BytesIO(make_photo_bytes(width, height)))
    second = Image.new("RGB", (width, height), color=(90, 90, 90))
    buf = io.BytesIO()
    first.save(buf, format="MPO", save_all=True, append_images=[second])
    return buf.getvalue()


def make_tool_response(name: str, data: dict) -> MagicMock:
    """Anthropic Message stand-in carrying one tool_use block."""
    block = MagicMock()
    block.type = "tool_use"
    block.name = name
    block.input = data
    response = MagicMock()
    response.content = [block]
    return response


def make_text_response(text: str = "I can't do that") -> MagicMock:
    block = MagicMock()
    block.type = "text"
    block.text = text
    response = MagicMock()
    response.content = [block]
    return response


def make_httpx_response(status_code: int, body: str = "error") -> httpx.Response:
    """Build a minimal httpx.Response for constructing anthropic errors."""
    return httpx.Response(
        status_code=status_code,
        text=body,
        request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"),
    )


def make_anthropic_client(create: AsyncMock) -> MagicMock:
    client = MagicMock()
    client.messages = MagicMock()
    client.messages.create = create
    return client


def make_capabilities(
    generate: AsyncMock | None = None,
    validate: AsyncMock | None = None,
    with_validator: bool = True,
    depth_estimator: MagicMock | None = None,
) -> Capabilities:
    """Capabilities whose provider calls are AsyncMocks."""
    generator = MagicMock()
    generator.generate = generate or AsyncMock(
        return_value=GeneratedImage(data=make_photo_bytes(fmt="PNG"), mime_type="image/png")
    )
    analyzer = MagicMock()
    analyzer.analyze = AsyncMock()
    analyzer.quick_check = AsyncMock()

    validator = None
    if with_validator:
        validator = MagicMock()
        validator.validate = validate or AsyncMock(
            return_value=ValidationResult(is_acceptable=True, score=0.9)
        )
    return Capabilities(
        analyzer=analyzer,
        generator=generator,
        validator=validator,
        extractor=KeywordPreferenceExtractor(),
        depth_estimator=depth_estimator,
    )
