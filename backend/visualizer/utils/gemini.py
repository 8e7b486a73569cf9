"""Gemini image generation client.

One standalone ``generate_content`` call per attempt: source photo, any
structural reference images, then the compiled prompt. The SDK call is
synchronous, so it runs in a worker thread; time bounds are applied by the
control loop around ``generate``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any

import structlog
from google import genai
from google.genai import types

from visualizer.errors import (
    CapabilityQuotaExceeded,
    CapabilityUnavailable,
    GenerationEmpty,
    GenerationFailed,
    VisualizerError,
)
from visualizer.models.contracts import GeneratedImage, ReferenceImage
from visualizer.utils.image import SUPPORTED_RATIOS, detect_aspect_ratio, open_image

logger = structlog.get_logger()

MAX_INPUT_IMAGES = 14  # Gemini Pro image model limit

IMAGE_CONFIG = types.GenerateContentConfig(
    response_modalities=["TEXT", "IMAGE"],
)

_REFERENCE_LABELS = {
    "edges": "[Edge map of the original room: keep every structural line where it is]",
    "depth": "[Depth map of the original room: keep every surface at this depth]",
}


def get_client(api_key: str) -> genai.Client | None:
    """Gemini client for the configured key, or None when Gemini is not configured."""
    if not api_key:
        return None
    return genai.Client(api_key=api_key)


def make_image_config(aspect_ratio: str | None = None) -> types.GenerateContentConfig:
    """Per-call config, matching the output aspect ratio to the source photo when known."""
    if aspect_ratio is None:
        return IMAGE_CONFIG
    if aspect_ratio not in SUPPORTED_RATIOS:
        logger.warning("unsupported_aspect_ratio", aspect_ratio=aspect_ratio)
        return IMAGE_CONFIG
    return types.GenerateContentConfig(
        response_modalities=["TEXT", "IMAGE"],
        image_config=types.ImageConfig(image_size="2K", aspect_ratio=aspect_ratio),
    )


def extract_image(response: types.GenerateContentResponse) -> GeneratedImage | None:
    """First inline image of a Gemini response, or None if it only returned text."""
    if not response.candidates:
        return None
    content = response.candidates[0].content
    if content is None or content.parts is None:
        return None
    for part in content.parts:
        inline = part.inline_data
        if inline is not None and inline.data:
            return GeneratedImage(data=inline.data, mime_type=inline.mime_type or "image/png")
    return None


def extract_text(response: types.GenerateContentResponse) -> str:
    """Extract all text parts from a Gemini response."""
    if not response.candidates:
        return ""
    content = response.candidates[0].content
    if content is None or content.parts is None:
        return ""
    return "\n".join(part.text for part in content.parts if part.text is not None)


def classify_error(exc: Exception) -> VisualizerError:
    """Map a google-genai failure onto the pipeline taxonomy by message inspection."""
    # TODO: Catch typed google.genai exceptions when SDK stabilizes
    error_type = type(exc).__name__
    error_msg = str(exc)
    if "429" in error_msg or "RESOURCE_EXHAUSTED" in error_msg or "ResourceExhausted" in error_type:
        return CapabilityQuotaExceeded("Gemini rate limited", capability="generator")
    if "API key" in error_msg or "API_KEY_INVALID" in error_msg or "PERMISSION_DENIED" in error_msg:
        return CapabilityUnavailable(
            f"Gemini credentials rejected: {error_msg[:200]}", capability="generator"
        )
    if "SAFETY" in error_msg or "blocked" in error_msg.lower():
        return GenerationEmpty(
            f"Content policy block: {error_msg[:200]}", capability="generator"
        )
    return GenerationFailed(
        f"Generation failed: {error_type}: {error_msg[:200]}", capability="generator"
    )


def build_contents(
    prompt: str,
    input_image: GeneratedImage | None = None,
    reference_images: Sequence[ReferenceImage] = (),
) -> list[Any]:
    """Source photo first, labelled reference images next, prompt last."""
    contents: list[Any] = []
    if input_image is not None:
        contents.append(
            types.Part.from_bytes(data=input_image.data, mime_type=input_image.mime_type)
        )
    budget = MAX_INPUT_IMAGES - len(contents)
    if len(reference_images) > budget:
        logger.warning(
            "reference_images_truncated", original_count=len(reference_images), kept=budget
        )
    for ref in list(reference_images)[:budget]:
        contents.append(_REFERENCE_LABELS[ref.role])
        contents.append(types.Part.from_bytes(data=ref.data, mime_type=ref.mime_type))
    contents.append(prompt)
    return contents


class GeminiImageGenerator:
    """ImageGenerator backed by the Gemini image model."""

    def __init__(self, client: genai.Client | None, model: str) -> None:
        self._client = client
        self._model = model

    def _config_for(self, input_image: GeneratedImage | None) -> types.GenerateContentConfig:
        if input_image is None:
            return IMAGE_CONFIG
        try:
            return make_image_config(detect_aspect_ratio(open_image(input_image.data)))
        except ValueError:
            logger.warning("aspect_ratio_detection_failed", size_bytes=len(input_image.data))
            return IMAGE_CONFIG

    async def _call(self, contents: list[Any], config: types.GenerateContentConfig) -> Any:
        assert self._client is not None
        try:
            return await asyncio.to_thread(
                self._client.models.generate_content,
                model=self._model,
                contents=contents,
                config=config,
            )
        except Exception as exc:
            raise classify_error(exc) from exc

    async def generate(
        self,
        prompt: str,
        input_image: GeneratedImage | None = None,
        reference_images: Sequence[ReferenceImage] = (),
    ) -> GeneratedImage:
        if self._client is None:
            raise CapabilityUnavailable("GOOGLE_AI_API_KEY not set", capability="generator")

        contents = build_contents(prompt, input_image, reference_images)
        config = self._config_for(input_image)

        logger.info(
            "gemini_generate_start",
            has_input_image=input_image is not None,
            num_reference_images=len(reference_images),
            prompt_chars=len(prompt),
        )
        response = await self._call(contents, config)
        image = extract_image(response)

        if image is None:
            # Retry once with explicit image request
            logger.warning("gemini_no_image_response", gemini_text=extract_text(response)[:300])
            response = await self._call(contents + ["Please generate the room image now."], config)
            image = extract_image(response)

        if image is None:
            text = extract_text(response)
            raise GenerationEmpty(
                f"Gemini returned text-only response: {text[:200]}", capability="generator"
            )
        return image
