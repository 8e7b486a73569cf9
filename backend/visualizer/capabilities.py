"""Capability seams to the external AI providers.

Clients are built once at process start by ``build_capabilities`` and passed
to every component that needs them. Nothing in the pipeline looks a provider
client up globally.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

import structlog

from visualizer.activities.analyze_room import ClaudeVisionAnalyzer
from visualizer.activities.extraction import (
    KeywordPreferenceExtractor,
    PreferenceExtractor,
    build_extractor,
)
from visualizer.activities.validation import ClaudeStructureValidator
from visualizer.models.contracts import (
    DepthEstimate,
    GeneratedImage,
    QuickAnalysis,
    ReferenceImage,
    RoomAnalysis,
    RoomType,
    ValidationResult,
)
from visualizer.utils import claude, gemini
from visualizer.utils.depth import ReplicateDepthEstimator

if TYPE_CHECKING:
    from visualizer.config import Settings

logger = structlog.get_logger()


class VisionAnalyzer(Protocol):
    async def analyze(
        self, image: GeneratedImage, hint: RoomType | None = None
    ) -> RoomAnalysis: ...

    async def quick_check(self, image: GeneratedImage) -> QuickAnalysis: ...


class ImageGenerator(Protocol):
    async def generate(
        self,
        prompt: str,
        input_image: GeneratedImage | None = None,
        reference_images: Sequence[ReferenceImage] = (),
    ) -> GeneratedImage: ...


class DepthEstimator(Protocol):
    async def estimate(self, photo: GeneratedImage) -> DepthEstimate | None: ...


class StructureValidator(Protocol):
    async def validate(
        self, original: GeneratedImage, generated: GeneratedImage
    ) -> ValidationResult: ...


@dataclass
class Capabilities:
    """Everything the pipeline calls out to. ``validator=None`` means always accept."""

    analyzer: VisionAnalyzer
    generator: ImageGenerator
    validator: StructureValidator | None = None
    extractor: PreferenceExtractor = field(default_factory=KeywordPreferenceExtractor)
    depth_estimator: DepthEstimator | None = None


def build_capabilities(settings: Settings) -> Capabilities:
    """Construct the provider-backed capabilities from settings.

    A missing Gemini key leaves a generator that raises CapabilityUnavailable
    on use. A missing Anthropic key leaves no validator and an analyzer that
    raises CapabilityUnavailable.

    Depth estimation is built whenever it is enabled; without a Replicate
    token it logs and returns None per call.
    """
    anthropic_client = claude.get_async_client(settings.anthropic_api_key)
    gemini_client = gemini.get_client(settings.google_ai_api_key)

    validator: StructureValidator | None = None
    if anthropic_client is not None and settings.enable_structure_validation:
        validator = ClaudeStructureValidator(
            anthropic_client,
            settings.validation_model,
            settings.validation_timeout_seconds,
            threshold=settings.validation_threshold,
        )

    depth_estimator: DepthEstimator | None = None
    if settings.enable_depth_estimation:
        depth_estimator = ReplicateDepthEstimator(
            settings.replicate_api_token, settings.depth_model, settings.depth_timeout_seconds
        )

    logger.info(
        "capabilities_built",
        vision=anthropic_client is not None,
        generator=gemini_client is not None,
        validator=validator is not None,
        depth=depth_estimator is not None and bool(settings.replicate_api_token),
        extractor=settings.preference_extractor,
    )
    return Capabilities(
        analyzer=ClaudeVisionAnalyzer(
            anthropic_client, settings.vision_model, settings.analysis_timeout_seconds
        ),
        generator=gemini.GeminiImageGenerator(gemini_client, settings.gemini_model),
        validator=validator,
        extractor=build_extractor(settings, anthropic_client),
        depth_estimator=depth_estimator,
    )
