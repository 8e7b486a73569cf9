"""Temporal activities for the visualization pipeline.

``analyze_visualization_photo`` runs the vision analysis (or the quick
pre-check) and ``generate_visualization`` runs a concept batch. Both load
the photo, call into the pipeline and translate its error taxonomy into
``ApplicationError`` so Temporal's retry policy sees the same terminal vs
retryable split the pipeline uses internally.
"""

from __future__ import annotations

import asyncio

import structlog
from temporalio import activity
from temporalio.exceptions import ApplicationError

from visualizer.activities.analyze_room import analyze_or_degrade, quick_photo_analysis
from visualizer.activities.batch import run_batch
from visualizer.capabilities import Capabilities, build_capabilities
from visualizer.config import settings
from visualizer.errors import VisualizerError
from visualizer.models.contracts import (
    AnalyzeVisualizationPhotoInput,
    AnalyzeVisualizationPhotoOutput,
    ConceptOutput,
    DepthEstimate,
    GeneratedImage,
    GenerateVisualizationInput,
    GenerateVisualizationOutput,
    VisualizationConfig,
)
from visualizer.utils.depth import attach_depth_map
from visualizer.utils.edges import attach_edge_map
from visualizer.utils.http import load_photo

logger = structlog.get_logger()

_capabilities: Capabilities | None = None


def get_capabilities() -> Capabilities:
    """Process-wide capabilities, built from settings on first use."""
    global _capabilities
    if _capabilities is None:
        _capabilities = build_capabilities(settings)
    return _capabilities


def set_capabilities(capabilities: Capabilities | None) -> None:
    """Install (or clear, with None) the capabilities used by the activities."""
    global _capabilities
    _capabilities = capabilities


def _to_application_error(exc: VisualizerError) -> ApplicationError:
    return ApplicationError(
        f"{type(exc).__name__}: {exc.message[:200]}",
        type=type(exc).__name__,
        non_retryable=not exc.retryable,
    )


@activity.defn
async def analyze_visualization_photo(
    input: AnalyzeVisualizationPhotoInput,
) -> AnalyzeVisualizationPhotoOutput:
    """Analyze the room photo. Quick mode returns only the validity pre-check."""
    logger.info(
        "analyze_visualization_photo_start",
        quick=input.quick,
        room_type_hint=input.room_type_hint,
    )
    capabilities = get_capabilities()
    photo = await load_photo(input.photo_url, timeout=settings.photo_download_timeout_seconds)

    if input.quick:
        quick = await quick_photo_analysis(capabilities.analyzer, photo)
        return AnalyzeVisualizationPhotoOutput(quick=quick)

    try:
        analysis, degraded = await analyze_or_degrade(
            capabilities.analyzer, photo, input.room_type_hint
        )
    except VisualizerError as exc:
        raise _to_application_error(exc) from exc
    return AnalyzeVisualizationPhotoOutput(analysis=analysis, degraded=degraded)


async def _with_structural_conditioning(
    config: VisualizationConfig, photo: GeneratedImage, capabilities: Capabilities
) -> VisualizationConfig:
    """Add the edge map and the depth estimate, computed concurrently.

    Either one is skipped when disabled or already supplied by the caller.
    """

    async def edges() -> VisualizationConfig:
        if not settings.enable_edge_detection or config.has_edge_map:
            return config
        # Pillow work is CPU-bound; keep it off the event loop
        return await asyncio.to_thread(attach_edge_map, config, photo)

    async def depth() -> DepthEstimate | None:
        estimator = capabilities.depth_estimator
        if estimator is None or not settings.enable_depth_estimation or config.has_depth_map:
            return None
        return await estimator.estimate(photo)

    with_edges, estimate = await asyncio.gather(edges(), depth())
    return attach_depth_map(with_edges, estimate)


@activity.defn
async def generate_visualization(input: GenerateVisualizationInput) -> GenerateVisualizationOutput:
    """Generate up to four renovation concepts for one room photo."""
    logger.info(
        "generate_visualization_start",
        count=input.count,
        room_type=input.config.room_type,
        style=input.config.style,
        mode=input.config.mode,
    )
    capabilities = get_capabilities()
    photo = await load_photo(input.photo_url, timeout=settings.photo_download_timeout_seconds)

    config = await _with_structural_conditioning(input.config, photo, capabilities)
    batch = await run_batch(photo, config, input.count, capabilities)

    if not batch.concepts:
        primary = batch.errors.get(0)
        non_retryable = isinstance(primary, VisualizerError) and not primary.retryable
        raise ApplicationError(
            f"No concepts produced ({len(batch.errors)} failed)",
            type=type(primary).__name__ if primary else None,
            non_retryable=non_retryable,
        )

    logger.info(
        "generate_visualization_complete",
        requested=input.count,
        produced=len(batch.concepts),
    )
    return GenerateVisualizationOutput(
        concepts=[
            ConceptOutput(
                image_data_url=concept.image.to_data_url(),
                variation_index=concept.variation_index,
                was_refined=concept.was_refined,
                validation_score=concept.validation_score,
                description=concept.description,
            )
            for concept in batch.concepts
        ],
        requested=input.count,
    )
