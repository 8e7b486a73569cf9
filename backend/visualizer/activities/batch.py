"""Parallel concept batch: one control loop per variation index.

A failed concept never sinks its siblings. Only cancellation of the batch
itself propagates; every other failure is logged and left out of the result.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from visualizer.activities.generate import RetryPolicy, generate_concept
from visualizer.logging import bound_log_context
from visualizer.models.contracts import ConceptResult, GeneratedImage, VisualizationConfig

if TYPE_CHECKING:
    from visualizer.capabilities import Capabilities

logger = structlog.get_logger()

MAX_CONCEPTS = 4


@dataclass
class BatchResult:
    concepts: list[ConceptResult] = field(default_factory=list)
    errors: dict[int, BaseException] = field(default_factory=dict)

    @property
    def requested(self) -> int:
        return len(self.concepts) + len(self.errors)


async def _tagged(
    image: GeneratedImage,
    config: VisualizationConfig,
    capabilities: Capabilities,
    variation_index: int,
    policy: RetryPolicy | None,
) -> ConceptResult:
    with bound_log_context(variation_index=variation_index):
        return await generate_concept(image, config, capabilities, variation_index, policy)


async def run_batch(
    image: GeneratedImage,
    config: VisualizationConfig,
    count: int,
    capabilities: Capabilities,
    policy: RetryPolicy | None = None,
) -> BatchResult:
    """Run ``count`` concepts concurrently and keep per-index failures."""
    if not 1 <= count <= MAX_CONCEPTS:
        raise ValueError(f"count must be between 1 and {MAX_CONCEPTS}, got {count}")

    logger.info(
        "concept_batch_started",
        count=count,
        room_type=config.room_type,
        style=config.style,
        mode=config.mode,
    )
    outcomes = await asyncio.gather(
        *(_tagged(image, config, capabilities, idx, policy) for idx in range(count)),
        return_exceptions=True,
    )

    result = BatchResult()
    for idx, outcome in enumerate(outcomes):
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
        if isinstance(outcome, BaseException):
            logger.warning(
                "concept_failed",
                variation_index=idx,
                error_type=type(outcome).__name__,
                error=str(outcome)[:200],
            )
            result.errors[idx] = outcome
        else:
            result.concepts.append(outcome)

    result.concepts.sort(key=lambda c: c.variation_index)
    logger.info(
        "concept_batch_complete",
        requested=count,
        produced=len(result.concepts),
        failed=sorted(result.errors),
    )
    return result


async def generate_concepts(
    image: GeneratedImage,
    config: VisualizationConfig,
    count: int,
    capabilities: Capabilities,
    policy: RetryPolicy | None = None,
) -> list[ConceptResult]:
    """Successful concepts in variation order. May be shorter than ``count``."""
    batch = await run_batch(image, config, count, capabilities, policy)
    return batch.concepts
