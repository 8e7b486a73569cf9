"""Generate -> validate -> retry control loop for one concept.

Each attempt compiles the prompt, calls the image generator under a fixed
time bound and, for the primary concept only, asks the structure validator
whether the room survived. A rejected render is regenerated with a
reinforcement clause naming the measured score. Validation is an
enhancement, not a gate: an exhausted budget returns the best attempt, and
a broken validator accepts the current render.

Retry progress lives in an explicit ``RetryState`` advanced by a bounded
``while`` loop.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from visualizer.activities.prompt_builder import (
    build_concept_description,
    build_reinforcement_clause,
    compile_for_config,
)
from visualizer.config import Settings, settings
from visualizer.errors import GenerationEmpty, GenerationTimeout, VisualizerError
from visualizer.models.contracts import (
    ConceptResult,
    GeneratedImage,
    ValidationResult,
    VisualizationConfig,
)

if TYPE_CHECKING:
    from visualizer.capabilities import Capabilities

logger = structlog.get_logger()


@dataclass(frozen=True)
class RetryPolicy:
    max_refinement_retries: int = 1
    max_validation_attempts: int = 2
    attempt_timeout_s: float = 120.0
    enable_refinement: bool = True

    @classmethod
    def from_settings(cls, config: Settings = settings) -> RetryPolicy:
        return cls(
            max_refinement_retries=config.max_refinement_retries,
            max_validation_attempts=config.max_validation_attempts,
            attempt_timeout_s=config.generation_timeout_seconds,
            enable_refinement=config.enable_iterative_refinement,
        )


@dataclass(frozen=True)
class Attempt:
    image: GeneratedImage
    score: float | None
    reinforced: bool


@dataclass
class RetryState:
    """Bounded retry bookkeeping. ``attempt`` counts attempts already made."""

    max_retries: int
    attempt: int = 0
    last_error: VisualizerError | None = None
    best: Attempt | None = None
    reinforcement: str | None = None

    @property
    def exhausted(self) -> bool:
        return self.attempt > self.max_retries

    def record(self, candidate: Attempt) -> None:
        if self.best is None or (candidate.score or 0.0) > (self.best.score or 0.0):
            self.best = candidate


async def _generate_once(
    prompt: str,
    image: GeneratedImage,
    config: VisualizationConfig,
    capabilities: Capabilities,
    timeout_s: float,
) -> GeneratedImage:
    try:
        async with asyncio.timeout(timeout_s):
            return await capabilities.generator.generate(
                prompt, input_image=image, reference_images=config.reference_images
            )
    except TimeoutError as exc:
        raise GenerationTimeout(
            f"Generation attempt exceeded {timeout_s:.0f}s", capability="generator"
        ) from exc


async def _validate(
    capabilities: Capabilities,
    original: GeneratedImage,
    generated: GeneratedImage,
) -> ValidationResult | None:
    """Validator verdict, or None when the validator itself failed (fail open)."""
    assert capabilities.validator is not None
    try:
        return await capabilities.validator.validate(original, generated)
    except Exception as exc:
        logger.warning(
            "structure_validation_unavailable",
            error_type=type(exc).__name__,
            error=str(exc)[:200],
        )
        return None


async def generate_concept(
    image: GeneratedImage,
    config: VisualizationConfig,
    capabilities: Capabilities,
    variation_index: int = 0,
    policy: RetryPolicy | None = None,
) -> ConceptResult:
    """Produce one concept. Raises only terminal errors or, when no attempt
    produced an image at all, the last attempt's error."""
    policy = policy or RetryPolicy.from_settings()
    refine = (
        variation_index == 0
        and policy.enable_refinement
        and capabilities.validator is not None
    )
    state = RetryState(max_retries=policy.max_refinement_retries)

    def finish(chosen: Attempt) -> ConceptResult:
        logger.info(
            "concept_complete",
            variation_index=variation_index,
            attempts=state.attempt,
            was_refined=chosen.reinforced,
            validation_score=chosen.score,
        )
        return ConceptResult(
            image=chosen.image,
            variation_index=variation_index,
            was_refined=chosen.reinforced,
            validation_score=chosen.score,
            attempts=max(1, state.attempt),
            description=build_concept_description(
                config.room_type,
                config.style,
                variation_index,
                custom_room_type=config.custom_room_type,
                custom_style=config.custom_style,
            ),
        )

    while not state.exhausted:
        reinforced = state.reinforcement is not None
        prompt = compile_for_config(config, variation_index, state.reinforcement)
        attempt_number = state.attempt
        state.attempt += 1

        try:
            generated = await _generate_once(
                prompt, image, config, capabilities, policy.attempt_timeout_s
            )
        except VisualizerError as exc:
            if not exc.retryable:
                logger.error(
                    "concept_terminal_error",
                    variation_index=variation_index,
                    error_type=type(exc).__name__,
                    capability=exc.capability,
                )
                raise
            logger.warning(
                "concept_attempt_failed",
                variation_index=variation_index,
                attempt=attempt_number,
                error_type=type(exc).__name__,
                error=exc.message[:200],
            )
            state.last_error = exc
            continue

        if not refine or attempt_number >= policy.max_validation_attempts:
            return finish(Attempt(generated, None, reinforced))

        validation = await _validate(capabilities, image, generated)
        if validation is None:
            return finish(Attempt(generated, None, reinforced))

        candidate = Attempt(generated, validation.score, reinforced)
        state.record(candidate)
        if validation.is_acceptable:
            return finish(candidate)

        logger.info(
            "concept_validation_rejected",
            variation_index=variation_index,
            attempt=attempt_number,
            score=validation.score,
            issues=validation.issues[:5],
        )
        state.reinforcement = build_reinforcement_clause(validation.score)

    if state.best is not None:
        logger.info("concept_retries_exhausted", variation_index=variation_index)
        return finish(state.best)

    raise state.last_error or GenerationEmpty(
        "No image produced", capability="generator"
    )
