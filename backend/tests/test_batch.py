"""Tests for parallel concept batches."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
import structlog

from tests.helpers import make_capabilities
from visualizer.activities.batch import generate_concepts, run_batch
from visualizer.activities.generate import RetryPolicy
from visualizer.errors import CapabilityQuotaExceeded, GenerationFailed
from visualizer.models.contracts import ConceptResult, GeneratedImage, VisualizationConfig

POLICY = RetryPolicy(max_refinement_retries=0, attempt_timeout_s=5.0)
CONFIG = VisualizationConfig(room_type="bathroom", style="minimalist")


def _prompt_index(prompt: str) -> int:
    for idx in range(1, 4):
        if f"=== VARIATION {idx + 1} ===" in prompt:
            return idx
    return 0


class TestRunBatch:
    @pytest.mark.asyncio
    async def test_four_concepts_in_order(self, room_photo: GeneratedImage) -> None:
        caps = make_capabilities(with_validator=False)
        concepts = await generate_concepts(room_photo, CONFIG, 4, caps, POLICY)
        assert [c.variation_index for c in concepts] == [0, 1, 2, 3]
        assert caps.generator.generate.await_count == 4
        prompts = {call.args[0] for call in caps.generator.generate.call_args_list}
        assert len(prompts) == 4

    @pytest.mark.asyncio
    async def test_one_terminal_failure_drops_only_that_concept(
        self, room_photo: GeneratedImage
    ) -> None:
        async def fail_index_two(prompt: str, **kwargs) -> GeneratedImage:
            if _prompt_index(prompt) == 2:
                raise CapabilityQuotaExceeded("429")
            return GeneratedImage(data=b"img", mime_type="image/png")

        caps = make_capabilities(
            generate=AsyncMock(side_effect=fail_index_two), with_validator=False
        )
        batch = await run_batch(room_photo, CONFIG, 4, caps, POLICY)

        assert [c.variation_index for c in batch.concepts] == [0, 1, 3]
        assert set(batch.errors) == {2}
        assert isinstance(batch.errors[2], CapabilityQuotaExceeded)
        assert batch.requested == 4

    @pytest.mark.asyncio
    async def test_all_failures_give_empty_result(self, room_photo: GeneratedImage) -> None:
        caps = make_capabilities(
            generate=AsyncMock(side_effect=GenerationFailed("boom")), with_validator=False
        )
        batch = await run_batch(room_photo, CONFIG, 2, caps, POLICY)
        assert batch.concepts == []
        assert set(batch.errors) == {0, 1}

    @pytest.mark.asyncio
    async def test_results_sorted_even_when_completed_out_of_order(
        self, room_photo: GeneratedImage
    ) -> None:
        async def reverse_speed(prompt: str, **kwargs) -> GeneratedImage:
            await asyncio.sleep(0.01 * (3 - _prompt_index(prompt)))
            return GeneratedImage(data=b"img", mime_type="image/png")

        caps = make_capabilities(
            generate=AsyncMock(side_effect=reverse_speed), with_validator=False
        )
        concepts = await generate_concepts(room_photo, CONFIG, 4, caps, POLICY)
        assert [c.variation_index for c in concepts] == [0, 1, 2, 3]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [0, 5, -1])
    async def test_count_out_of_range(self, room_photo: GeneratedImage, count: int) -> None:
        caps = make_capabilities()
        with pytest.raises(ValueError, match="count must be between 1 and 4"):
            await run_batch(room_photo, CONFIG, count, caps, POLICY)
        caps.generator.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_single_concept(self, room_photo: GeneratedImage) -> None:
        caps = make_capabilities(with_validator=False)
        concepts = await generate_concepts(room_photo, CONFIG, 1, caps, POLICY)
        assert len(concepts) == 1
        assert concepts[0].variation_index == 0

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, room_photo: GeneratedImage) -> None:
        async def cancelled(*args, **kwargs) -> ConceptResult:
            raise asyncio.CancelledError()

        caps = make_capabilities()
        with patch("visualizer.activities.batch.generate_concept", side_effect=cancelled):
            with pytest.raises(asyncio.CancelledError):
                await run_batch(room_photo, CONFIG, 2, caps, POLICY)

    @pytest.mark.asyncio
    async def test_each_concept_gets_variation_log_context(
        self, room_photo: GeneratedImage
    ) -> None:
        seen: list[int] = []

        async def capture(prompt: str, **kwargs) -> GeneratedImage:
            seen.append(structlog.contextvars.get_contextvars()["variation_index"])
            return GeneratedImage(data=b"img", mime_type="image/png")

        caps = make_capabilities(generate=AsyncMock(side_effect=capture), with_validator=False)
        await run_batch(room_photo, CONFIG, 3, caps, POLICY)
        assert sorted(seen) == [0, 1, 2]
