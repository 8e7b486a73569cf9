"""Tests for the structural fidelity validator."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import anthropic
import pytest

from tests.helpers import make_anthropic_client, make_text_response, make_tool_response
from visualizer.activities.validation import ClaudeStructureValidator, build_validation_result
from visualizer.errors import ValidationUnavailable
from visualizer.models.contracts import GeneratedImage

PASSING = {
    "structure_preserved": True,
    "windows_doors_intact": True,
    "perspective_matches": True,
    "lighting_consistent": True,
    "overall_score": 0.86,
    "issues": [],
    "recommendations": [],
}


class TestBuildValidationResult:
    def test_acceptable_above_threshold(self) -> None:
        result = build_validation_result(PASSING, 0.7)
        assert result.is_acceptable is True
        assert result.score == 0.86

    def test_threshold_is_inclusive(self) -> None:
        result = build_validation_result({**PASSING, "overall_score": 0.7}, 0.7)
        assert result.is_acceptable is True

    def test_below_threshold_rejected(self) -> None:
        result = build_validation_result({**PASSING, "overall_score": 0.55}, 0.7)
        assert result.is_acceptable is False

    @pytest.mark.parametrize(
        "check", ["structure_preserved", "windows_doors_intact", "perspective_matches"]
    )
    def test_failed_hard_check_rejected_despite_score(self, check: str) -> None:
        result = build_validation_result({**PASSING, check: False, "overall_score": 0.95}, 0.7)
        assert result.is_acceptable is False

    def test_lighting_is_not_a_hard_check(self) -> None:
        result = build_validation_result({**PASSING, "lighting_consistent": False}, 0.7)
        assert result.is_acceptable is True

    def test_score_is_clamped(self) -> None:
        assert build_validation_result({**PASSING, "overall_score": 3}, 0.7).score == 1.0
        assert build_validation_result({**PASSING, "overall_score": "bad"}, 0.7).score == 0.0

    def test_issues_filtered_to_strings(self) -> None:
        result = build_validation_result({**PASSING, "issues": ["window moved", 4, None]}, 0.7)
        assert result.issues == ["window moved"]


class TestClaudeStructureValidator:
    @pytest.mark.asyncio
    async def test_sends_both_images(
        self, room_photo: GeneratedImage, rendered_image: GeneratedImage
    ) -> None:
        create = AsyncMock(return_value=make_tool_response("validate_structure", PASSING))
        validator = ClaudeStructureValidator(make_anthropic_client(create), "validator", 5.0)
        result = await validator.validate(room_photo, rendered_image)
        assert result.is_acceptable is True
        content = create.call_args.kwargs["messages"][0]["content"]
        images = [block for block in content if block["type"] == "image"]
        assert [img["source"]["media_type"] for img in images] == ["image/jpeg", "image/png"]

    @pytest.mark.asyncio
    async def test_uses_configured_threshold(
        self, room_photo: GeneratedImage, rendered_image: GeneratedImage
    ) -> None:
        create = AsyncMock(return_value=make_tool_response("validate_structure", PASSING))
        validator = ClaudeStructureValidator(
            make_anthropic_client(create), "validator", 5.0, threshold=0.9
        )
        result = await validator.validate(room_photo, rendered_image)
        assert result.is_acceptable is False

    @pytest.mark.asyncio
    async def test_api_error_is_unavailable(
        self, room_photo: GeneratedImage, rendered_image: GeneratedImage
    ) -> None:
        error = anthropic.APIConnectionError(request=MagicMock())
        validator = ClaudeStructureValidator(
            make_anthropic_client(AsyncMock(side_effect=error)), "validator", 5.0
        )
        with pytest.raises(ValidationUnavailable):
            await validator.validate(room_photo, rendered_image)

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(
        self, room_photo: GeneratedImage, rendered_image: GeneratedImage
    ) -> None:
        validator = ClaudeStructureValidator(
            make_anthropic_client(AsyncMock(side_effect=TimeoutError())), "validator", 5.0
        )
        with pytest.raises(ValidationUnavailable, match="timed out"):
            await validator.validate(room_photo, rendered_image)

    @pytest.mark.asyncio
    async def test_missing_tool_call_is_unavailable(
        self, room_photo: GeneratedImage, rendered_image: GeneratedImage
    ) -> None:
        validator = ClaudeStructureValidator(
            make_anthropic_client(AsyncMock(return_value=make_text_response())), "validator", 5.0
        )
        with pytest.raises(ValidationUnavailable):
            await validator.validate(room_photo, rendered_image)
