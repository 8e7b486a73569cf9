"""Structural fidelity check: does the render still show the same room?

Claude compares the original photo with a generated concept and scores how
well walls, openings, perspective and lighting direction survived. A low
score is a signal for the control loop, not an error. Any failure of the
check itself raises ValidationUnavailable so the caller can fail open.
"""

from __future__ import annotations

import asyncio
from typing import Any

import anthropic
import structlog

from visualizer.errors import ValidationUnavailable
from visualizer.models.contracts import GeneratedImage, ValidationResult
from visualizer.utils.claude import extract_tool_input, image_block
from visualizer.utils.prompts import load_prompt

logger = structlog.get_logger()

MAX_TOKENS = 600

VALIDATE_STRUCTURE_TOOL: dict[str, Any] = {
    "name": "validate_structure",
    "description": "Record whether the generated image preserves the original room structure.",
    "input_schema": {
        "type": "object",
        "properties": {
            "structure_preserved": {
                "type": "boolean",
                "description": "Are the room dimensions and architecture preserved?",
            },
            "windows_doors_intact": {
                "type": "boolean",
                "description": "Are windows and doors in the same positions?",
            },
            "perspective_matches": {
                "type": "boolean",
                "description": "Does the camera angle/perspective match the original?",
            },
            "lighting_consistent": {
                "type": "boolean",
                "description": "Is the lighting direction consistent with the original?",
            },
            "overall_score": {
                "type": "number",
                "description": "Overall structure preservation score 0-1",
            },
            "issues": {"type": "array", "items": {"type": "string"}},
            "recommendations": {"type": "array", "items": {"type": "string"}},
        },
        "required": [
            "structure_preserved",
            "windows_doors_intact",
            "perspective_matches",
            "overall_score",
        ],
    },
}


def build_validation_result(data: dict[str, Any], threshold: float) -> ValidationResult:
    """Acceptable only when the score clears the threshold AND the three hard checks pass."""
    try:
        score = min(1.0, max(0.0, float(data.get("overall_score", 0.0))))
    except (TypeError, ValueError):
        score = 0.0
    hard_checks = all(
        data.get(key) is True
        for key in ("structure_preserved", "windows_doors_intact", "perspective_matches")
    )
    return ValidationResult(
        is_acceptable=score >= threshold and hard_checks,
        score=score,
        issues=[str(i) for i in data.get("issues") or [] if isinstance(i, str)],
        recommendations=[str(r) for r in data.get("recommendations") or [] if isinstance(r, str)],
    )


class ClaudeStructureValidator:
    """StructureValidator backed by a two-image Claude comparison."""

    def __init__(
        self,
        client: anthropic.AsyncAnthropic,
        model: str,
        timeout_s: float,
        threshold: float = 0.7,
    ) -> None:
        self._client = client
        self._model = model
        self._timeout_s = timeout_s
        self.threshold = threshold

    async def validate(
        self, original: GeneratedImage, generated: GeneratedImage
    ) -> ValidationResult:
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "Original room photo:"},
                    image_block(original),
                    {"type": "text", "text": "Generated renovation:"},
                    image_block(generated),
                ],
            }
        ]
        try:
            async with asyncio.timeout(self._timeout_s):
                response = await self._client.messages.create(  # type: ignore[call-overload]
                    model=self._model,
                    max_tokens=MAX_TOKENS,
                    system=load_prompt("validate_structure"),
                    tools=[VALIDATE_STRUCTURE_TOOL],
                    tool_choice={"type": "tool", "name": "validate_structure"},
                    messages=messages,
                )
        except TimeoutError as exc:
            raise ValidationUnavailable(
                f"Structure validation timed out after {self._timeout_s:.0f}s",
                capability="validator",
            ) from exc
        except anthropic.APIError as exc:
            logger.error(
                "structure_validation_api_error",
                error_type=type(exc).__name__,
                exc_info=True,
            )
            raise ValidationUnavailable(
                f"Structure validation failed: {type(exc).__name__}", capability="validator"
            ) from exc

        data = extract_tool_input(response, "validate_structure")
        if not data:
            raise ValidationUnavailable(
                "Claude did not return validate_structure tool call", capability="validator"
            )

        result = build_validation_result(data, self.threshold)
        logger.info(
            "structure_validation",
            score=result.score,
            acceptable=result.is_acceptable,
            issue_count=len(result.issues),
        )
        return result
