"""Room photo analysis: the structural "read the room" step.

Sends the source photo to Claude for a structured reading before the
conversation starts. The fields it returns (walls, openings, lighting
direction, preservation constraints) feed straight into the prompt
compiler, so the instruction set is fixed and exhaustive rather than
creative. All instructions live in backend/prompts/analyze_room.txt.

Analysis failure never blocks the flow: ``analyze_or_degrade`` falls back
to a neutral low-confidence analysis. Only terminal capability errors
(missing credentials, quota) reach the caller.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, get_args

import anthropic
import structlog

from visualizer.errors import AnalysisFailed, CapabilityUnavailable, VisualizerError
from visualizer.models.contracts import (
    ArchitecturalLines,
    GeneratedImage,
    Opening,
    QuickAnalysis,
    RoomAnalysis,
    RoomCondition,
    RoomType,
    SpatialZone,
    WallDimension,
)
from visualizer.utils.claude import classify_error, extract_tool_input, image_block
from visualizer.utils.prompts import load_prompt

if TYPE_CHECKING:
    from visualizer.capabilities import VisionAnalyzer

log = structlog.get_logger("analyze_room")

MAX_TOKENS = 2500
QUICK_MAX_TOKENS = 300

ROOM_TYPES: tuple[str, ...] = get_args(RoomType)
CONDITIONS: tuple[str, ...] = get_args(RoomCondition)

NEUTRAL_CONSTRAINTS: tuple[str, ...] = (
    "wall positions and room dimensions",
    "window and door positions",
    "ceiling height",
    "camera angle and perspective",
)

_STRING_LIST = {"type": "array", "items": {"type": "string"}}

# Tool schema for structured output, mirrors the RoomAnalysis contract
ANALYZE_ROOM_TOOL: dict[str, Any] = {
    "name": "analyze_room",
    "description": (
        "Record your structured analysis of the room photo. "
        "Fill every field you can determine; leave optional ones null."
    ),
    "input_schema": {
        "type": "object",
        "properties": {
            "room_type": {"type": "string", "enum": list(ROOM_TYPES)},
            "current_condition": {"type": "string", "enum": list(CONDITIONS)},
            "structural_elements": {
                **_STRING_LIST,
                "description": "Architectural elements to preserve, most important first",
            },
            "identified_fixtures": {**_STRING_LIST, "description": "Major fixtures and features"},
            "layout_type": {
                "type": "string",
                "description": "Layout pattern (galley, L-shaped...)",
            },
            "lighting_conditions": {
                "type": "string",
                "description": "Natural light direction, time of day, artificial sources, shadows",
            },
            "perspective_notes": {
                "type": "string",
                "description": "Camera position, height, focal length, foreground/background",
            },
            "preservation_constraints": {
                **_STRING_LIST,
                "description": "What cannot change (plumbing, openings, ceiling height...)",
            },
            "confidence_score": {"type": "number", "description": "Confidence 0.0-1.0"},
            "current_style": {"type": ["string", "null"]},
            "estimated_dimensions": {"type": ["string", "null"]},
            "potential_focal_points": {"type": ["array", "null"], "items": {"type": "string"}},
            "wall_count": {"type": ["integer", "null"], "description": "Visible walls, 0-6"},
            "wall_dimensions": {
                "type": ["array", "null"],
                "items": {
                    "type": "object",
                    "properties": {
                        "wall": {"type": "string"},
                        "estimated_length": {"type": "string"},
                        "has_window": {"type": "boolean"},
                        "has_door": {"type": "boolean"},
                    },
                    "required": ["wall", "estimated_length"],
                },
            },
            "estimated_ceiling_height": {"type": ["string", "null"]},
            "spatial_zones": {
                "type": ["array", "null"],
                "items": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string"},
                        "description": {"type": "string"},
                        "approximate_location": {"type": "string"},
                    },
                    "required": ["name"],
                },
            },
            "openings": {
                "type": ["array", "null"],
                "items": {
                    "type": "object",
                    "properties": {
                        "type": {"type": "string", "enum": ["window", "door", "archway"]},
                        "wall": {"type": "string"},
                        "approximate_size": {"type": "string"},
                        "approximate_position": {"type": "string"},
                    },
                    "required": ["type", "wall"],
                },
            },
            "architectural_lines": {
                "type": ["object", "null"],
                "properties": {
                    "dominant_direction": {"type": "string"},
                    "vanishing_point_description": {"type": "string"},
                    "symmetry_axis": {"type": ["string", "null"]},
                },
            },
        },
        "required": [
            "room_type",
            "current_condition",
            "structural_elements",
            "identified_fixtures",
            "layout_type",
            "lighting_conditions",
            "perspective_notes",
            "preservation_constraints",
            "confidence_score",
        ],
    },
}

QUICK_CHECK_TOOL: dict[str, Any] = {
    "name": "quick_check",
    "description": "Record the quick validity check for the photo.",
    "input_schema": {
        "type": "object",
        "properties": {
            "room_type": {"type": "string", "enum": list(ROOM_TYPES)},
            "is_valid": {"type": "boolean"},
            "issues": _STRING_LIST,
            "confidence": {"type": "number"},
        },
        "required": ["room_type", "is_valid", "confidence"],
    },
}


def build_messages(image: GeneratedImage, hint: RoomType | None = None) -> list[dict[str, Any]]:
    """Single user turn: the photo, then the room-type hint if the user gave one."""
    content: list[dict[str, Any]] = [image_block(image)]
    if hint:
        content.append(
            {
                "type": "text",
                "text": f"The homeowner has indicated this is a {hint.replace('_', ' ')}.",
            }
        )
    content.append({"type": "text", "text": "Analyze this room photo following your protocol."})
    return [{"role": "user", "content": content}]


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if isinstance(v, (str, int, float)) and str(v).strip()]


def _opt_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _clamp_confidence(value: Any, default: float = 0.5) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return default
    return min(1.0, max(0.0, score))


def _room_type(value: Any, hint: RoomType | None = None) -> RoomType:
    if isinstance(value, str):
        key = value.strip().lower().replace(" ", "_")
        if key in ROOM_TYPES:
            return key  # type: ignore[return-value]
    log.warning("analyze_room_unknown_room_type", value=repr(value)[:100], hint=hint)
    return hint or "other"


def _condition(value: Any) -> RoomCondition:
    if isinstance(value, str):
        key = value.strip().lower().replace(" ", "_")
        if key in CONDITIONS:
            return key  # type: ignore[return-value]
    return "dated"


def _wall_count(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    count = int(value)
    return count if 0 <= count <= 6 else None


def _walls(items: Any) -> list[WallDimension] | None:
    if not isinstance(items, list):
        return None
    walls = []
    for item in items:
        if not isinstance(item, dict):
            continue
        if _opt_str(item.get("wall")) and _opt_str(item.get("estimated_length")):
            walls.append(
                WallDimension(
                    wall=item["wall"].strip(),
                    estimated_length=item["estimated_length"].strip(),
                    has_window=bool(item.get("has_window", False)),
                    has_door=bool(item.get("has_door", False)),
                )
            )
        else:
            log.warning("skipped_malformed_wall", data=repr(item)[:200])
    return walls


def _zones(items: Any) -> list[SpatialZone] | None:
    if not isinstance(items, list):
        return None
    zones = []
    for item in items:
        if isinstance(item, dict) and _opt_str(item.get("name")):
            zones.append(
                SpatialZone(
                    name=item["name"].strip(),
                    description=_opt_str(item.get("description")) or "",
                    approximate_location=_opt_str(item.get("approximate_location")) or "",
                )
            )
        else:
            log.warning("skipped_malformed_zone", data=repr(item)[:200])
    return zones


def _openings(items: Any) -> list[Opening] | None:
    if not isinstance(items, list):
        return None
    openings = []
    for item in items:
        kind = item.get("type") if isinstance(item, dict) else None
        if kind in ("window", "door", "archway") and _opt_str(item.get("wall")):
            openings.append(
                Opening(
                    type=kind,
                    wall=item["wall"].strip(),
                    approximate_size=_opt_str(item.get("approximate_size")) or "",
                    approximate_position=_opt_str(item.get("approximate_position")) or "",
                )
            )
        else:
            log.warning("skipped_malformed_opening", data=repr(item)[:200])
    return openings


def _lines(data: Any) -> ArchitecturalLines | None:
    if not isinstance(data, dict):
        return None
    direction = _opt_str(data.get("dominant_direction"))
    vanishing = _opt_str(data.get("vanishing_point_description"))
    if not (direction and vanishing):
        log.warning("skipped_malformed_architectural_lines", data=repr(data)[:200])
        return None
    return ArchitecturalLines(
        dominant_direction=direction,
        vanishing_point_description=vanishing,
        symmetry_axis=_opt_str(data.get("symmetry_axis")),
    )


def build_room_analysis(data: dict[str, Any], hint: RoomType | None = None) -> RoomAnalysis:
    """Convert raw tool call data into a RoomAnalysis model.

    Malformed nested entries are skipped and logged instead of failing the
    whole analysis.
    """
    focal_points = data.get("potential_focal_points")
    return RoomAnalysis(
        room_type=_room_type(data.get("room_type"), hint),
        current_condition=_condition(data.get("current_condition")),
        structural_elements=_str_list(data.get("structural_elements")),
        identified_fixtures=_str_list(data.get("identified_fixtures")),
        layout_type=_opt_str(data.get("layout_type")) or "",
        lighting_conditions=_opt_str(data.get("lighting_conditions")) or "",
        perspective_notes=_opt_str(data.get("perspective_notes")) or "",
        preservation_constraints=_str_list(data.get("preservation_constraints")),
        confidence_score=_clamp_confidence(data.get("confidence_score")),
        current_style=_opt_str(data.get("current_style")),
        estimated_dimensions=_opt_str(data.get("estimated_dimensions")),
        potential_focal_points=_str_list(focal_points) if isinstance(focal_points, list) else None,
        wall_count=_wall_count(data.get("wall_count")),
        wall_dimensions=_walls(data.get("wall_dimensions")),
        estimated_ceiling_height=_opt_str(data.get("estimated_ceiling_height")),
        spatial_zones=_zones(data.get("spatial_zones")),
        openings=_openings(data.get("openings")),
        architectural_lines=_lines(data.get("architectural_lines")),
    )


def build_quick_analysis(data: dict[str, Any]) -> QuickAnalysis:
    return QuickAnalysis(
        room_type=_room_type(data.get("room_type")),
        is_valid=bool(data.get("is_valid", False)),
        issues=_str_list(data.get("issues")),
        confidence=_clamp_confidence(data.get("confidence"), default=0.0),
    )


class ClaudeVisionAnalyzer:
    """VisionAnalyzer backed by Claude tool-use structured output."""

    def __init__(
        self,
        client: anthropic.AsyncAnthropic | None,
        model: str,
        timeout_s: float,
    ) -> None:
        self._client = client
        self._model = model
        self._timeout_s = timeout_s

    async def _call_tool(
        self,
        tool: dict[str, Any],
        system: str,
        messages: list[dict[str, Any]],
        max_tokens: int,
    ) -> dict[str, Any]:
        if self._client is None:
            raise CapabilityUnavailable("ANTHROPIC_API_KEY not set", capability="vision")
        try:
            async with asyncio.timeout(self._timeout_s):
                response = await self._client.messages.create(  # type: ignore[call-overload]
                    model=self._model,
                    max_tokens=max_tokens,
                    system=system,
                    tools=[tool],
                    tool_choice={"type": "tool", "name": tool["name"]},
                    messages=messages,
                )
        except TimeoutError as exc:
            raise AnalysisFailed(
                f"Vision call timed out after {self._timeout_s:.0f}s", capability="vision"
            ) from exc
        except anthropic.APIError as exc:
            log.warning("vision_api_error", tool=tool["name"], error_type=type(exc).__name__)
            raise classify_error(exc, "vision") from exc

        data = extract_tool_input(response, tool["name"])
        if not data:
            log.warning("vision_no_tool_call", tool=tool["name"])
            raise AnalysisFailed(
                f"Claude did not return {tool['name']} tool call", capability="vision"
            )
        return data

    async def analyze(self, image: GeneratedImage, hint: RoomType | None = None) -> RoomAnalysis:
        data = await self._call_tool(
            ANALYZE_ROOM_TOOL, load_prompt("analyze_room"), build_messages(image, hint), MAX_TOKENS
        )
        return build_room_analysis(data, hint)

    async def quick_check(self, image: GeneratedImage) -> QuickAnalysis:
        data = await self._call_tool(
            QUICK_CHECK_TOOL, load_prompt("quick_check"), build_messages(image), QUICK_MAX_TOKENS
        )
        return build_quick_analysis(data)


def neutral_analysis(hint: RoomType | None = None) -> RoomAnalysis:
    """Degraded analysis: zero confidence, universal constraints only."""
    return RoomAnalysis(
        room_type=hint or "other",
        current_condition="dated",
        structural_elements=[],
        identified_fixtures=[],
        preservation_constraints=list(NEUTRAL_CONSTRAINTS),
        confidence_score=0.0,
    )


async def analyze_room_photo(
    vision: VisionAnalyzer,
    image: GeneratedImage,
    hint: RoomType | None = None,
) -> RoomAnalysis:
    """Full structural analysis. Raises AnalysisFailed or a terminal capability error."""
    log.info("analyze_room_start", hint=hint, size_bytes=len(image.data))
    analysis = await vision.analyze(image, hint)
    log.info(
        "analyze_room_complete",
        room_type=analysis.room_type,
        confidence=analysis.confidence_score,
        structural_count=len(analysis.structural_elements),
        opening_count=len(analysis.openings or []),
    )
    return analysis


async def quick_photo_analysis(vision: VisionAnalyzer, image: GeneratedImage) -> QuickAnalysis:
    """Cheap pre-check. Never raises: any failure reads as an invalid photo."""
    try:
        return await vision.quick_check(image)
    except VisualizerError as exc:
        log.warning("quick_analysis_failed", error_type=type(exc).__name__, error=exc.message)
        return QuickAnalysis(
            room_type="other",
            is_valid=False,
            issues=["Unable to analyze photo. Please try uploading again."],
            confidence=0.0,
        )


async def analyze_or_degrade(
    vision: VisionAnalyzer,
    image: GeneratedImage,
    hint: RoomType | None = None,
) -> tuple[RoomAnalysis, bool]:
    """Analysis plus a ``degraded`` flag; falls back to ``neutral_analysis`` on AnalysisFailed."""
    try:
        return await analyze_room_photo(vision, image, hint), False
    except AnalysisFailed as exc:
        log.warning("analyze_room_degraded", error=exc.message, hint=hint)
        return neutral_analysis(hint), True
