"""Visualizer contract models.

Every component depends on these models. Analysis, conversation and prompt
models are frozen: state changes produce new instances via ``model_copy``.
"""

from __future__ import annotations

import base64
import binascii
import re
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# === Enumerations ===

RoomType = Literal[
    "kitchen",
    "bathroom",
    "living_room",
    "bedroom",
    "basement",
    "dining_room",
    "exterior",
    "other",
]

DesignStyle = Literal[
    "modern",
    "traditional",
    "farmhouse",
    "industrial",
    "minimalist",
    "contemporary",
    "other",
]

RoomCondition = Literal["excellent", "good", "dated", "needs_renovation"]

ConversationState = Literal[
    "photo_analysis",
    "intent_gathering",
    "style_selection",
    "refinement",
    "generation_ready",
]

# Ordered progression; transitions never move to an earlier entry.
CONVERSATION_STATES: tuple[ConversationState, ...] = (
    "photo_analysis",
    "intent_gathering",
    "style_selection",
    "refinement",
    "generation_ready",
)

MessageRole = Literal["user", "assistant"]


# === Room Analysis ===


class WallDimension(BaseModel):
    model_config = ConfigDict(frozen=True)

    wall: str
    estimated_length: str
    has_window: bool = False
    has_door: bool = False


class SpatialZone(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    approximate_location: str = ""


class Opening(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["window", "door", "archway"]
    wall: str
    approximate_size: str = ""
    approximate_position: str = ""


class ArchitecturalLines(BaseModel):
    model_config = ConfigDict(frozen=True)

    dominant_direction: str
    vanishing_point_description: str
    symmetry_axis: str | None = None


class RoomAnalysis(BaseModel):
    """Structured reading of a room photo. Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    room_type: RoomType
    current_condition: RoomCondition
    structural_elements: list[str] = []
    identified_fixtures: list[str] = []
    layout_type: str = ""
    lighting_conditions: str = ""
    perspective_notes: str = ""
    preservation_constraints: list[str] = []
    confidence_score: float = Field(ge=0, le=1)
    current_style: str | None = None
    estimated_dimensions: str | None = None
    potential_focal_points: list[str] | None = None
    wall_count: int | None = Field(default=None, ge=0, le=6)
    wall_dimensions: list[WallDimension] | None = None
    estimated_ceiling_height: str | None = None
    spatial_zones: list[SpatialZone] | None = None
    openings: list[Opening] | None = None
    architectural_lines: ArchitecturalLines | None = None


class QuickAnalysis(BaseModel):
    """Cheap pre-check run before a full analysis is worth paying for."""

    room_type: RoomType
    is_valid: bool
    issues: list[str] = []
    confidence: float = Field(ge=0, le=1)


# === Conversation ===


class ExtractedPreferences(BaseModel):
    """Typed partial payload produced by a preference extractor for one message."""

    model_config = ConfigDict(frozen=True)

    desired_changes: list[str] = []
    constraints_to_preserve: list[str] = []
    material_preferences: list[str] = []
    style_preference: str | None = None
    room_type: RoomType | None = None


class ExtractedData(BaseModel):
    """Accumulated design intent for a session. Lists only ever grow."""

    model_config = ConfigDict(frozen=True)

    desired_changes: list[str] = []
    constraints_to_preserve: list[str] = []
    material_preferences: list[str] = []
    style_preference: str | None = None
    room_type: RoomType | None = None
    confidence_score: float = Field(default=0.0, ge=0, le=1)


class ConversationMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    role: MessageRole
    content: str
    timestamp: datetime
    extracted_data: ExtractedPreferences | None = None


class ConversationContext(BaseModel):
    """One visualization session. Owned by a single caller, never shared."""

    model_config = ConfigDict(frozen=True)

    state: ConversationState = "photo_analysis"
    turn_count: int = Field(default=0, ge=0)
    conversation_history: list[ConversationMessage] = []
    photo_analysis: RoomAnalysis | None = None
    extracted_data: ExtractedData = Field(default_factory=ExtractedData)
    session_id: str | None = None


class GenerationReadiness(BaseModel):
    is_ready: bool
    missing_info: list[str] = []
    quality_confidence: float = Field(ge=0, le=1)
    generation_summary: str
    suggested_style: DesignStyle | None = None


# === Prompt Compilation ===


class DesignIntent(BaseModel):
    model_config = ConfigDict(frozen=True)

    desired_changes: list[str] = []
    constraints_to_preserve: list[str] = []
    material_preferences: list[str] = []


class DepthRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_m: float
    max_m: float


class RenovationPromptData(BaseModel):
    """Compiler input. ``room_type``/``style`` are catalog keys or free text."""

    model_config = ConfigDict(frozen=True)

    room_type: str
    style: str
    custom_room_type: str | None = None
    custom_style: str | None = None
    constraints: str | None = None
    variation_index: int = Field(default=0, ge=0)
    photo_analysis: RoomAnalysis | None = None
    design_intent: DesignIntent | None = None
    has_depth_map: bool = False
    has_edge_map: bool = False
    depth_range: DepthRange | None = None
    voice_preferences_summary: str | None = None


# === Images ===

_DATA_URL_RE = re.compile(r"^data:([^;,]+);base64,(.*)$", re.DOTALL)


class GeneratedImage(BaseModel):
    """Encoded image bytes plus MIME type."""

    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")

    data: bytes
    mime_type: str = "image/png"

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{base64.b64encode(self.data).decode('ascii')}"

    @classmethod
    def from_data_url(cls, url: str, default_mime_type: str = "image/jpeg") -> GeneratedImage:
        """Decode a ``data:`` URL or a bare base64 string."""
        text = url.strip()
        match = _DATA_URL_RE.match(text)
        if match:
            mime_type, payload = match.group(1), match.group(2)
        else:
            mime_type, payload = default_mime_type, text
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("Image is not valid base64") from exc
        return cls(data=data, mime_type=mime_type)


class ReferenceImage(BaseModel):
    """Structural conditioning image sent alongside the source photo."""

    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")

    data: bytes
    mime_type: str = "image/png"
    role: Literal["depth", "edges"]


class DepthEstimate(BaseModel):
    """Depth map (lighter is closer) and the metric range it spans."""

    depth_map: ReferenceImage
    depth_range: DepthRange


class ValidationResult(BaseModel):
    is_acceptable: bool
    score: float = Field(ge=0, le=1)
    issues: list[str] = []
    recommendations: list[str] = []


# === Generation ===


class VisualizationConfig(BaseModel):
    """Everything needed to compile a batch of prompts, minus the variation index."""

    room_type: str
    style: str
    custom_room_type: str | None = None
    custom_style: str | None = None
    constraints: str | None = None
    photo_analysis: RoomAnalysis | None = None
    design_intent: DesignIntent | None = None
    voice_preferences_summary: str | None = None
    has_depth_map: bool = False
    has_edge_map: bool = False
    depth_range: DepthRange | None = None
    reference_images: list[ReferenceImage] = []
    mode: Literal["quick", "conversation"] = "conversation"


class ConceptResult(BaseModel):
    image: GeneratedImage
    variation_index: int = Field(ge=0)
    was_refined: bool = False
    validation_score: float | None = None
    attempts: int = Field(default=1, ge=1)
    description: str = ""


# === Activity Input/Output ===


class AnalyzeVisualizationPhotoInput(BaseModel):
    photo_url: str
    room_type_hint: RoomType | None = None
    quick: bool = False


class AnalyzeVisualizationPhotoOutput(BaseModel):
    analysis: RoomAnalysis | None = None
    quick: QuickAnalysis | None = None
    degraded: bool = False


class GenerateVisualizationInput(BaseModel):
    photo_url: str
    config: VisualizationConfig
    count: int = Field(default=4, ge=1, le=4)


class ConceptOutput(BaseModel):
    image_data_url: str
    variation_index: int
    was_refined: bool = False
    validation_score: float | None = None
    description: str = ""


class GenerateVisualizationOutput(BaseModel):
    concepts: list[ConceptOutput] = Field(min_length=1, max_length=4)
    requested: int = Field(ge=1, le=4)
