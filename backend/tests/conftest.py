"""Shared fixtures: a small decodable room photo and a detailed kitchen analysis."""

from __future__ import annotations

import pytest

from tests.helpers import make_photo_bytes
from visualizer.models.contracts import (
    ArchitecturalLines,
    GeneratedImage,
    Opening,
    RoomAnalysis,
    WallDimension,
)


@pytest.fixture
def room_photo() -> GeneratedImage:
    return GeneratedImage(data=make_photo_bytes(), mime_type="image/jpeg")


@pytest.fixture
def rendered_image() -> GeneratedImage:
    return GeneratedImage(data=make_photo_bytes(fmt="PNG"), mime_type="image/png")


@pytest.fixture
def kitchen_analysis() -> RoomAnalysis:
    return RoomAnalysis(
        room_type="kitchen",
        current_condition="dated",
        structural_elements=["load-bearing wall on left", "soffit above cabinets"],
        identified_fixtures=["oak cabinets", "laminate countertops", "double sink"],
        layout_type="L-shaped",
        lighting_conditions="Warm afternoon light from a window on the back wall",
        perspective_notes="Eye-level shot from the doorway",
        preservation_constraints=["window above sink", "doorway to dining room"],
        confidence_score=0.85,
        current_style="traditional",
        wall_count=3,
        wall_dimensions=[
            WallDimension(wall="back wall", estimated_length="12 ft", has_window=True),
            WallDimension(wall="left wall", estimated_length="10 ft"),
        ],
        estimated_ceiling_height="9 ft",
        openings=[
            Opening(
                type="window",
                wall="back wall",
                approximate_size="4 ft wide",
                approximate_position="centered above sink",
            ),
        ],
        architectural_lines=ArchitecturalLines(
            dominant_direction="horizontal",
            vanishing_point_description="single point, center right",
        ),
    )
