"""Renovation prompt compiler.

Turns room/style catalog knowledge, the photo analysis, conversation intent
and free-text constraints into one ordered generation instruction. Ordering
matters to the image model: structural constraints come before any style
direction or the model lets style override geometry.

Everything here is pure. Identical input yields byte-identical output, so
concepts in a batch differ only through ``variation_index``.
"""

from __future__ import annotations

from visualizer.catalog import STYLE_CATALOG, StyleEntry, get_room, get_style, room_label
from visualizer.models.contracts import (
    Opening,
    RenovationPromptData,
    RoomAnalysis,
    VisualizationConfig,
)

UNIVERSAL_INVARIANTS: tuple[str, ...] = (
    "Room dimensions, walls, and ceiling height",
    "All window and door positions",
    "Camera angle and perspective from original photo",
    "Floor plan and traffic flow patterns",
)

# Indexed by variation_index % 4; index 0 is never emitted.
_VARIATION_HINTS: tuple[str, ...] = (
    "Incorporate subtle accent colors and decorative details that add personality "
    "without overwhelming the core style.",
    "Explore a warmer color temperature while maintaining the core style. Emphasize "
    "cozy, inviting textures.",
    "Feature natural textures and organic materials prominently. Bring in subtle "
    "biophilic elements.",
    "Take a more streamlined approach with extra emphasis on clean lines and negative space.",
)

_QUICK_VARIATION_HINTS: tuple[str, ...] = (
    "Incorporate subtle accent colors and decorative details.",
    "Explore a slightly warmer color temperature while staying true to the style.",
    "Emphasize natural textures and organic materials.",
    "Focus on clean lines and a more streamlined approach.",
)

_CONCEPT_EMPHASIS: tuple[str, ...] = (
    "accent details",
    "warmer tones",
    "natural textures",
    "streamlined lines",
)

_QUALITY_REQUIREMENTS: tuple[str, ...] = (
    "Photorealistic rendering quality suitable for client presentation",
    "2048x2048 resolution output",
    "Professional interior photography aesthetic",
    "Crisp details on materials and textures",
    "Natural color reproduction",
    "No artifacts, distortions, or AI-typical inconsistencies",
    "Publication-ready image quality",
)

DEFAULT_FOCUS = "the key surfaces, fixtures, and finishes of the space"


def _bullets(items: list[str] | tuple[str, ...]) -> str:
    return "\n".join(f"- {item}" for item in items)


def _section(name: str, body: str) -> str:
    return f"=== {name} ===\n{body}"


def _union(*groups: list[str] | tuple[str, ...]) -> list[str]:
    """Concatenate groups, dropping blanks and case-insensitive repeats."""
    seen: set[str] = set()
    merged: list[str] = []
    for group in groups:
        for item in group:
            text = item.strip()
            key = text.lower()
            if not text or key in seen:
                continue
            seen.add(key)
            merged.append(text)
    return merged


def resolve_style_name(style: str, custom_style: str | None = None) -> str:
    """Display name for the style: catalog key, or the user's own words."""
    if custom_style and custom_style.strip() and get_style(style) is None:
        return custom_style.strip()
    return style.strip()


def resolve_room_name(room_type: str, custom_room_type: str | None = None) -> str:
    if custom_room_type and custom_room_type.strip() and get_room(room_type) is None:
        return custom_room_type.strip()
    return room_label(room_type)


def _scene_section(room: str, style: str, entry: StyleEntry | None, focus: str) -> str:
    if entry is not None:
        narrative = entry.narrative
    else:
        narrative = (
            f'The homeowner described the desired style in their own words as "{style}". '
            "Interpret that description literally and consistently across every surface."
        )
    return _section(
        "SCENE DESCRIPTION",
        f"Transform this {room} into a {style} design renovation.\n"
        f"{narrative}\n\n"
        "The renovation should feel like a professional interior design transformation, "
        f"maintaining the soul of the original space while elevating it to {style} "
        f"sophistication. Focus on: {focus}",
    )


def _geometry_lines(analysis: RoomAnalysis) -> list[str]:
    lines: list[str] = []
    if analysis.wall_count is not None:
        lines.append(f"- Visible walls: {analysis.wall_count}")
    for wall in analysis.wall_dimensions or []:
        features = [
            name
            for name, present in (("window", wall.has_window), ("door", wall.has_door))
            if present
        ]
        suffix = f" (contains {' and '.join(features)})" if features else ""
        lines.append(f"- {wall.wall}: approximately {wall.estimated_length}{suffix}")
    if analysis.estimated_ceiling_height:
        lines.append(f"- Ceiling height: {analysis.estimated_ceiling_height}")
    if analysis.estimated_dimensions:
        lines.append(f"- Overall dimensions: {analysis.estimated_dimensions}")
    return lines


def _describe_opening(opening: Opening) -> str:
    text = f"{opening.type} on {opening.wall}"
    if opening.approximate_size:
        text += f" ({opening.approximate_size})"
    if opening.approximate_position:
        text += f" at {opening.approximate_position}"
    return text


def _structural_section(data: RenovationPromptData) -> str:
    analysis = data.photo_analysis
    room = get_room(data.room_type)

    body = "ABSOLUTE REQUIREMENTS - These MUST remain UNCHANGED:\n" + _bullets(UNIVERSAL_INVARIANTS)

    preserve = _union(
        analysis.structural_elements if analysis else [],
        analysis.preservation_constraints if analysis else [],
        room.preservation_priority if room else [],
    )
    if preserve:
        body += f"\n\nElements to Preserve Exactly:\n{_bullets(preserve)}"

    if analysis is not None:
        geometry = _geometry_lines(analysis)
        if geometry:
            body += "\n\nMeasured Room Geometry:\n" + "\n".join(geometry)
        if analysis.openings:
            openings = [_describe_opening(opening) for opening in analysis.openings]
            body += f"\n\nFixed Openings (do not relocate or resize):\n{_bullets(openings)}"

    if data.has_depth_map or data.has_edge_map:
        maps = [
            name
            for name, flag in (("depth map", data.has_depth_map), ("edge map", data.has_edge_map))
            if flag
        ]
        body += (
            f"\n\nSTRUCTURAL CONDITIONING: Reference images of the original room are attached "
            f"({' and '.join(maps)}). The conditioning maps take precedence over text: "
            "where they disagree with any description here, follow the maps."
        )
        if data.depth_range is not None:
            body += (
                f"\nScene depth spans roughly {data.depth_range.min_m:.1f}m to "
                f"{data.depth_range.max_m:.1f}m from the camera."
            )

    return _section("STRUCTURAL PRESERVATION (CRITICAL)", body)


def _materials_section(data: RenovationPromptData, style: str, entry: StyleEntry | None) -> str:
    if entry is not None:
        body = (
            f"Style: {style.upper()}\n\n"
            f"Primary Materials:\n{_bullets(entry.materials)}\n\n"
            f"Color Palette:\n{_bullets(entry.colors)}\n\n"
            f"Finish Types:\n{_bullets(entry.finishes)}\n\n"
            f"Fixture Styles:\n{_bullets(entry.fixtures)}"
        )
    else:
        body = (
            f"Style: {style.upper()}\n\n"
            "No catalog specification exists for this style. Select materials, colors, "
            f'finishes, and fixtures that authentically express "{style}", keeping them '
            "realistic and buildable."
        )

    preferences = data.design_intent.material_preferences if data.design_intent else []
    if preferences:
        body += f"\n\nUser Material Preferences:\n{_bullets(preferences)}"
    return _section("MATERIAL & FINISH SPECIFICATIONS", body)


def _lighting_section(data: RenovationPromptData, style: str, entry: StyleEntry | None) -> str:
    body = entry.lighting if entry else f"Lighting fixtures that suit a {style} aesthetic"
    analysis = data.photo_analysis
    if analysis is not None and analysis.lighting_conditions:
        body += (
            f"\n\nOriginal Photo Lighting Analysis:\n{analysis.lighting_conditions}\n"
            "IMPORTANT: Match the direction, intensity, and color temperature of the "
            "original lighting."
        )
    else:
        body += (
            "\n\nMatch the original photo's natural lighting direction and intensity.\n"
            "Preserve existing shadow patterns and light sources."
        )
    return _section("LIGHTING INSTRUCTIONS", body)


def _perspective_section(analysis: RoomAnalysis | None) -> str:
    body = "Maintain the EXACT camera position and viewing angle from the original photograph."
    if analysis is not None:
        if analysis.perspective_notes:
            body += f"\n\nPhoto Perspective Analysis:\n{analysis.perspective_notes}"
        lines = analysis.architectural_lines
        if lines is not None:
            body += (
                "\n\nArchitectural Lines:\n"
                f"- Dominant direction: {lines.dominant_direction}\n"
                f"- Vanishing point: {lines.vanishing_point_description}"
            )
            if lines.symmetry_axis:
                body += f"\n- Symmetry axis: {lines.symmetry_axis}"
    body += (
        "\n\nThe viewer should feel they are standing in the same position, seeing the same "
        "room after a professional renovation, not a different room entirely."
    )
    return _section("PERSPECTIVE INSTRUCTIONS", body)


def _intent_section(data: RenovationPromptData) -> str | None:
    intent = data.design_intent
    if intent is None or not (intent.desired_changes or intent.constraints_to_preserve):
        return None
    parts: list[str] = []
    if intent.desired_changes:
        parts.append(f"Desired Changes:\n{_bullets(intent.desired_changes)}")
    if intent.constraints_to_preserve:
        parts.append(f"Elements to Keep:\n{_bullets(intent.constraints_to_preserve)}")
    return _section("DESIGN INTENT (from consultation)", "\n\n".join(parts))


def compile_prompt(data: RenovationPromptData) -> str:
    """Assemble the full sectioned generation instruction."""
    style_entry = get_style(data.style)
    room_entry = get_room(data.room_type)
    style = resolve_style_name(data.style, data.custom_style)
    room = resolve_room_name(data.room_type, data.custom_room_type)
    focus = room_entry.focus if room_entry else DEFAULT_FOCUS

    parts = [
        _scene_section(room, style, style_entry, focus),
        _structural_section(data),
        _materials_section(data, style, style_entry),
        _lighting_section(data, style, style_entry),
        _perspective_section(data.photo_analysis),
        _section("OUTPUT QUALITY REQUIREMENTS", _bullets(_QUALITY_REQUIREMENTS)),
    ]

    if data.constraints and data.constraints.strip():
        parts.append(_section("USER PREFERENCES", data.constraints.strip()))

    intent = _intent_section(data)
    if intent:
        parts.append(intent)

    if data.voice_preferences_summary and data.voice_preferences_summary.strip():
        parts.append(_section("VOICE CONSULTATION SUMMARY", data.voice_preferences_summary.strip()))

    if data.variation_index > 0:
        hint = _VARIATION_HINTS[data.variation_index % len(_VARIATION_HINTS)]
        parts.append(_section(f"VARIATION {data.variation_index + 1}", hint))

    parts.append(
        _section(
            "GENERATE",
            f"Create a single photorealistic visualization showing this {room} after a "
            f"professional {style} renovation. Output an image.",
        )
    )
    return "\n\n".join(parts)


def build_quick_mode_prompt(
    room_type: str,
    style: str,
    constraints: str | None = None,
    variation_index: int = 0,
    custom_room_type: str | None = None,
    custom_style: str | None = None,
) -> str:
    """Shorter prompt for the no-analysis path. Keeps the hard structural invariants."""
    style_entry = get_style(style)
    room_entry = get_room(room_type)
    style_name = resolve_style_name(style, custom_style)
    room = resolve_room_name(room_type, custom_room_type)

    prompt = (
        f"TASK: Transform this {room} into a {style_name} design renovation.\n\n"
        "STYLE CHARACTERISTICS:\n"
        f"{style_entry.summary if style_entry else style_name}\n\n"
        "ROOM FOCUS AREAS:\n"
        f"{room_entry.focus if room_entry else 'surfaces, fixtures, and finishes'}"
    )

    if constraints and constraints.strip():
        prompt += f"\n\nUSER PREFERENCES:\n{constraints.strip()}"

    prompt += (
        "\n\nCRITICAL REQUIREMENTS:\n"
        + _bullets(UNIVERSAL_INVARIANTS)
        + f"\n- Apply {style_name} aesthetic to surfaces, fixtures, and decor"
        "\n- Ensure photorealistic quality suitable for client presentation"
        "\n- Lighting should match the original room's natural light sources"
    )

    if variation_index > 0:
        hint = _QUICK_VARIATION_HINTS[variation_index % len(_QUICK_VARIATION_HINTS)]
        prompt += f"\n\nVARIATION {variation_index + 1}: {hint}"

    prompt += (
        f"\n\nGenerate a single photorealistic visualization showing this room after a "
        f"professional {style_name} renovation. Output an image."
    )
    return prompt


def build_reinforcement_clause(score: float) -> str:
    """Extra structural emphasis appended after a failed validation."""
    return (
        "CRITICAL REFINEMENT: The previous generation did not adequately preserve room "
        f"structure. Validation score was {score:.2f}; structural deviation detected. "
        "Pay EXTRA attention to wall positions, window/door locations, and overall room geometry."
    )


def build_concept_description(
    room_type: str,
    style: str,
    variation_index: int = 0,
    custom_room_type: str | None = None,
    custom_style: str | None = None,
) -> str:
    """One-line caption for a generated concept."""
    style_entry = STYLE_CATALOG.get(style)
    style_name = style_entry.label if style_entry else resolve_style_name(style, custom_style)
    room = resolve_room_name(room_type, custom_room_type)
    if variation_index == 0:
        return f"{style_name} {room} concept"
    emphasis = _CONCEPT_EMPHASIS[variation_index % len(_CONCEPT_EMPHASIS)]
    return f"{style_name} {room} concept with {emphasis}"


def prompt_data_from_config(
    config: VisualizationConfig,
    variation_index: int,
    reinforcement: str | None = None,
) -> RenovationPromptData:
    """Per-concept compiler input; a reinforcement clause is appended to the constraints."""
    constraints = " ".join(c for c in (config.constraints or "", reinforcement or "") if c.strip())
    return RenovationPromptData(
        room_type=config.room_type,
        style=config.style,
        custom_room_type=config.custom_room_type,
        custom_style=config.custom_style,
        constraints=constraints or None,
        variation_index=variation_index,
        photo_analysis=config.photo_analysis,
        design_intent=config.design_intent,
        has_depth_map=config.has_depth_map,
        has_edge_map=config.has_edge_map,
        depth_range=config.depth_range,
        voice_preferences_summary=config.voice_preferences_summary,
    )


def compile_for_config(
    config: VisualizationConfig,
    variation_index: int,
    reinforcement: str | None = None,
) -> str:
    """Pick the quick or full compiler according to ``config.mode``."""
    data = prompt_data_from_config(config, variation_index, reinforcement)
    if config.mode == "quick":
        return build_quick_mode_prompt(
            data.room_type,
            data.style,
            constraints=data.constraints,
            variation_index=variation_index,
            custom_room_type=data.custom_room_type,
            custom_style=data.custom_style,
        )
    return compile_prompt(data)
