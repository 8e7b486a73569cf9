"""Visualization conversation state machine.

Tracks one session through photo_analysis -> intent_gathering ->
style_selection -> refinement -> generation_ready while accumulating the
homeowner's design intent. Every function is pure: contexts are frozen and
each mutation returns a new one, so readers of an old context never race a
writer. Callers apply messages for a session strictly in arrival order.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

import structlog

from visualizer.activities.extraction import PreferenceExtractor
from visualizer.catalog import FALLBACK_STYLE, STYLE_CATALOG, get_room, room_label
from visualizer.config import settings
from visualizer.models.contracts import (
    CONVERSATION_STATES,
    ConversationContext,
    ConversationMessage,
    ConversationState,
    DesignStyle,
    ExtractedData,
    ExtractedPreferences,
    GenerationReadiness,
    MessageRole,
    RoomAnalysis,
)

logger = structlog.get_logger()

ANALYSIS_WEIGHT = 0.3
STYLE_WEIGHT = 0.3
CHANGE_WEIGHT = 0.15
CHANGES_CAP = 0.4


def create_session(session_id: str | None = None) -> ConversationContext:
    return ConversationContext(session_id=session_id)


def _merge(existing: list[str], incoming: list[str]) -> list[str]:
    """Union preserving first-seen order and spelling; never drops an existing entry.

    Incoming entries are compared case-insensitively, so "Quartz" after
    "quartz" is a repeat.
    """
    merged = list(existing)
    seen = {item.strip().lower() for item in existing}
    for item in incoming:
        text = item.strip()
        key = text.lower()
        if not text or key in seen:
            continue
        seen.add(key)
        merged.append(text)
    return merged


def _confidence(data: ExtractedData, has_analysis: bool) -> float:
    score = ANALYSIS_WEIGHT if has_analysis else 0.0
    if data.style_preference:
        score += STYLE_WEIGHT
    score += min(CHANGES_CAP, CHANGE_WEIGHT * len(data.desired_changes))
    return round(min(1.0, score), 4)


def _apply_preferences(
    data: ExtractedData,
    prefs: ExtractedPreferences,
    session_id: str | None,
) -> dict[str, object]:
    update: dict[str, object] = {
        "desired_changes": _merge(data.desired_changes, prefs.desired_changes),
        "constraints_to_preserve": _merge(
            data.constraints_to_preserve, prefs.constraints_to_preserve
        ),
        "material_preferences": _merge(data.material_preferences, prefs.material_preferences),
    }

    if prefs.style_preference:
        if data.style_preference is None:
            update["style_preference"] = prefs.style_preference
        elif prefs.style_preference != data.style_preference:
            logger.warning(
                "style_preference_conflict_ignored",
                session_id=session_id,
                kept=data.style_preference,
                ignored=prefs.style_preference,
            )

    if prefs.room_type:
        if data.room_type is None:
            update["room_type"] = prefs.room_type
        elif prefs.room_type != data.room_type:
            logger.warning(
                "room_type_conflict_ignored",
                session_id=session_id,
                kept=data.room_type,
                ignored=prefs.room_type,
            )
    return update


def ingest(
    context: ConversationContext,
    role: MessageRole,
    text: str,
    extracted: ExtractedPreferences | None = None,
) -> ConversationContext:
    """Append one message; user messages count as a turn and contribute preferences."""
    message = ConversationMessage(
        id=uuid.uuid4().hex,
        role=role,
        content=text,
        timestamp=datetime.now(UTC),
        extracted_data=extracted,
    )

    data = context.extracted_data
    if extracted is not None:
        data = data.model_copy(update=_apply_preferences(data, extracted, context.session_id))
    data = data.model_copy(
        update={"confidence_score": _confidence(data, context.photo_analysis is not None)}
    )

    return context.model_copy(
        update={
            "conversation_history": [*context.conversation_history, message],
            "turn_count": context.turn_count + (1 if role == "user" else 0),
            "extracted_data": data,
        }
    )


async def ingest_with_extractor(
    context: ConversationContext,
    text: str,
    extractor: PreferenceExtractor,
) -> ConversationContext:
    """Run the extractor on a user message, then ingest it.

    A failing extractor never loses the message: it is ingested without
    extracted data.
    """
    room_type = context.extracted_data.room_type
    try:
        extracted = await extractor.extract(text, room_type=room_type)
    except Exception:
        logger.warning("preference_extraction_error", session_id=context.session_id, exc_info=True)
        extracted = None
    return ingest(context, "user", text, extracted)


def attach_analysis(context: ConversationContext, analysis: RoomAnalysis) -> ConversationContext:
    """One-shot: store the analysis, seed room type and preserve-set, leave photo_analysis."""
    if context.photo_analysis is not None:
        logger.warning("photo_analysis_already_attached", session_id=context.session_id)
        return context

    data = context.extracted_data
    update: dict[str, object] = {
        "constraints_to_preserve": _merge(
            data.constraints_to_preserve, analysis.preservation_constraints
        ),
    }
    if data.room_type is None:
        update["room_type"] = analysis.room_type
    data = data.model_copy(update=update)
    data = data.model_copy(update={"confidence_score": _confidence(data, has_analysis=True)})

    state = "intent_gathering" if context.state == "photo_analysis" else context.state
    logger.info(
        "photo_analysis_attached",
        session_id=context.session_id,
        room_type=analysis.room_type,
        confidence=analysis.confidence_score,
    )
    return context.model_copy(
        update={"photo_analysis": analysis, "extracted_data": data, "state": state}
    )


def update_state(context: ConversationContext, state: ConversationState) -> ConversationContext:
    """Apply a target state, typically one returned by ``next_transition``."""
    if state not in CONVERSATION_STATES:
        raise ValueError(f"Unknown conversation state: {state!r}")
    return context.model_copy(update={"state": state})


def _is_ready(context: ConversationContext) -> bool:
    data = context.extracted_data
    if not data.style_preference:
        return False
    return bool(data.desired_changes) or context.turn_count >= settings.readiness_turn_threshold


def next_transition(context: ConversationContext) -> ConversationState:
    """State the context should move to. Pure; never returns an earlier state."""
    state = context.state
    data = context.extracted_data

    if state == "generation_ready":
        return state
    if state == "photo_analysis":
        return "intent_gathering" if context.photo_analysis is not None else state

    if _is_ready(context):
        return "generation_ready"
    if state == "refinement":
        if context.turn_count >= settings.max_question_turns:
            return "generation_ready"
        return state
    if data.style_preference:
        return "refinement"
    if data.desired_changes and state == "intent_gathering":
        return "style_selection"
    return state


def advance(context: ConversationContext) -> ConversationContext:
    """Convenience: apply ``next_transition`` when it differs from the current state."""
    target = next_transition(context)
    if target == context.state:
        return context
    logger.info(
        "conversation_state_transition",
        session_id=context.session_id,
        from_state=context.state,
        to_state=target,
        turn_count=context.turn_count,
    )
    return update_state(context, target)


def _suggested_style(context: ConversationContext) -> DesignStyle:
    analysis = context.photo_analysis
    if analysis is not None and analysis.current_style:
        current = analysis.current_style.strip().lower()
        if current in STYLE_CATALOG:
            return current  # type: ignore[return-value]
    room = get_room(context.extracted_data.room_type)
    if room is not None:
        return room.default_style  # type: ignore[return-value]
    return FALLBACK_STYLE  # type: ignore[return-value]


def _summary(data: ExtractedData) -> str:
    room = room_label(data.room_type) if data.room_type and data.room_type != "other" else "room"
    if data.style_preference:
        summary = f"A {data.style_preference} {room} renovation"
    else:
        summary = f"A {room} renovation"
    if data.desired_changes:
        summary += f" featuring {', '.join(data.desired_changes[:3])}"
    if not data.style_preference:
        summary += " (style to be decided)"
    return summary + "."


def check_readiness(context: ConversationContext) -> GenerationReadiness:
    data = context.extracted_data
    missing: list[str] = []
    if not data.room_type:
        missing.append("room type")
    if not data.style_preference:
        missing.append("design style preference")

    return GenerationReadiness(
        is_ready=_is_ready(context),
        missing_info=missing,
        quality_confidence=_confidence(data, context.photo_analysis is not None),
        generation_summary=_summary(data),
        suggested_style=None if data.style_preference else _suggested_style(context),
    )


def next_question(context: ConversationContext) -> str | None:
    """Next clarifying question, or None when there is nothing (more) to ask."""
    if context.state in ("photo_analysis", "generation_ready"):
        return None
    if context.turn_count >= settings.max_question_turns:
        return None

    data = context.extracted_data
    if not data.desired_changes:
        return (
            "What changes would you most like to see in this space? For example new "
            "countertops, different flooring, updated lighting, or a full makeover."
        )
    if not data.style_preference:
        styles = ", ".join(entry.label.lower() for entry in STYLE_CATALOG.values())
        return f"Which design style appeals to you most? Popular options include {styles}."
    if not data.material_preferences:
        return (
            "Do you have any materials or finishes in mind, "
            "like quartz, hardwood, or matte black hardware?"
        )
    return "Is there anything in the current space you'd like to keep exactly as it is?"


def _bullet_list(items: list[str]) -> str:
    return "\n".join(f"  - {item}" for item in items)


def build_system_prompt(context: ConversationContext) -> str:
    """System prompt for the consultation chat model, reflecting the current context."""
    parts = [
        "You are a friendly, knowledgeable interior design consultant helping a homeowner "
        "imagine their renovated space before an AI visualization is generated.",
        f"CURRENT STATE: {context.state}\nTURN COUNT: {context.turn_count}",
    ]

    analysis = context.photo_analysis
    if analysis is not None:
        lines = [
            "PHOTO ANALYSIS:",
            f"- Room Type: {analysis.room_type}",
            f"- Condition: {analysis.current_condition}",
            f"- Layout: {analysis.layout_type or 'unknown'}",
        ]
        if analysis.identified_fixtures:
            lines.append(f"- Fixtures: {', '.join(analysis.identified_fixtures)}")
        if analysis.current_style:
            lines.append(f"- Current Style: {analysis.current_style}")
        if analysis.preservation_constraints:
            lines.append(f"- Must Preserve: {', '.join(analysis.preservation_constraints)}")
        parts.append("\n".join(lines))

    data = context.extracted_data
    gathered = ["GATHERED SO FAR:"]
    if data.room_type:
        gathered.append(f"- Room Type: {data.room_type}")
    if data.style_preference:
        gathered.append(f"- Style Preference: {data.style_preference}")
    if data.desired_changes:
        gathered.append(f"- Desired Changes:\n{_bullet_list(data.desired_changes)}")
    if data.constraints_to_preserve:
        gathered.append(f"- Keep:\n{_bullet_list(data.constraints_to_preserve)}")
    if data.material_preferences:
        gathered.append(f"- Materials: {', '.join(data.material_preferences)}")
    if len(gathered) == 1:
        gathered.append("- Nothing yet")
    parts.append("\n".join(gathered))

    parts.append(
        "DESIGN STYLES TO REFERENCE:\n"
        + "\n".join(f"- {entry.label}: {entry.summary}" for entry in STYLE_CATALOG.values())
    )

    question = next_question(context)
    guidelines = [
        "GUIDELINES:",
        "- Ask ONE question at a time",
        "- Keep replies to two or three short sentences",
        "- Reflect back what you heard before asking the next question",
        "- Never promise structural changes: walls, windows, and doors stay where they are",
    ]
    if question:
        guidelines.append(f"- Suggested next question: {question}")
    if context.state == "generation_ready":
        guidelines.append(
            "- Confirm the plan and tell them their visualization is ready to generate"
        )
    parts.append("\n".join(guidelines))

    return "\n\n".join(parts)


def build_initial_response(analysis: RoomAnalysis) -> str:
    """Deterministic greeting after the photo has been analyzed."""
    room = room_label(analysis.room_type)
    article = "an" if room[:1].lower() in "aeiou" else "a"
    response = f"Hi! I'm your design consultant. I can see this is {article} {room}"

    if analysis.layout_type:
        response += f" with a {analysis.layout_type.lower()} layout. "
    else:
        response += ". "

    if analysis.current_condition in ("excellent", "good"):
        response += f"It's in {analysis.current_condition} condition! "
    elif analysis.current_condition == "dated":
        response += "It looks like it could use some updating. "
    else:
        response += "I can see there's great potential here for a transformation. "

    fixtures = analysis.identified_fixtures[:2]
    if fixtures:
        response += f"I notice the {' and '.join(fixtures)}. "

    return (
        response.rstrip()
        + "\n\nWhat kind of changes are you hoping to make? Are you thinking of a complete "
        "style overhaul, or focusing on specific elements?"
    )
