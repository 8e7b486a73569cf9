"""Preference extraction from a single homeowner message.

The conversation state machine only sees ``ExtractedPreferences``; whether
the record came from keyword heuristics or a model call is decided here,
once, by ``build_extractor``.
"""

from __future__ import annotations

import asyncio
import re
from typing import TYPE_CHECKING, Any, Protocol, get_args

import anthropic
import structlog

from visualizer.catalog import STYLE_CATALOG
from visualizer.models.contracts import ExtractedPreferences, RoomType
from visualizer.utils.claude import extract_tool_input
from visualizer.utils.prompts import load_prompt

if TYPE_CHECKING:
    from visualizer.config import Settings

logger = structlog.get_logger()

ROOM_TYPES: tuple[str, ...] = get_args(RoomType)


class PreferenceExtractor(Protocol):
    async def extract(self, text: str, room_type: str | None = None) -> ExtractedPreferences: ...


# === Keyword heuristics ===

_STYLE_ALIASES: dict[str, str] = {
    **{key: key for key in STYLE_CATALOG},
    "minimal": "minimalist",
    "rustic": "farmhouse",
    "classic": "traditional",
    "loft": "industrial",
}

_ROOM_ALIASES: dict[str, RoomType] = {
    "kitchen": "kitchen",
    "bathroom": "bathroom",
    "bath": "bathroom",
    "ensuite": "bathroom",
    "living room": "living_room",
    "family room": "living_room",
    "bedroom": "bedroom",
    "basement": "basement",
    "dining room": "dining_room",
    "exterior": "exterior",
    "facade": "exterior",
}

MATERIAL_VOCABULARY: tuple[str, ...] = (
    "butcher block",
    "subway tile",
    "stainless steel",
    "matte black",
    "engineered quartz",
    "quartz",
    "granite",
    "marble",
    "terrazzo",
    "limestone",
    "porcelain",
    "ceramic",
    "tile",
    "hardwood",
    "oak",
    "walnut",
    "bamboo",
    "laminate",
    "vinyl",
    "concrete",
    "shiplap",
    "brick",
    "glass",
    "brass",
    "copper",
    "chrome",
    "nickel",
    "bronze",
)


def _alternation(words: list[str] | tuple[str, ...]) -> str:
    # Longest first so "subway tile" wins over "tile".
    return "|".join(re.escape(w) for w in sorted(words, key=len, reverse=True))


_STYLE_RE = re.compile(rf"\b({_alternation(list(_STYLE_ALIASES))})\b")
_ROOM_RE = re.compile(rf"\b({_alternation(list(_ROOM_ALIASES))})\b")
_MATERIAL_RE = re.compile(rf"\b({_alternation(MATERIAL_VOCABULARY)})\b")

_ARTICLES = r"(?:(?:the|my|our|a|an|some|all|these|those)\s+)?"
_PHRASE_END = r"(?=[.,;:!?]|\s+(?:and|but|or|with|so|because|to)\b|$)"

_KEEP_RE = re.compile(
    r"\b(?:keep|keeping|preserve|preserving|retain|leave)\s+"
    rf"{_ARTICLES}([a-z][a-z\s-]{{1,40}}?){_PHRASE_END}"
)
_CHANGE_RE = re.compile(
    r"\b(new|replace|replacing|update|updating|paint|painting|change|changing|redo|remove|"
    r"add|adding|install|upgrade|refinish|modernize)\s+"
    rf"{_ARTICLES}([a-z][a-z\s-]{{1,40}}?){_PHRASE_END}"
)

_VERB_BASE = {
    "replacing": "replace",
    "updating": "update",
    "painting": "paint",
    "changing": "change",
    "adding": "add",
}


def _dedupe(items: list[str]) -> list[str]:
    return list(dict.fromkeys(item for item in items if item))


class KeywordPreferenceExtractor:
    """Deterministic regex extractor. No network, no failure modes."""

    async def extract(self, text: str, room_type: str | None = None) -> ExtractedPreferences:
        return self.extract_sync(text)

    def extract_sync(self, text: str) -> ExtractedPreferences:
        lowered = " ".join(text.lower().split())

        style_match = _STYLE_RE.search(lowered)
        room_match = _ROOM_RE.search(lowered)

        keep = _dedupe([m.group(1).strip() for m in _KEEP_RE.finditer(lowered)])
        changes = _dedupe(
            [
                f"{_VERB_BASE.get(m.group(1), m.group(1))} {m.group(2).strip()}"
                for m in _CHANGE_RE.finditer(lowered)
            ]
        )
        materials = _dedupe([m.group(1) for m in _MATERIAL_RE.finditer(lowered)])

        return ExtractedPreferences(
            desired_changes=changes,
            constraints_to_preserve=keep,
            material_preferences=materials,
            style_preference=_STYLE_ALIASES[style_match.group(1)] if style_match else None,
            room_type=_ROOM_ALIASES[room_match.group(1)] if room_match else None,
        )


# === Claude tool-use ===

EXTRACT_PREFERENCES_TOOL: dict[str, Any] = {
    "name": "extract_preferences",
    "description": "Record the renovation preferences stated in the message.",
    "input_schema": {
        "type": "object",
        "properties": {
            "desired_changes": {"type": "array", "items": {"type": "string"}},
            "constraints_to_preserve": {"type": "array", "items": {"type": "string"}},
            "material_preferences": {"type": "array", "items": {"type": "string"}},
            "style_preference": {"type": ["string", "null"]},
            "room_type": {"type": ["string", "null"]},
        },
        "required": ["desired_changes", "constraints_to_preserve", "material_preferences"],
    },
}


def build_preferences(data: dict[str, Any]) -> ExtractedPreferences:
    """Tool payload -> ExtractedPreferences; unknown room types are dropped."""

    def strings(key: str) -> list[str]:
        value = data.get(key)
        if not isinstance(value, list):
            return []
        return _dedupe([v.strip() for v in value if isinstance(v, str)])

    style = data.get("style_preference")
    style = style.strip().lower() if isinstance(style, str) and style.strip() else None
    room = data.get("room_type")
    room = room.strip().lower().replace(" ", "_") if isinstance(room, str) else None

    return ExtractedPreferences(
        desired_changes=strings("desired_changes"),
        constraints_to_preserve=strings("constraints_to_preserve"),
        material_preferences=strings("material_preferences"),
        style_preference=_STYLE_ALIASES.get(style, style) if style else None,
        room_type=room if room in ROOM_TYPES and room != "other" else None,
    )


class ClaudePreferenceExtractor:
    """Model-backed extractor. Never raises: failures yield an empty record."""

    def __init__(self, client: anthropic.AsyncAnthropic, model: str, timeout_s: float) -> None:
        self._client = client
        self._model = model
        self._timeout_s = timeout_s

    async def extract(self, text: str, room_type: str | None = None) -> ExtractedPreferences:
        room = room_type.replace("_", " ") if room_type else "room"
        try:
            async with asyncio.timeout(self._timeout_s):
                response = await self._client.messages.create(  # type: ignore[call-overload]
                    model=self._model,
                    max_tokens=400,
                    system=load_prompt("extract_preferences").format(room=room),
                    tools=[EXTRACT_PREFERENCES_TOOL],
                    tool_choice={"type": "tool", "name": "extract_preferences"},
                    messages=[{"role": "user", "content": text}],
                )
        except (anthropic.APIError, TimeoutError) as exc:
            logger.warning("preference_extraction_failed", error_type=type(exc).__name__)
            return ExtractedPreferences()

        data = extract_tool_input(response, "extract_preferences")
        if not data:
            logger.warning("preference_extraction_no_tool_call")
            return ExtractedPreferences()
        return build_preferences(data)


def build_extractor(
    settings: Settings,
    client: anthropic.AsyncAnthropic | None = None,
) -> PreferenceExtractor:
    """Select the extractor named by ``settings.preference_extractor``."""
    choice = settings.preference_extractor.strip().lower()
    if choice == "llm":
        if client is not None:
            return ClaudePreferenceExtractor(
                client, settings.extraction_model, settings.extraction_timeout_seconds
            )
        logger.warning("preference_extractor_fallback", reason="anthropic_api_key not configured")
    elif choice != "keyword":
        logger.warning("preference_extractor_unknown", choice=choice)
    return KeywordPreferenceExtractor()
