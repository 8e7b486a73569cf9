"""Tests for the style and room catalog lookups."""

from __future__ import annotations

from typing import get_args

from visualizer.catalog import (
    FALLBACK_STYLE,
    ROOM_CATALOG,
    STYLE_CATALOG,
    get_room,
    get_style,
    room_label,
)
from visualizer.models.contracts import DesignStyle, RoomType


class TestCatalogCoverage:
    def test_every_design_style_has_an_entry(self) -> None:
        styles = {s for s in get_args(DesignStyle) if s != "other"}
        assert set(STYLE_CATALOG) == styles

    def test_every_concrete_room_has_an_entry(self) -> None:
        rooms = {r for r in get_args(RoomType) if r != "other"}
        assert set(ROOM_CATALOG) == rooms

    def test_room_default_styles_are_catalog_styles(self) -> None:
        for entry in ROOM_CATALOG.values():
            assert entry.default_style in STYLE_CATALOG

    def test_fallback_style_is_in_catalog(self) -> None:
        assert FALLBACK_STYLE in STYLE_CATALOG

    def test_style_entries_are_populated(self) -> None:
        for key, entry in STYLE_CATALOG.items():
            assert entry.label.lower() == key
            assert entry.materials and entry.colors and entry.fixtures
            assert entry.lighting


class TestLookups:
    def test_get_style_is_case_insensitive(self) -> None:
        assert get_style("  Farmhouse ") is STYLE_CATALOG["farmhouse"]

    def test_get_style_unknown_returns_none(self) -> None:
        assert get_style("japandi") is None
        assert get_style(None) is None
        assert get_style("") is None

    def test_get_room_accepts_spaces(self) -> None:
        assert get_room("Living Room") is ROOM_CATALOG["living_room"]

    def test_get_room_other_returns_none(self) -> None:
        assert get_room("other") is None

    def test_room_label_for_catalog_room(self) -> None:
        assert room_label("living_room") == "living room"
        assert room_label("kitchen") == "kitchen"

    def test_room_label_echoes_custom_text(self) -> None:
        assert room_label("home_office") == "home office"
