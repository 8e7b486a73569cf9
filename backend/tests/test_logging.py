"""Tests for structlog configuration and per-task log context."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
import structlog

from visualizer.config import Settings
from visualizer.logging import bound_log_context, configure_logging


@pytest.fixture(autouse=True)
def _restore_structlog() -> Iterator[None]:
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


def test_log_level_filters(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("visualizer.logging.settings", Settings(log_level="ERROR"))
    configure_logging()
    # The wrapper class name encodes the filtering level
    assert "Error" in type(structlog.get_logger().bind()).__name__


def test_production_renders_json(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("visualizer.logging.settings", Settings(environment="production"))
    configure_logging()
    processors = structlog.get_config()["processors"]
    assert isinstance(processors[-1], structlog.processors.JSONRenderer)


def test_bound_log_context_is_scoped() -> None:
    with bound_log_context(variation_index=2):
        assert structlog.contextvars.get_contextvars()["variation_index"] == 2
    assert "variation_index" not in structlog.contextvars.get_contextvars()
