"""Prompt template loading from backend/prompts/."""

from __future__ import annotations

from functools import cache
from pathlib import Path

PROMPTS_DIR = Path(__file__).resolve().parent.parent.parent / "prompts"


@cache
def load_prompt(name: str) -> str:
    """Read ``prompts/<name>.txt`` once per process."""
    return (PROMPTS_DIR / f"{name}.txt").read_text()
