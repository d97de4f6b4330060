"""Prompt templates for the agent loop, stored as .txt files in templates/."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

TEMPLATES_DIR = Path(__file__).parent / "templates"


@lru_cache(maxsize=None)
def load_prompt(name: str) -> str:
    """Raw template text with {variable} placeholders."""
    return (TEMPLATES_DIR / f"{name}.txt").read_text(encoding="utf-8").strip()


def render_prompt(name: str, **kwargs: object) -> str:
    return load_prompt(name).format(**kwargs)


def system_prompt(marker: str) -> str:
    return render_prompt("system", marker=marker)


def continuation_prompt(marker: str) -> str:
    return render_prompt("continuation", marker=marker)


def budget_warning(remaining: int, marker: str) -> str:
    return render_prompt("budget_warning", remaining=remaining, marker=marker)


def malformed_response_prompt(error: str) -> str:
    return render_prompt("malformed_response", error=error)
