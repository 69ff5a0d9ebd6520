"""Prompt templates for the LLM-backed planning stages.

Prompts live beside this module as Markdown files so they can be edited
without touching code. Any prompt can be replaced at runtime through the
``DAY_PLANNER_PROMPT_<NAME>`` environment variable, holding either a file
path or the literal prompt text.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, List

__all__ = ["PromptTemplate", "available_prompts", "load_prompt_template", "render_prompt"]

_PROMPT_ROOT = Path(__file__).resolve().parent
_ENV_PREFIX = "DAY_PLANNER_PROMPT_"


def _resolve_override(name: str) -> str | None:
    override_value = os.getenv(_ENV_PREFIX + name.upper())
    if not override_value:
        return None

    override_path = Path(override_value)
    if override_path.is_file():
        return override_path.read_text(encoding="utf-8")

    # Treat the environment variable as literal prompt content.
    return override_value


@dataclass(frozen=True)
class PromptTemplate:
    """A named ``str.format`` template."""

    name: str
    text: str

    def format(self, **kwargs: Any) -> str:
        try:
            return self.text.format(**kwargs)
        except KeyError as exc:
            raise KeyError(f"Prompt '{self.name}' needs placeholder {exc.args[0]!r}") from exc


def available_prompts() -> List[str]:
    return sorted(path.stem for path in _PROMPT_ROOT.glob("*.md"))


@lru_cache(maxsize=None)
def load_prompt_template(name: str) -> PromptTemplate:
    """Load ``<name>.md`` from this package unless overridden via the environment."""
    override = _resolve_override(name)
    if override is not None:
        return PromptTemplate(name, override)

    path = _PROMPT_ROOT / f"{name}.md"
    if not path.exists():
        raise FileNotFoundError(f"Prompt file not found: {path}")
    return PromptTemplate(name, path.read_text(encoding="utf-8"))


def render_prompt(name: str, **kwargs: Any) -> str:
    return load_prompt_template(name).format(**kwargs)
