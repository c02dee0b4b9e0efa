"""Prompt templates and per-project prompt overrides."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields
from functools import lru_cache
from pathlib import Path
from typing import Any

PROMPT_VERSION = "pipeline.v1"
_TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"


class PromptTemplateError(RuntimeError):
    """Raised when a bundled prompt template is missing or empty."""


@lru_cache(maxsize=32)
def load_template(name: str) -> str:
    prompt_file = _TEMPLATE_DIR / f"{name}.txt"
    try:
        prompt_text = prompt_file.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise PromptTemplateError(f"Failed to load prompt template: {prompt_file}") from exc
    if not prompt_text:
        raise PromptTemplateError(f"Prompt template is empty: {prompt_file}")
    return prompt_text


@dataclass(frozen=True, slots=True)
class PromptSet:
    """All instructions used by one report run. Project overrides win over bundled defaults."""

    persona: str
    evidence: str
    kb_fulfillment: str
    competency_level: str
    development: str
    summary: str
    summary_critique: str
    ask_ai_system: str
    project_context: str = ""

    @classmethod
    def defaults(cls) -> "PromptSet":
        return cls(
            **{
                field.name: load_template(field.name)
                for field in fields(cls)
                if field.name != "project_context"
            }
        )

    @classmethod
    def with_overrides(cls, overrides: dict[str, Any] | None, *, project_context: str = "") -> "PromptSet":
        base = asdict(cls.defaults())
        for key, value in (overrides or {}).items():
            if key in base and isinstance(value, str) and value.strip():
                base[key] = value.strip()
        base["project_context"] = project_context or ""
        return cls(**base)

    def to_dict(self) -> dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PromptSet":
        known = {field.name for field in fields(cls)}
        return cls(**{key: str(value) for key, value in data.items() if key in known})

    def system_prompt(self, instructions: str) -> str:
        return f"{self.persona}\n\n{instructions}"


def section(title: str, body: str | None) -> str:
    """Render one ``=== TITLE ===`` block; empty bodies render as N/A."""

    text = (body or "").strip()
    return f"=== {title} ===\n{text or 'N/A'}"


def method_guides_text(guides: Mapping[str, str] | None) -> str:
    """``[method]: guide`` blocks for the SIMULATION METHOD CONTEXTS section."""

    return "\n\n".join(f"[{method}]: {guide}" for method, guide in (guides or {}).items() if guide)
