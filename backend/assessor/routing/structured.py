"""Validation of model JSON output into a tagged result."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Generic, TypeVar

from pydantic import BaseModel, ValidationError

SchemaT = TypeVar("SchemaT", bound=BaseModel)

CORRECTIVE_INSTRUCTION = (
    "\n\n*** CORRECTION ***\n"
    "Your previous answer could not be parsed: {error}\n"
    "Return ONLY one JSON object that matches the requested structure exactly, "
    "with every required field present and no markdown fences."
)


@dataclass(frozen=True, slots=True)
class ParsedOk(Generic[SchemaT]):
    payload: SchemaT


@dataclass(frozen=True, slots=True)
class ParsedInvalid:
    error: str


ParseOutcome = ParsedOk | ParsedInvalid


def clean_json_text(text: str) -> str:
    """Strip markdown fences and surrounding chatter around the outermost JSON object."""

    clean = text.replace("```json", "").replace("```", "").strip()
    first_brace = clean.find("{")
    last_brace = clean.rfind("}")
    if first_brace != -1 and last_brace > first_brace:
        clean = clean[first_brace : last_brace + 1]
    return clean


def parse_structured(text: str, schema: type[SchemaT]) -> ParseOutcome:
    if not text or not text.strip():
        return ParsedInvalid("empty response")
    try:
        decoded = json.loads(clean_json_text(text))
    except json.JSONDecodeError as exc:
        return ParsedInvalid(f"invalid JSON ({exc.msg} at position {exc.pos})")
    try:
        return ParsedOk(schema.model_validate(decoded))
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}" for err in exc.errors()[:5]
        )
        return ParsedInvalid(f"schema mismatch ({problems})")


def corrective_prompt(user_prompt: str, error: str) -> str:
    return user_prompt + CORRECTIVE_INSTRUCTION.format(error=error)
