"""Immutable competency dictionary snapshots.

A report copies the project's dictionary at creation time; the pipeline only
ever reads the copy. Two source shapes are accepted: the English shape
(``competencies``/``levels``/``key_behaviors``) and the legacy Indonesian
shape (``kompetensi``/``namaKompetensi``/``level``/``nomor``/``penjelasan``/
``keyBehavior``).
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class KeyBehavior(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    text: str


class Level(BaseModel):
    model_config = ConfigDict(frozen=True)

    number: int
    description: str = ""
    key_behaviors: tuple[KeyBehavior, ...] = ()


class Competency(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    definition: str = ""
    levels: tuple[Level, ...] = ()

    @property
    def max_level(self) -> int:
        return max((level.number for level in self.levels), default=0)

    def level(self, number: int) -> Level | None:
        for level in self.levels:
            if level.number == number:
                return level
        return None

    def key_behavior_levels(self) -> dict[str, int]:
        """Map every key-behavior id of this competency to its level number."""

        return {kb.id: level.number for level in self.levels for kb in level.key_behaviors}


class DictionarySnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    competencies: tuple[Competency, ...] = Field(default_factory=tuple)

    def competency(self, competency_id: str) -> Competency | None:
        for competency in self.competencies:
            if competency.id == competency_id:
                return competency
        return None

    def has_tag(self, competency_id: str, level: int, key_behavior_id: str) -> bool:
        """Return True when the competency/level/key-behavior triple exists in this snapshot."""

        competency = self.competency(competency_id)
        if competency is None:
            return False
        found = competency.level(level)
        if found is None:
            return False
        return any(kb.id == key_behavior_id for kb in found.key_behaviors)

    @classmethod
    def from_content(cls, name: str, content: dict[str, Any]) -> "DictionarySnapshot":
        """Normalize stored dictionary JSON into a snapshot, assigning missing ids."""

        raw_competencies = content.get("competencies")
        if raw_competencies is None:
            raw_competencies = content.get("kompetensi", [])
        competencies: list[Competency] = []
        for index, raw in enumerate(raw_competencies or [], start=1):
            comp_name = str(raw.get("name") or raw.get("namaKompetensi") or f"Competency {index}").strip()
            comp_id = str(raw.get("id") or _slug(comp_name) or f"C{index}")
            levels: list[Level] = []
            for raw_level in raw.get("levels") or raw.get("level") or []:
                number = int(raw_level.get("number", raw_level.get("nomor", len(levels) + 1)))
                raw_kbs = raw_level.get("key_behaviors")
                if raw_kbs is None:
                    raw_kbs = raw_level.get("keyBehavior", [])
                key_behaviors = []
                for kb_index, raw_kb in enumerate(raw_kbs, start=1):
                    if isinstance(raw_kb, dict):
                        kb_text = str(raw_kb.get("text", "")).strip()
                        kb_id = str(raw_kb.get("id") or _default_kb_id(comp_id, number, kb_index))
                    else:
                        kb_text = str(raw_kb).strip()
                        kb_id = _default_kb_id(comp_id, number, kb_index)
                    key_behaviors.append(KeyBehavior(id=kb_id, text=kb_text))
                levels.append(
                    Level(
                        number=number,
                        description=str(raw_level.get("description") or raw_level.get("penjelasan") or ""),
                        key_behaviors=tuple(key_behaviors),
                    )
                )
            levels.sort(key=lambda lvl: lvl.number)
            competencies.append(
                Competency(
                    id=comp_id,
                    name=comp_name,
                    definition=str(raw.get("definition") or raw.get("definisi") or ""),
                    levels=tuple(levels),
                )
            )
        return cls(name=name, competencies=tuple(competencies))


def _default_kb_id(competency_id: str, level: int, index: int) -> str:
    return f"{competency_id}.L{level}.KB{index}"


def _slug(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
