"""Evidence extraction and key-behavior checking against a dictionary snapshot."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import Protocol

from pydantic import BaseModel, Field

from assessor.competency.dictionary import Competency, DictionarySnapshot
from assessor.errors import DictionaryMismatch
from assessor.evidence.types import DocumentText, ExtractedEvidence, KeyBehaviorVerdict
from assessor.models.key_behavior_analysis import KeyBehaviorStatus
from assessor.models.usage_log_entry import UsageAction
from assessor.prompts import PromptSet, method_guides_text, section
from assessor.routing.router import CallContext, ModelRouter
from assessor.services.model_catalog import ModelRole

logger = logging.getLogger(__name__)

MAX_DOCUMENT_CHARS = 100_000
_NO_EVIDENCE_REASONING = "No evidence found for this key behavior."
_NO_VERDICT_REASONING = "The model returned no verdict for this key behavior."


class EvidenceRecord(Protocol):
    id: int
    competency_id: str
    level: int
    key_behavior_id: str
    quote: str
    reasoning: str
    source: str
    is_contra_indicator: bool


class _RawEvidence(BaseModel):
    """One model-proposed item. Tags stay nullable so a bad item is dropped, not the whole payload."""

    competency_id: str | None = None
    level: int | str | None = None
    key_behavior_id: str | None = None
    quote: str | None = None
    reasoning: str | None = None
    is_contra_indicator: bool | None = False


class EvidencePayload(BaseModel):
    evidence: list[_RawEvidence] = Field(default_factory=list)


class _RawVerdict(BaseModel):
    key_behavior_id: str
    status: KeyBehaviorStatus
    reasoning: str | None = None
    evidence_ids: list[int | str] | None = None


class KeyBehaviorPayload(BaseModel):
    key_behaviors: list[_RawVerdict]


_EVIDENCE_OUTPUT = """*** OUTPUT REQUIREMENT ***
Return a JSON object exactly matching this structure:
{
  "evidence": [
    {
      "competency_id": "<competency id from the dictionary>",
      "level": <level number>,
      "key_behavior_id": "<key behavior id from the dictionary>",
      "quote": "<verbatim quote>",
      "reasoning": "<why this quote is relevant>",
      "is_contra_indicator": <true | false>
    }
  ]
}"""

_KB_OUTPUT = """*** OUTPUT REQUIREMENT ***
Return a JSON object exactly matching this structure:
{
  "key_behaviors": [
    {
      "key_behavior_id": "<key behavior id>",
      "status": "FULFILLED" | "NOT_OBSERVED" | "CONTRA_INDICATOR",
      "reasoning": "<explanation; do not include evidence ids here>",
      "evidence_ids": [<evidence id>, ...]
    }
  ]
}"""


class EvidenceResolver:
    """Matches evidence snippets against the key behaviors of a dictionary snapshot."""

    def __init__(
        self,
        router: ModelRouter,
        prompts: PromptSet,
        *,
        report_id: int | None = None,
        project_id: int | None = None,
        specific_context: str = "",
        global_context: str = "",
        simulation_method_guides: dict[str, str] | None = None,
    ) -> None:
        self._router = router
        self._prompts = prompts
        self._report_id = report_id
        self._project_id = project_id
        self._specific_context = specific_context
        self._global_context = global_context
        self._method_guides = dict(simulation_method_guides or {})

    def extract_evidence(
        self,
        documents: Sequence[DocumentText],
        dictionary: DictionarySnapshot,
    ) -> list[ExtractedEvidence]:
        """Extract tagged quotes, one judgment call per document."""

        results: list[ExtractedEvidence] = []
        for document in documents:
            results.extend(self.extract_document_evidence(document, dictionary))
        return results

    def extract_document_evidence(
        self,
        document: DocumentText,
        dictionary: DictionarySnapshot,
    ) -> list[ExtractedEvidence]:
        if not document.text.strip():
            return []
        payload, _ = self._router.invoke(
            ModelRole.JUDGMENT,
            self._prompts.system_prompt(self._prompts.evidence),
            self._build_extraction_prompt(document, dictionary),
            EvidencePayload,
            self._context(UsageAction.EXTRACTION),
        )

        results: list[ExtractedEvidence] = []
        seen: set[tuple[str, int, str, str]] = set()
        for raw in payload.evidence:
            try:
                if not _clean_text(raw.quote):
                    raise DictionaryMismatch(f"empty quote for {raw.key_behavior_id!r}")
                tagged = self._resolve_tag(raw, dictionary)
            except DictionaryMismatch as exc:
                logger.warning(
                    "evidence.dictionary_mismatch report_id=%s document_id=%s detail=%s",
                    self._report_id,
                    document.document_id,
                    exc,
                )
                continue
            competency_id, level, key_behavior_id = tagged
            quote = _clean_text(raw.quote)
            dedupe_key = (competency_id, level, key_behavior_id, quote.lower())
            if dedupe_key in seen:
                continue
            seen.add(dedupe_key)
            results.append(
                ExtractedEvidence(
                    document_id=document.document_id,
                    competency_id=competency_id,
                    level=level,
                    key_behavior_id=key_behavior_id,
                    quote=quote,
                    reasoning=_clean_text(raw.reasoning),
                    source=document.simulation_method,
                    is_contra_indicator=bool(raw.is_contra_indicator),
                )
            )
        return results

    def check_key_behaviors(
        self,
        evidence: Sequence[EvidenceRecord],
        dictionary: DictionarySnapshot,
        competency: Competency,
    ) -> list[KeyBehaviorVerdict]:
        """Judge every key behavior of one competency in a single batched call."""

        pool = [item for item in evidence if item.competency_id == competency.id]
        if not pool:
            return [
                KeyBehaviorVerdict(
                    competency_id=competency.id,
                    level=level.number,
                    key_behavior_id=kb.id,
                    key_behavior_text=kb.text,
                    status=KeyBehaviorStatus.NOT_OBSERVED.value,
                    reasoning=_NO_EVIDENCE_REASONING,
                )
                for level in competency.levels
                for kb in level.key_behaviors
            ]

        payload, _ = self._router.invoke(
            ModelRole.JUDGMENT,
            self._prompts.system_prompt(self._prompts.kb_fulfillment),
            self._build_kb_prompt(pool, competency),
            KeyBehaviorPayload,
            self._context(UsageAction.KB_FULFILLMENT),
        )

        kb_levels = competency.key_behavior_levels()
        pool_ids = {item.id for item in pool}
        raw_by_kb: dict[str, _RawVerdict] = {}
        for raw in payload.key_behaviors:
            kb_id = raw.key_behavior_id.strip()
            if kb_id not in kb_levels:
                logger.warning(
                    "evidence.dictionary_mismatch report_id=%s competency_id=%s detail=unknown key behavior %s",
                    self._report_id,
                    competency.id,
                    kb_id,
                )
                continue
            raw_by_kb.setdefault(kb_id, raw)

        contra_by_kb: dict[str, list[int]] = {}
        for item in pool:
            if item.is_contra_indicator:
                contra_by_kb.setdefault(item.key_behavior_id, []).append(item.id)

        verdicts: list[KeyBehaviorVerdict] = []
        for level in competency.levels:
            for kb in level.key_behaviors:
                raw = raw_by_kb.get(kb.id)
                if raw is None:
                    verdict = KeyBehaviorVerdict(
                        competency_id=competency.id,
                        level=level.number,
                        key_behavior_id=kb.id,
                        key_behavior_text=kb.text,
                        status=KeyBehaviorStatus.NOT_OBSERVED.value,
                        reasoning=_NO_VERDICT_REASONING,
                        evaluated=False,
                    )
                else:
                    verdict = KeyBehaviorVerdict(
                        competency_id=competency.id,
                        level=level.number,
                        key_behavior_id=kb.id,
                        key_behavior_text=kb.text,
                        status=raw.status.value,
                        reasoning=_clean_text(raw.reasoning),
                        evidence_ids=_normalize_evidence_ids(raw.evidence_ids or [], pool_ids),
                    )
                contra_ids = contra_by_kb.get(kb.id)
                if contra_ids:
                    _apply_contra_precedence(verdict, contra_ids)
                verdicts.append(verdict)
        return verdicts

    def _resolve_tag(self, raw: _RawEvidence, dictionary: DictionarySnapshot) -> tuple[str, int, str]:
        wanted = _clean_text(raw.competency_id)
        competency = dictionary.competency(wanted) if wanted else None
        if competency is None and wanted:
            competency = next((c for c in dictionary.competencies if c.name.lower() == wanted.lower()), None)
        if competency is None:
            raise DictionaryMismatch(f"unknown competency {raw.competency_id!r}")
        level = _parse_level(raw.level)
        key_behavior_id = (raw.key_behavior_id or "").strip()
        if level is None or not dictionary.has_tag(competency.id, level, key_behavior_id):
            raise DictionaryMismatch(
                f"unknown level/key behavior {raw.level!r}/{key_behavior_id!r} for competency {competency.id!r}"
            )
        return competency.id, level, key_behavior_id

    def _context(self, action: UsageAction) -> CallContext:
        return CallContext(action=action, report_id=self._report_id, project_id=self._project_id)

    def _context_sections(self) -> list[str]:
        return [
            section("GLOBAL GUIDELINES", self._global_context),
            section("PROJECT GUIDELINES", self._prompts.project_context),
            section("REPORT SPECIFIC CONTEXT", self._specific_context),
            section("SIMULATION METHOD CONTEXTS", method_guides_text(self._method_guides)),
        ]

    def _build_extraction_prompt(self, document: DocumentText, dictionary: DictionarySnapshot) -> str:
        dictionary_lines: list[str] = []
        for competency in dictionary.competencies:
            dictionary_lines.append(f"COMPETENCY {competency.id}: {competency.name}")
            if competency.definition:
                dictionary_lines.append(f"  Definition: {competency.definition}")
            for level in competency.levels:
                dictionary_lines.append(f"  LEVEL {level.number}: {level.description}")
                for kb in level.key_behaviors:
                    dictionary_lines.append(f"    [{kb.id}] {kb.text}")
        return "\n\n".join(
            [
                section("TASK", "EVIDENCE_EXTRACTION"),
                *self._context_sections(),
                section(f"COMPETENCY DICTIONARY: {dictionary.name}", "\n".join(dictionary_lines)),
                section(
                    f"ASSESSEE RESULTS (document {document.document_id}, method {document.simulation_method})",
                    document.text[:MAX_DOCUMENT_CHARS],
                ),
                _EVIDENCE_OUTPUT,
            ]
        )

    def _build_kb_prompt(self, pool: Sequence[EvidenceRecord], competency: Competency) -> str:
        level_lines: list[str] = []
        for level in competency.levels:
            level_lines.append(f"LEVEL {level.number}: {level.description}")
            for kb in level.key_behaviors:
                level_lines.append(f"  [{kb.id}] {kb.text}")
        evidence_lines = [
            f"(ID:{item.id}) [Level {item.level}] [{item.key_behavior_id}] SOURCE [{item.source}]"
            f"{' CONTRA-INDICATOR' if item.is_contra_indicator else ''}: \"{item.quote}\"\n   Context: {item.reasoning}"
            for item in pool
        ]
        return "\n\n".join(
            [
                section("TASK", "KB_FULFILLMENT"),
                *self._context_sections(),
                section(
                    "COMPETENCY",
                    f"{competency.id}: {competency.name}\n{competency.definition}".strip(),
                ),
                section("KEY BEHAVIORS TO EVALUATE", "\n".join(level_lines)),
                section("EVIDENCE POOL", "\n\n".join(evidence_lines)),
                _KB_OUTPUT,
            ]
        )


def _apply_contra_precedence(verdict: KeyBehaviorVerdict, contra_ids: list[int]) -> None:
    """Contra-indicator evidence disqualifies the key behavior regardless of positive evidence."""

    if verdict.status != KeyBehaviorStatus.CONTRA_INDICATOR.value:
        overridden = verdict.status
        verdict.status = KeyBehaviorStatus.CONTRA_INDICATOR.value
        note = f"Contra-indicator evidence overrides the {overridden} verdict."
        verdict.reasoning = f"{verdict.reasoning} {note}".strip()
    verdict.evaluated = True
    for evidence_id in contra_ids:
        if evidence_id not in verdict.evidence_ids:
            verdict.evidence_ids.append(evidence_id)


def _normalize_evidence_ids(candidate_ids: list[int | str], valid_ids: set[int]) -> list[int]:
    seen: set[int] = set()
    result: list[int] = []
    for value in candidate_ids:
        try:
            parsed = int(str(value).strip().removeprefix("ID:"))
        except (TypeError, ValueError):
            continue
        if parsed not in valid_ids or parsed in seen:
            continue
        seen.add(parsed)
        result.append(parsed)
    return sorted(result)


def _parse_level(value: int | str | None) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    match = re.search(r"\d+", str(value))
    return int(match.group()) if match else None


def _clean_text(value: str | None) -> str:
    if not value:
        return ""
    return re.sub(r"\s+", " ", value).strip()
