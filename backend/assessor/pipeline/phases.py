"""Phase executor: runs one named phase against persisted report state.

Every phase checkpoints per work unit (a document or a competency): the unit's
outputs and its progress marker are committed in one transaction, so a phase
re-run after a failure skips the units it already finished.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from time import perf_counter

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from assessor.competency.dictionary import Competency, DictionarySnapshot
from assessor.errors import ModelUnavailable, PhaseFailed, SchemaViolation, StorageUnavailable
from assessor.evidence.resolver import EvidenceResolver
from assessor.evidence.types import DocumentText
from assessor.models.competency_analysis import CompetencyAnalysis
from assessor.models.evidence import Evidence
from assessor.models.executive_summary import ExecutiveSummary
from assessor.models.key_behavior_analysis import KeyBehaviorAnalysis, KeyBehaviorStatus
from assessor.models.report import Report
from assessor.models.source_document import ExtractionStatus, SourceDocument
from assessor.models.usage_log_entry import UsageAction
from assessor.pipeline.config import PipelineConfig
from assessor.prompts import method_guides_text, section
from assessor.routing.router import CallContext, ModelRouter
from assessor.services.model_catalog import ModelRole
from assessor.services.stores import DocumentStore

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    EXTRACTION = "EXTRACTION"
    KB_FULFILLMENT = "KB_FULFILLMENT"
    LEVEL_AND_NARRATIVE = "LEVEL_AND_NARRATIVE"
    RECOMMENDATIONS = "RECOMMENDATIONS"
    SUMMARY_DRAFT = "SUMMARY_DRAFT"
    SUMMARY_CRITIQUE = "SUMMARY_CRITIQUE"
    ASK_AI_REFINE = "ASK_AI_REFINE"


PHASE_SEQUENCE: tuple[Phase, ...] = (
    Phase.EXTRACTION,
    Phase.KB_FULFILLMENT,
    Phase.LEVEL_AND_NARRATIVE,
    Phase.RECOMMENDATIONS,
    Phase.SUMMARY_DRAFT,
    Phase.SUMMARY_CRITIQUE,
)


class NarrativePayload(BaseModel):
    explanation: str = Field(min_length=1)


class RecommendationsPayload(BaseModel):
    individual: str
    assignment: str
    training: str


class SummaryPayload(BaseModel):
    overview: str = Field(min_length=1)
    strengths: str
    weaknesses: str
    recommendations: str


_NARRATIVE_OUTPUT = """*** OUTPUT REQUIREMENT ***
Return ONLY a JSON object:
{
  "explanation": "<narrative explaining the achieved level>"
}"""

_RECOMMENDATIONS_OUTPUT = """*** OUTPUT REQUIREMENT ***
Return ONLY a JSON object:
{
  "individual": "<markdown string>",
  "assignment": "<markdown string>",
  "training": "<markdown string>"
}"""

_SUMMARY_OUTPUT = """*** OUTPUT REQUIREMENT ***
Return ONLY a JSON object:
{
  "overview": "<narrative blending strengths and weaknesses>",
  "strengths": "<overall strengths>",
  "weaknesses": "<overall weaknesses>",
  "recommendations": "<overall recommendations>"
}"""


@dataclass(slots=True)
class ReportState:
    """Inputs and progress of one report, rebuilt from the database before every run."""

    report_id: int
    project_id: int
    dictionary: DictionarySnapshot
    target_levels: dict[str, int]
    specific_context: str
    config: PipelineConfig
    completed_phases: list[str] = field(default_factory=list)
    phase_progress: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def from_report(cls, report: Report, config: PipelineConfig) -> "ReportState":
        dictionary_data = dict(report.dictionary_snapshot_json or {})
        return cls(
            report_id=report.id,
            project_id=report.project_id,
            dictionary=DictionarySnapshot.model_validate(dictionary_data),
            target_levels={str(key): int(value) for key, value in (report.target_levels_json or {}).items()},
            specific_context=report.specific_context or "",
            config=config,
            completed_phases=list(report.completed_phases_json or []),
            phase_progress={key: list(value) for key, value in (report.phase_progress_json or {}).items()},
        )

    def target_level(self, competency_id: str) -> int:
        return self.target_levels.get(competency_id, self.config.default_target_level)

    def unit_done(self, phase: Phase, unit: str) -> bool:
        return unit in self.phase_progress.get(phase.value, [])


class PhaseExecutor:
    """Runs one phase of the fixed sequence, or ask-ai refinement, for one report."""

    def __init__(self, db: Session, router: ModelRouter, documents: DocumentStore) -> None:
        self._db = db
        self._router = router
        self._documents = documents
        self._handlers: dict[Phase, Callable[[ReportState], None]] = {
            Phase.EXTRACTION: self._run_extraction,
            Phase.KB_FULFILLMENT: self._run_kb_fulfillment,
            Phase.LEVEL_AND_NARRATIVE: self._run_level_and_narrative,
            Phase.RECOMMENDATIONS: self._run_recommendations,
            Phase.SUMMARY_DRAFT: self._run_summary_draft,
            Phase.SUMMARY_CRITIQUE: self._run_summary_critique,
        }

    def run(self, phase: Phase, state: ReportState) -> ReportState:
        """Execute ``phase`` and return the state with the phase recorded as completed.

        Terminal model errors become ``PhaseFailed``; storage errors become
        ``StorageUnavailable``. Neither rolls back units committed earlier.
        """

        handler = self._handlers.get(phase)
        if handler is None:
            raise ValueError(f"{phase.value} is not part of the report sequence")
        if phase.value in state.completed_phases:
            return state

        started = perf_counter()
        try:
            handler(state)
        except (ModelUnavailable, SchemaViolation) as exc:
            self._db.rollback()
            raise PhaseFailed(phase.value, exc.reason_code, str(exc)) from exc
        except SQLAlchemyError as exc:
            self._db.rollback()
            logger.exception("pipeline.phase_storage_failed report_id=%s phase=%s", state.report_id, phase.value)
            raise StorageUnavailable(f"{phase.value}: report state could not be persisted") from exc

        state.completed_phases.append(phase.value)
        logger.info(
            "pipeline.phase_timing report_id=%s phase=%s total_ms=%.2f",
            state.report_id,
            phase.value,
            (perf_counter() - started) * 1000.0,
        )
        return state

    def _resolver(self, state: ReportState) -> EvidenceResolver:
        return EvidenceResolver(
            self._router,
            state.config.prompts,
            report_id=state.report_id,
            project_id=state.project_id,
            specific_context=state.specific_context,
            global_context=state.config.global_context,
            simulation_method_guides=state.config.simulation_method_guides,
        )

    def _context(self, state: ReportState, action: UsageAction) -> CallContext:
        return CallContext(action=action, report_id=state.report_id, project_id=state.project_id)

    def _commit_unit(self, state: ReportState, phase: Phase, unit: str) -> None:
        """Record ``unit`` as done for ``phase`` and commit it together with the unit's outputs."""

        report = self._db.get(Report, state.report_id)
        if report is None:
            raise StorageUnavailable(f"Report {state.report_id} disappeared during {phase.value}")
        progress = {key: list(value) for key, value in (report.phase_progress_json or {}).items()}
        units = progress.setdefault(phase.value, [])
        if unit not in units:
            units.append(unit)
        report.phase_progress_json = progress
        self._db.commit()
        state.phase_progress = progress

    def _run_extraction(self, state: ReportState) -> None:
        resolver = self._resolver(state)
        documents = list(
            self._db.scalars(
                select(SourceDocument).where(SourceDocument.report_id == state.report_id).order_by(SourceDocument.id)
            )
        )
        for document in documents:
            unit = str(document.id)
            if state.unit_done(Phase.EXTRACTION, unit):
                continue
            if document.extraction_status == ExtractionStatus.FAILED.value:
                logger.warning(
                    "pipeline.document_skipped report_id=%s document_id=%s reason=extraction_failed",
                    state.report_id,
                    document.id,
                )
                self._commit_unit(state, Phase.EXTRACTION, unit)
                continue

            text = self._documents.get_extracted_text(document.id)
            items = resolver.extract_document_evidence(
                DocumentText(document_id=document.id, simulation_method=document.simulation_method, text=text),
                state.dictionary,
            )
            for item in items:
                self._db.add(
                    Evidence(
                        report_id=state.report_id,
                        document_id=item.document_id,
                        competency_id=item.competency_id,
                        level=item.level,
                        key_behavior_id=item.key_behavior_id,
                        quote=item.quote,
                        reasoning=item.reasoning,
                        source=item.source,
                        is_contra_indicator=item.is_contra_indicator,
                        is_ai_generated=True,
                    )
                )
            self._commit_unit(state, Phase.EXTRACTION, unit)
            logger.info(
                "pipeline.evidence_extracted report_id=%s document_id=%s evidence=%d",
                state.report_id,
                document.id,
                len(items),
            )

    def _run_kb_fulfillment(self, state: ReportState) -> None:
        resolver = self._resolver(state)
        evidence = list(
            self._db.scalars(select(Evidence).where(Evidence.report_id == state.report_id).order_by(Evidence.id))
        )
        for competency in state.dictionary.competencies:
            if state.unit_done(Phase.KB_FULFILLMENT, competency.id):
                continue
            verdicts = resolver.check_key_behaviors(evidence, state.dictionary, competency)
            for verdict in verdicts:
                self._db.add(
                    KeyBehaviorAnalysis(
                        report_id=state.report_id,
                        competency_id=verdict.competency_id,
                        level=verdict.level,
                        key_behavior_id=verdict.key_behavior_id,
                        key_behavior_text=verdict.key_behavior_text,
                        status=verdict.status,
                        reasoning=verdict.reasoning,
                        evidence_ids_json=list(verdict.evidence_ids),
                        evaluated=verdict.evaluated,
                    )
                )
            self._commit_unit(state, Phase.KB_FULFILLMENT, competency.id)

    def _run_level_and_narrative(self, state: ReportState) -> None:
        prompts = state.config.prompts
        for competency in state.dictionary.competencies:
            if state.unit_done(Phase.LEVEL_AND_NARRATIVE, competency.id):
                continue
            verdicts = self._verdicts(state.report_id, competency.id)
            achieved = state.config.level_policy.achieved_level(competency, verdicts)
            target = state.target_level(competency.id)
            payload, _ = self._router.invoke(
                ModelRole.NARRATIVE,
                prompts.system_prompt(prompts.competency_level),
                _level_prompt(state, competency, verdicts, achieved, target),
                NarrativePayload,
                self._context(state, UsageAction.LEVEL_AND_NARRATIVE),
            )
            self._db.add(
                CompetencyAnalysis(
                    report_id=state.report_id,
                    competency_id=competency.id,
                    competency_name=competency.name,
                    target_level=target,
                    achieved_level=achieved,
                    explanation=payload.explanation.strip(),
                )
            )
            self._commit_unit(state, Phase.LEVEL_AND_NARRATIVE, competency.id)
            logger.info(
                "pipeline.level_assigned report_id=%s competency_id=%s achieved=%d target=%d",
                state.report_id,
                competency.id,
                achieved,
                target,
            )

    def _run_recommendations(self, state: ReportState) -> None:
        prompts = state.config.prompts
        for competency in state.dictionary.competencies:
            if state.unit_done(Phase.RECOMMENDATIONS, competency.id):
                continue
            analysis = self._analysis(state.report_id, competency.id)
            if analysis is None:
                raise StorageUnavailable(f"Competency analysis for {competency.id!r} is missing")
            payload, _ = self._router.invoke(
                ModelRole.NARRATIVE,
                prompts.system_prompt(prompts.development),
                _recommendations_prompt(state, competency, analysis, self._verdicts(state.report_id, competency.id)),
                RecommendationsPayload,
                self._context(state, UsageAction.RECOMMENDATIONS),
            )
            analysis.recommendations_json = payload.model_dump()
            analysis.development_recommendations = _recommendations_markdown(payload)
            self._commit_unit(state, Phase.RECOMMENDATIONS, competency.id)

    def _run_summary_draft(self, state: ReportState) -> None:
        existing = self._summary(state.report_id)
        if existing is not None:
            return
        prompts = state.config.prompts
        analyses = self._analyses(state.report_id)
        payload, _ = self._router.invoke(
            ModelRole.NARRATIVE,
            prompts.system_prompt(prompts.summary),
            _summary_prompt(state, analyses),
            SummaryPayload,
            self._context(state, UsageAction.SUMMARY_DRAFT),
        )
        draft = payload.model_dump()
        self._db.add(ExecutiveSummary(report_id=state.report_id, draft_json=draft, **draft))
        self._db.commit()

    def _run_summary_critique(self, state: ReportState) -> None:
        summary = self._summary(state.report_id)
        if summary is None:
            raise StorageUnavailable(f"Executive summary draft for report {state.report_id} is missing")
        if summary.critique_applied:
            return
        prompts = state.config.prompts
        payload, _ = self._router.invoke(
            ModelRole.NARRATIVE,
            prompts.system_prompt(prompts.summary_critique),
            _critique_prompt(state, summary.draft_json or {}),
            SummaryPayload,
            self._context(state, UsageAction.SUMMARY_CRITIQUE),
        )
        summary.overview = payload.overview
        summary.strengths = payload.strengths
        summary.weaknesses = payload.weaknesses
        summary.recommendations = payload.recommendations
        summary.critique_applied = True
        summary.is_final = True
        self._db.commit()

    def _verdicts(self, report_id: int, competency_id: str) -> list[KeyBehaviorAnalysis]:
        return list(
            self._db.scalars(
                select(KeyBehaviorAnalysis)
                .where(
                    KeyBehaviorAnalysis.report_id == report_id,
                    KeyBehaviorAnalysis.competency_id == competency_id,
                )
                .order_by(KeyBehaviorAnalysis.level, KeyBehaviorAnalysis.id)
            )
        )

    def _analysis(self, report_id: int, competency_id: str) -> CompetencyAnalysis | None:
        return self._db.scalar(
            select(CompetencyAnalysis).where(
                CompetencyAnalysis.report_id == report_id,
                CompetencyAnalysis.competency_id == competency_id,
            )
        )

    def _analyses(self, report_id: int) -> list[CompetencyAnalysis]:
        return list(
            self._db.scalars(
                select(CompetencyAnalysis)
                .where(CompetencyAnalysis.report_id == report_id)
                .order_by(CompetencyAnalysis.id)
            )
        )

    def _summary(self, report_id: int) -> ExecutiveSummary | None:
        return self._db.scalar(select(ExecutiveSummary).where(ExecutiveSummary.report_id == report_id))


def _context_sections(state: ReportState, *, with_methods: bool = False) -> list[str]:
    sections = [
        section("GLOBAL GUIDELINES", state.config.global_context),
        section("PROJECT GUIDELINES", state.config.prompts.project_context),
        section("REPORT SPECIFIC CONTEXT", state.specific_context),
    ]
    if with_methods:
        guides = method_guides_text(state.config.simulation_method_guides)
        sections.append(section("SIMULATION METHOD CONTEXTS", guides))
    return sections


def _level_prompt(
    state: ReportState,
    competency: Competency,
    verdicts: list[KeyBehaviorAnalysis],
    achieved: int,
    target: int,
) -> str:
    level_lines = [f"Level {level.number}: {level.description}" for level in competency.levels]
    result_lines: list[str] = []
    for level in competency.levels:
        result_lines.append(f"--- LEVEL {level.number} RESULTS ---")
        for verdict in verdicts:
            if verdict.level == level.number:
                result_lines.append(f"- [{verdict.status}] {verdict.key_behavior_text}: {verdict.reasoning}")
    return "\n\n".join(
        [
            section("TASK", "LEVEL_AND_NARRATIVE"),
            *_context_sections(state, with_methods=True),
            section("COMPETENCY", f"{competency.name}\n{competency.definition}".strip()),
            section("DICTIONARY LEVELS", "\n".join(level_lines)),
            section("KEY BEHAVIOR RESULTS", "\n".join(result_lines)),
            section("DECISION", f"Achieved level: {achieved}\nTarget level: {target}"),
            _NARRATIVE_OUTPUT,
        ]
    )


def _recommendations_prompt(
    state: ReportState,
    competency: Competency,
    analysis: CompetencyAnalysis,
    verdicts: list[KeyBehaviorAnalysis],
) -> str:
    gap_lines: list[str] = []
    for level in competency.levels:
        gaps = [
            verdict
            for verdict in verdicts
            if verdict.level == level.number and verdict.status != KeyBehaviorStatus.FULFILLED.value
        ]
        if gaps:
            gap_lines.append(f"Level {level.number} gaps:")
            gap_lines.extend(f"- {verdict.key_behavior_text} ({verdict.status})" for verdict in gaps)
    gaps_text = "\n".join(gap_lines) or "No specific gaps found (target exceeded). Focus on mastery."
    return "\n\n".join(
        [
            section("TASK", "DEVELOPMENT_RECOMMENDATIONS"),
            *_context_sections(state),
            section("COMPETENCY", competency.name),
            section(
                "LEVELS",
                f"Current assigned level: {analysis.achieved_level}\nTarget level: {analysis.target_level}",
            ),
            section("IDENTIFIED GAPS", gaps_text),
            _RECOMMENDATIONS_OUTPUT,
        ]
    )


def _recommendations_markdown(payload: RecommendationsPayload) -> str:
    return "\n\n".join(
        [
            f"### Individual Development\n{payload.individual.strip()}",
            f"### Assignments\n{payload.assignment.strip()}",
            f"### Training\n{payload.training.strip()}",
        ]
    )


def _summary_prompt(state: ReportState, analyses: list[CompetencyAnalysis]) -> str:
    blocks = [
        (
            f"- {analysis.competency_name}: level {analysis.achieved_level} of target {analysis.target_level}\n"
            f"  {analysis.explanation}"
        )
        for analysis in analyses
    ]
    return "\n\n".join(
        [
            section("TASK", "EXECUTIVE_SUMMARY_DRAFT"),
            *_context_sections(state),
            section("COMPETENCY RESULTS", "\n".join(blocks)),
            _SUMMARY_OUTPUT,
        ]
    )


def _critique_prompt(state: ReportState, draft: dict[str, str]) -> str:
    draft_text = "\n".join(
        f"{key.capitalize()}: {draft.get(key, '')}" for key in ("overview", "strengths", "weaknesses", "recommendations")
    )
    return "\n\n".join(
        [
            section("TASK", "EXECUTIVE_SUMMARY_CRITIQUE"),
            *_context_sections(state),
            section("DRAFT", draft_text),
            _SUMMARY_OUTPUT,
        ]
    )
