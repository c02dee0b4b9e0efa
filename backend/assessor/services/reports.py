"""Read-side queries for report payloads."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from assessor.errors import ReportNotFound
from assessor.models.competency_analysis import CompetencyAnalysis
from assessor.models.evidence import Evidence
from assessor.models.executive_summary import ExecutiveSummary
from assessor.models.key_behavior_analysis import KeyBehaviorAnalysis
from assessor.models.report import Report
from assessor.pipeline.orchestrator import report_status_view
from assessor.schemas.report import (
    CompetencyAnalysisRead,
    EvidenceRead,
    ExecutiveSummaryRead,
    KeyBehaviorAnalysisRead,
    ReportRead,
    ReportStatusRead,
)


def get_report_detail(db: Session, report_id: int) -> ReportRead:
    """Status plus whatever structured output the completed phases have persisted."""

    report = db.get(Report, report_id)
    if report is None:
        raise ReportNotFound(f"Report {report_id} not found")

    verdicts_by_competency: dict[str, list[KeyBehaviorAnalysisRead]] = {}
    for verdict in db.scalars(
        select(KeyBehaviorAnalysis)
        .where(KeyBehaviorAnalysis.report_id == report_id)
        .order_by(KeyBehaviorAnalysis.level, KeyBehaviorAnalysis.id)
    ):
        verdicts_by_competency.setdefault(verdict.competency_id, []).append(
            KeyBehaviorAnalysisRead.model_validate(verdict)
        )

    analyses = [
        CompetencyAnalysisRead.model_validate(analysis).model_copy(
            update={"key_behaviors": verdicts_by_competency.get(analysis.competency_id, [])}
        )
        for analysis in db.scalars(
            select(CompetencyAnalysis)
            .where(CompetencyAnalysis.report_id == report_id)
            .order_by(CompetencyAnalysis.id)
        )
    ]
    summary = db.scalar(select(ExecutiveSummary).where(ExecutiveSummary.report_id == report_id))
    evidence = [
        EvidenceRead.model_validate(item)
        for item in db.scalars(select(Evidence).where(Evidence.report_id == report_id).order_by(Evidence.id))
    ]
    return ReportRead(
        id=report.id,
        project_id=report.project_id,
        title=report.title,
        target_levels=dict(report.target_levels_json or {}),
        specific_context=report.specific_context,
        status=ReportStatusRead.model_validate(report_status_view(report)),
        competency_analyses=analyses,
        executive_summary=ExecutiveSummaryRead.model_validate(summary) if summary is not None else None,
        evidence=evidence,
        created_at=report.created_at,
        updated_at=report.updated_at,
    )
