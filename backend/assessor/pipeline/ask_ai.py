"""Ask-AI refinement of finalized report text."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from assessor.config import Settings, get_settings
from assessor.errors import AskAiDisabled, InvalidState, ReportNotFound
from assessor.models.competency_analysis import CompetencyAnalysis
from assessor.models.executive_summary import ExecutiveSummary
from assessor.models.report import Report, ReportStatus
from assessor.models.usage_log_entry import UsageAction
from assessor.pipeline.config import PipelineConfig, retry_policy_from_settings
from assessor.prompts import PromptSet, section
from assessor.routing.gateway import ModelGateway
from assessor.routing.router import CallContext, ModelRouter
from assessor.services.model_catalog import ModelRole, resolve_routing_config
from assessor.services.usage_ledger import UsageLedger

logger = logging.getLogger(__name__)


class AskAiContextType(str, Enum):
    COMPETENCY = "COMPETENCY"
    SUMMARY = "SUMMARY"


@dataclass(slots=True)
class AskAiRequest:
    text: str
    instruction: str
    context_type: AskAiContextType
    competency_id: str | None = None


class AskAiPayload(BaseModel):
    refined_content: str = Field(min_length=1)
    reasoning: str = ""


_ASK_AI_OUTPUT = """*** OUTPUT REQUIREMENT ***
Return a JSON object:
{
  "refined_content": "<the updated text, following the user's instructions>",
  "reasoning": "<brief explanation of what you changed and why>"
}"""


class AskAiService:
    """Rewrites one block of a COMPLETE report. The report itself is never mutated."""

    def __init__(
        self,
        gateway: ModelGateway,
        ledger: UsageLedger,
        *,
        settings: Settings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._gateway = gateway
        self._ledger = ledger
        self._settings = settings or get_settings()
        self._sleep = sleep

    def refine(self, db: Session, report_id: int, request: AskAiRequest) -> AskAiPayload:
        if not self._settings.ask_ai_enabled:
            raise AskAiDisabled("Ask AI feature is disabled by the administrator")
        report = db.get(Report, report_id)
        if report is None:
            raise ReportNotFound(f"Report {report_id} not found")
        if report.status != ReportStatus.COMPLETE.value:
            raise InvalidState(f"Report {report_id} is {report.status}; ask-ai requires a COMPLETE report")

        # Ask-AI runs outside the report snapshot and uses the live role assignment.
        routing = resolve_routing_config(db, self._settings)
        prompts = _prompts_for(report)
        router = ModelRouter(
            self._gateway,
            self._ledger,
            routing,
            policy=retry_policy_from_settings(self._settings),
            store_snapshots=self._settings.store_prompt_snapshots,
            sleep=self._sleep,
        )
        payload, entry = router.invoke(
            ModelRole.ASK_AI,
            prompts.ask_ai_system,
            self._build_prompt(db, report, request),
            AskAiPayload,
            CallContext(action=UsageAction.ASK_AI_REFINE, report_id=report.id, project_id=report.project_id),
        )
        logger.info(
            "ask_ai.refined report_id=%s context_type=%s model_id=%s",
            report.id,
            request.context_type.value,
            entry.model_id,
        )
        return payload

    def _build_prompt(self, db: Session, report: Report, request: AskAiRequest) -> str:
        if request.context_type is AskAiContextType.COMPETENCY:
            analysis = db.scalar(
                select(CompetencyAnalysis).where(
                    CompetencyAnalysis.report_id == report.id,
                    CompetencyAnalysis.competency_id == (request.competency_id or ""),
                )
            )
            if analysis is None:
                raise InvalidState(f"Competency {request.competency_id!r} has no analysis in report {report.id}")
            context = (
                f"Competency: {analysis.competency_name}\n"
                f"Achieved level: {analysis.achieved_level} (target {analysis.target_level})\n"
                f"Explanation: {analysis.explanation}"
            )
        else:
            summary = db.scalar(select(ExecutiveSummary).where(ExecutiveSummary.report_id == report.id))
            context = (
                f"Overview: {summary.overview}\nStrengths: {summary.strengths}\nWeaknesses: {summary.weaknesses}"
                if summary is not None
                else ""
            )
        return "\n\n".join(
            [
                section("REPORT CONTEXT", context),
                section("TEXT TO REFINE", request.text),
                section("USER INSTRUCTION", request.instruction),
                _ASK_AI_OUTPUT,
            ]
        )


def _prompts_for(report: Report) -> PromptSet:
    if report.config_snapshot_json:
        return PipelineConfig.from_dict(report.config_snapshot_json).prompts
    return PromptSet.defaults()
