"""Report request and response schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from assessor.pipeline.ask_ai import AskAiContextType


class DocumentCreate(BaseModel):
    """Uploaded document reference; text is supplied by the extraction service."""

    file_ref: str = Field(min_length=1)
    simulation_method: str = Field(min_length=1)
    extracted_text: str | None = None


class ReportCreateRequest(BaseModel):
    project_id: int = Field(ge=1)
    title: str = Field(min_length=1, max_length=255)
    target_levels: dict[str, int] = Field(default_factory=dict)
    specific_context: str = ""
    documents: list[DocumentCreate] = Field(default_factory=list)

    @field_validator("target_levels")
    @classmethod
    def _levels_in_range(cls, value: dict[str, int]) -> dict[str, int]:
        for competency_id, level in value.items():
            if not 1 <= level <= 5:
                raise ValueError(f"Target level for {competency_id!r} must be between 1 and 5")
        return value


class ReportCreated(BaseModel):
    report_id: int


class ReportStatusRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    report_id: int
    status: str
    current_phase: str | None
    completed_phases: list[str]
    failed_phase: str | None
    reason_code: str | None
    message: str | None
    cancel_requested: bool


class EvidenceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    document_id: int | None
    competency_id: str
    level: int
    key_behavior_id: str
    quote: str
    reasoning: str
    source: str
    is_contra_indicator: bool
    is_ai_generated: bool


class KeyBehaviorAnalysisRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key_behavior_id: str
    level: int
    key_behavior_text: str
    status: str
    reasoning: str
    evidence_ids: list[int] = Field(validation_alias="evidence_ids_json")
    evaluated: bool


class CompetencyAnalysisRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    competency_id: str
    competency_name: str
    target_level: int
    achieved_level: int
    explanation: str
    development_recommendations: str | None
    recommendations: dict[str, str] | None = Field(default=None, validation_alias="recommendations_json")
    key_behaviors: list[KeyBehaviorAnalysisRead] = Field(default_factory=list)


class ExecutiveSummaryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    overview: str
    strengths: str
    weaknesses: str
    recommendations: str
    critique_applied: bool
    is_final: bool


class ReportRead(BaseModel):
    id: int
    project_id: int
    title: str
    target_levels: dict[str, int]
    specific_context: str
    status: ReportStatusRead
    competency_analyses: list[CompetencyAnalysisRead]
    executive_summary: ExecutiveSummaryRead | None
    evidence: list[EvidenceRead]
    created_at: datetime
    updated_at: datetime


class JobRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    report_id: int
    kind: str
    status: str


class AskAiRequestBody(BaseModel):
    text: str = Field(min_length=1)
    instruction: str = Field(min_length=1)
    context_type: AskAiContextType
    competency_id: str | None = None


class AskAiResult(BaseModel):
    refined_content: str
    reasoning: str
