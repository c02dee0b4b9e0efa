"""Admin usage, queue and model role schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from assessor.services.model_catalog import ModelRole


class UsageEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, protected_namespaces=())

    id: int
    report_id: int | None
    project_id: int | None
    action: str
    role: str
    model_id: str
    attempt_number: int
    is_fallback: bool
    input_tokens: int
    output_tokens: int
    cost_usd: Decimal
    duration_ms: int
    outcome: str
    error_code: str | None
    created_at: datetime


class UsageSummaryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    entries: int
    failed_entries: int
    input_tokens: int
    output_tokens: int
    total_cost: Decimal


class QueueStatsRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    active: int
    waiting: int
    completed: int
    failed: int
    concurrency: int


class RoleAssignmentRequest(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_id: str = Field(min_length=1)
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    backup_model_id: str | None = None


class RoleAssignmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, protected_namespaces=())

    role: ModelRole
    model_id: str
    temperature: float
    backup_model_id: str | None
