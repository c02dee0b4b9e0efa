"""Append-only AI usage ledger model."""

from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from assessor.models.base import Base, CreatedAtMixin, IdMixin


class UsageAction(str, Enum):
    EXTRACTION = "EXTRACTION"
    KB_FULFILLMENT = "KB_FULFILLMENT"
    LEVEL_AND_NARRATIVE = "LEVEL_AND_NARRATIVE"
    RECOMMENDATIONS = "RECOMMENDATIONS"
    SUMMARY_DRAFT = "SUMMARY_DRAFT"
    SUMMARY_CRITIQUE = "SUMMARY_CRITIQUE"
    ASK_AI_REFINE = "ASK_AI_REFINE"


class UsageOutcome(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class UsageLogEntry(Base, IdMixin, CreatedAtMixin):
    """One LLM invocation attempt. Never updated or deleted."""

    __tablename__ = "usage_log_entries"

    report_id: Mapped[int | None] = mapped_column(Integer, index=True, nullable=True)
    project_id: Mapped[int | None] = mapped_column(Integer, index=True, nullable=True)
    action: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    model_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    attempt_number: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    is_fallback: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    input_tokens: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    output_tokens: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    input_cost_per_million: Mapped[Decimal] = mapped_column(Numeric(12, 4), default=Decimal("0"), nullable=False)
    output_cost_per_million: Mapped[Decimal] = mapped_column(Numeric(12, 4), default=Decimal("0"), nullable=False)
    cost_usd: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal("0"), nullable=False)
    duration_ms: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    outcome: Mapped[str] = mapped_column(String(16), index=True, nullable=False)
    error_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    prompt_snapshot: Mapped[str | None] = mapped_column(Text, nullable=True)
    response_snapshot: Mapped[str | None] = mapped_column(Text, nullable=True)
