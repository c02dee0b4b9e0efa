"""Per key-behavior verdict model."""

from enum import Enum

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from assessor.models.base import Base, CreatedAtMixin, IdMixin


class KeyBehaviorStatus(str, Enum):
    FULFILLED = "FULFILLED"
    NOT_OBSERVED = "NOT_OBSERVED"
    CONTRA_INDICATOR = "CONTRA_INDICATOR"


class KeyBehaviorAnalysis(Base, IdMixin, CreatedAtMixin):
    """Verdict for one key behavior of one report."""

    __tablename__ = "key_behavior_analyses"
    __table_args__ = (UniqueConstraint("report_id", "key_behavior_id", name="uq_kb_analysis_report_kb"),)

    report_id: Mapped[int] = mapped_column(ForeignKey("reports.id", ondelete="CASCADE"), index=True, nullable=False)
    competency_id: Mapped[str] = mapped_column(String(128), index=True, nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    key_behavior_id: Mapped[str] = mapped_column(String(255), nullable=False)
    key_behavior_text: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    reasoning: Mapped[str] = mapped_column(Text, default="", nullable=False)
    evidence_ids_json: Mapped[list[int]] = mapped_column(JSON, default=list, nullable=False)
    evaluated: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
