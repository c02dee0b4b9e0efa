"""Report ORM model and its status machine vocabulary."""

from enum import Enum

from sqlalchemy import JSON, Boolean, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from assessor.models.base import Base, CreatedAtMixin, IdMixin, UpdatedAtMixin


class ReportStatus(str, Enum):
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    PHASE_FAILED = "PHASE_FAILED"
    COMPLETE = "COMPLETE"
    CANCELLED = "CANCELLED"


class Report(Base, IdMixin, CreatedAtMixin, UpdatedAtMixin):
    """One assessment run, mutated only by phase transitions."""

    __tablename__ = "reports"

    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id"), index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    target_levels_json: Mapped[dict[str, int]] = mapped_column(JSON, default=dict, nullable=False)
    specific_context: Mapped[str] = mapped_column(Text, default="", nullable=False)
    status: Mapped[str] = mapped_column(String(32), default=ReportStatus.QUEUED.value, index=True, nullable=False)
    current_phase: Mapped[str | None] = mapped_column(String(64), nullable=True)
    completed_phases_json: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    phase_progress_json: Mapped[dict[str, list[str]]] = mapped_column(JSON, default=dict, nullable=False)
    failed_phase: Mapped[str | None] = mapped_column(String(64), nullable=True)
    failure_reason_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    failure_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    dictionary_snapshot_json: Mapped[dict[str, object]] = mapped_column(JSON, default=dict, nullable=False)
    config_snapshot_json: Mapped[dict[str, object] | None] = mapped_column(JSON, nullable=True)
    active_job_id: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)
    worker_job_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    cancel_requested: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
