"""Executive summary model."""

from sqlalchemy import JSON, Boolean, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column

from assessor.models.base import Base, CreatedAtMixin, IdMixin, UpdatedAtMixin


class ExecutiveSummary(Base, IdMixin, CreatedAtMixin, UpdatedAtMixin):
    """Report-level narrative: drafted once, critiqued and rewritten once."""

    __tablename__ = "executive_summaries"

    report_id: Mapped[int] = mapped_column(
        ForeignKey("reports.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    overview: Mapped[str] = mapped_column(Text, default="", nullable=False)
    strengths: Mapped[str] = mapped_column(Text, default="", nullable=False)
    weaknesses: Mapped[str] = mapped_column(Text, default="", nullable=False)
    recommendations: Mapped[str] = mapped_column(Text, default="", nullable=False)
    draft_json: Mapped[dict[str, str]] = mapped_column(JSON, default=dict, nullable=False)
    critique_applied: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_final: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
