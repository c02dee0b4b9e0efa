"""Per-competency rollup model."""

from sqlalchemy import JSON, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from assessor.models.base import Base, CreatedAtMixin, IdMixin, UpdatedAtMixin


class CompetencyAnalysis(Base, IdMixin, CreatedAtMixin, UpdatedAtMixin):
    """Achieved level, narrative and recommendations for one competency."""

    __tablename__ = "competency_analyses"
    __table_args__ = (UniqueConstraint("report_id", "competency_id", name="uq_competency_analysis_report_comp"),)

    report_id: Mapped[int] = mapped_column(ForeignKey("reports.id", ondelete="CASCADE"), index=True, nullable=False)
    competency_id: Mapped[str] = mapped_column(String(128), nullable=False)
    competency_name: Mapped[str] = mapped_column(String(255), nullable=False)
    target_level: Mapped[int] = mapped_column(Integer, nullable=False)
    achieved_level: Mapped[int] = mapped_column(Integer, nullable=False)
    explanation: Mapped[str] = mapped_column(Text, default="", nullable=False)
    development_recommendations: Mapped[str | None] = mapped_column(Text, nullable=True)
    recommendations_json: Mapped[dict[str, str] | None] = mapped_column(JSON, nullable=True)
