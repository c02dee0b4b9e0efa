"""Evidence quote model."""

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from assessor.models.base import Base, CreatedAtMixin, IdMixin


class Evidence(Base, IdMixin, CreatedAtMixin):
    """Quote extracted from a source document. Immutable once written."""

    __tablename__ = "evidence"

    report_id: Mapped[int] = mapped_column(ForeignKey("reports.id", ondelete="CASCADE"), index=True, nullable=False)
    document_id: Mapped[int | None] = mapped_column(
        ForeignKey("source_documents.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )
    competency_id: Mapped[str] = mapped_column(String(128), index=True, nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    key_behavior_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    quote: Mapped[str] = mapped_column(Text, nullable=False)
    reasoning: Mapped[str] = mapped_column(Text, default="", nullable=False)
    source: Mapped[str] = mapped_column(String(128), default="", nullable=False)
    is_contra_indicator: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_ai_generated: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
