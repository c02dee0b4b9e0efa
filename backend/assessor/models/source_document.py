"""Uploaded evidence document model."""

from enum import Enum

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from assessor.models.base import Base, CreatedAtMixin, IdMixin


class ExtractionStatus(str, Enum):
    PENDING = "PENDING"
    EXTRACTED = "EXTRACTED"
    FAILED = "FAILED"


class SourceDocument(Base, IdMixin, CreatedAtMixin):
    """One uploaded simulation file. Text is filled in by the external extraction service."""

    __tablename__ = "source_documents"

    report_id: Mapped[int] = mapped_column(ForeignKey("reports.id", ondelete="CASCADE"), index=True, nullable=False)
    file_ref: Mapped[str] = mapped_column(String(1024), nullable=False)
    simulation_method: Mapped[str] = mapped_column(String(128), nullable=False)
    extraction_status: Mapped[str] = mapped_column(
        String(32),
        default=ExtractionStatus.PENDING.value,
        nullable=False,
    )
    extracted_text: Mapped[str | None] = mapped_column(Text, nullable=True)
