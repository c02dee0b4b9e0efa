"""Read-only project reference rows owned by the external project store."""

from sqlalchemy import JSON, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from assessor.models.base import Base, CreatedAtMixin, IdMixin


class CompetencyDictionaryRecord(Base, IdMixin, CreatedAtMixin):
    __tablename__ = "competency_dictionaries"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    content_json: Mapped[dict[str, object]] = mapped_column(JSON, default=dict, nullable=False)


class Project(Base, IdMixin, CreatedAtMixin):
    __tablename__ = "projects"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    dictionary_id: Mapped[int | None] = mapped_column(ForeignKey("competency_dictionaries.id"), nullable=True)
    context_guide: Mapped[str] = mapped_column(Text, default="", nullable=False)
    prompt_overrides_json: Mapped[dict[str, str]] = mapped_column(JSON, default=dict, nullable=False)


class SimulationMethodGuide(Base, IdMixin, CreatedAtMixin):
    """Context guide for one simulation method (In-Basket, Case Study, ...) used by a project."""

    __tablename__ = "simulation_method_guides"
    __table_args__ = (UniqueConstraint("project_id", "method_name", name="uq_sim_guide_project_method"),)

    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    method_name: Mapped[str] = mapped_column(String(255), nullable=False)
    context_guide: Mapped[str] = mapped_column(Text, default="", nullable=False)


class SystemSetting(Base, IdMixin, CreatedAtMixin):
    """Admin-wide key/value settings, e.g. ``global_context_guide``."""

    __tablename__ = "system_settings"

    key: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    value: Mapped[str] = mapped_column(Text, default="", nullable=False)
