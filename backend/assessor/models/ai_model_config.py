"""Model catalog and role assignment models."""

from decimal import Decimal

from sqlalchemy import Boolean, Float, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from assessor.models.base import Base, CreatedAtMixin, IdMixin, UpdatedAtMixin


class AIModelConfig(Base, IdMixin, CreatedAtMixin):
    """Catalog entry: pricing, context window and capabilities of one model."""

    __tablename__ = "ai_models"

    model_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    context_window: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    input_cost_per_million: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    output_cost_per_million: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    supports_temperature: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class AIRoleConfig(Base, IdMixin, UpdatedAtMixin):
    """Admin assignment of a logical role to a catalog model."""

    __tablename__ = "ai_role_configs"

    role: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    model_id: Mapped[str] = mapped_column(ForeignKey("ai_models.model_id"), nullable=False)
    temperature: Mapped[float] = mapped_column(Float, default=0.2, nullable=False)
    backup_model_id: Mapped[str | None] = mapped_column(ForeignKey("ai_models.model_id"), nullable=True)
