"""Model catalog, role assignments and resolved routing configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from assessor.config import Settings, get_settings
from assessor.errors import UnknownModel
from assessor.models.ai_model_config import AIModelConfig, AIRoleConfig

logger = logging.getLogger(__name__)


class ModelRole(str, Enum):
    JUDGMENT = "judgment"
    NARRATIVE = "narrative"
    BACKUP = "backup"
    ASK_AI = "ask_ai"


DEFAULT_CATALOG: tuple[dict[str, Any], ...] = (
    {
        "model_id": "google/gemini-2.5-pro",
        "display_name": "Gemini 2.5 Pro",
        "context_window": 1_048_576,
        "input_cost_per_million": Decimal("1.25"),
        "output_cost_per_million": Decimal("10.00"),
    },
    {
        "model_id": "google/gemini-2.5-flash-lite-preview-09-2025",
        "display_name": "Gemini 2.5 Flash Lite",
        "context_window": 1_048_576,
        "input_cost_per_million": Decimal("0.10"),
        "output_cost_per_million": Decimal("0.40"),
    },
    {
        "model_id": "google/gemini-3-pro-preview",
        "display_name": "Gemini 3 Pro Preview",
        "context_window": 1_048_576,
        "input_cost_per_million": Decimal("2.00"),
        "output_cost_per_million": Decimal("12.00"),
    },
    {
        "model_id": "openai/gpt-5.1",
        "display_name": "GPT-5.1",
        "context_window": 400_000,
        "input_cost_per_million": Decimal("1.25"),
        "output_cost_per_million": Decimal("10.00"),
        "supports_temperature": False,
    },
)


@dataclass(frozen=True, slots=True)
class ResolvedModel:
    """A catalog model pinned with the temperature it will be called with."""

    model_id: str
    temperature: float
    supports_temperature: bool
    input_cost_per_million: Decimal
    output_cost_per_million: Decimal

    @property
    def call_temperature(self) -> float | None:
        return self.temperature if self.supports_temperature else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "model_id": self.model_id,
            "temperature": self.temperature,
            "supports_temperature": self.supports_temperature,
            "input_cost_per_million": str(self.input_cost_per_million),
            "output_cost_per_million": str(self.output_cost_per_million),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResolvedModel":
        return cls(
            model_id=str(data["model_id"]),
            temperature=float(data["temperature"]),
            supports_temperature=bool(data["supports_temperature"]),
            input_cost_per_million=Decimal(str(data["input_cost_per_million"])),
            output_cost_per_million=Decimal(str(data["output_cost_per_million"])),
        )


@dataclass(frozen=True, slots=True)
class RoleBinding:
    role: str
    primary: ResolvedModel
    backup: ResolvedModel | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role,
            "primary": self.primary.to_dict(),
            "backup": self.backup.to_dict() if self.backup else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RoleBinding":
        backup = data.get("backup")
        return cls(
            role=str(data["role"]),
            primary=ResolvedModel.from_dict(data["primary"]),
            backup=ResolvedModel.from_dict(backup) if backup else None,
        )


@dataclass(frozen=True, slots=True)
class ModelRoutingConfig:
    """Immutable role → model resolution used for the lifetime of one report run."""

    bindings: tuple[RoleBinding, ...]

    def binding(self, role: str | ModelRole) -> RoleBinding:
        role_value = role.value if isinstance(role, ModelRole) else role
        for binding in self.bindings:
            if binding.role == role_value:
                return binding
        raise UnknownModel(f"No model is configured for role {role_value!r}")

    def to_dict(self) -> dict[str, Any]:
        return {"bindings": [binding.to_dict() for binding in self.bindings]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ModelRoutingConfig":
        return cls(bindings=tuple(RoleBinding.from_dict(item) for item in data.get("bindings", [])))


def _role_defaults(settings: Settings) -> dict[str, tuple[str, float]]:
    return {
        ModelRole.JUDGMENT.value: (settings.judgment_model, settings.judgment_temperature),
        ModelRole.NARRATIVE.value: (settings.narrative_model, settings.narrative_temperature),
        ModelRole.BACKUP.value: (settings.backup_model, settings.backup_temperature),
        ModelRole.ASK_AI.value: (settings.ask_ai_model, settings.ask_ai_temperature),
    }


def get_catalog_entry(db: Session, model_id: str) -> AIModelConfig | None:
    return db.scalar(
        select(AIModelConfig).where(AIModelConfig.model_id == model_id, AIModelConfig.is_active.is_(True))
    )


def _resolve(db: Session, model_id: str, temperature: float, *, role: str) -> ResolvedModel:
    entry = get_catalog_entry(db, model_id)
    if entry is None:
        raise UnknownModel(f"Model {model_id!r} configured for role {role!r} is not in the model catalog")
    return ResolvedModel(
        model_id=entry.model_id,
        temperature=float(temperature),
        supports_temperature=bool(entry.supports_temperature),
        input_cost_per_million=Decimal(entry.input_cost_per_million),
        output_cost_per_million=Decimal(entry.output_cost_per_million),
    )


def resolve_routing_config(db: Session, settings: Settings | None = None) -> ModelRoutingConfig:
    """Resolve every role against the current catalog and admin assignments."""

    active_settings = settings or get_settings()
    assignments = {row.role: row for row in db.scalars(select(AIRoleConfig))}
    defaults = _role_defaults(active_settings)

    primaries: dict[str, ResolvedModel] = {}
    for role, (default_model, default_temperature) in defaults.items():
        row = assignments.get(role)
        if row is not None:
            primaries[role] = _resolve(db, row.model_id, row.temperature, role=role)
        else:
            primaries[role] = _resolve(db, default_model, default_temperature, role=role)

    backup_role = ModelRole.BACKUP.value
    bindings: list[RoleBinding] = []
    for role, primary in primaries.items():
        if role == backup_role:
            bindings.append(RoleBinding(role=role, primary=primary))
            continue
        row = assignments.get(role)
        if row is not None and row.backup_model_id:
            backup = _resolve(db, row.backup_model_id, primaries[backup_role].temperature, role=role)
        else:
            backup = primaries[backup_role]
        bindings.append(RoleBinding(role=role, primary=primary, backup=backup))
    return ModelRoutingConfig(bindings=tuple(bindings))


def assign_role_model(
    db: Session,
    role: ModelRole,
    model_id: str,
    *,
    temperature: float,
    backup_model_id: str | None = None,
) -> AIRoleConfig:
    """Point a role at a catalog model. Models outside the catalog are rejected."""

    if get_catalog_entry(db, model_id) is None:
        raise UnknownModel(f"Model {model_id!r} is not in the model catalog")
    if backup_model_id is not None and get_catalog_entry(db, backup_model_id) is None:
        raise UnknownModel(f"Backup model {backup_model_id!r} is not in the model catalog")

    row = db.scalar(select(AIRoleConfig).where(AIRoleConfig.role == role.value))
    if row is None:
        row = AIRoleConfig(role=role.value, model_id=model_id)
        db.add(row)
    row.model_id = model_id
    row.temperature = temperature
    row.backup_model_id = backup_model_id
    db.commit()
    db.refresh(row)
    logger.info(
        "model_catalog.role_assigned role=%s model_id=%s temperature=%.2f backup_model_id=%s",
        role.value,
        model_id,
        temperature,
        backup_model_id,
    )
    return row


def seed_default_catalog(db: Session) -> int:
    """Insert default catalog entries that are missing. Returns the number inserted."""

    existing = set(db.scalars(select(AIModelConfig.model_id)))
    inserted = 0
    for entry in DEFAULT_CATALOG:
        if entry["model_id"] in existing:
            continue
        db.add(AIModelConfig(**entry))
        inserted += 1
    db.commit()
    return inserted
