"""Immutable configuration snapshot for one report run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import Session

from assessor.competency.level_policy import LevelThresholdPolicy
from assessor.config import Settings, get_settings
from assessor.prompts import PROMPT_VERSION, PromptSet
from assessor.routing.retry import RetryPolicy
from assessor.services.model_catalog import ModelRoutingConfig, resolve_routing_config
from assessor.services.stores import ProjectContext


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    """Models, prompts and policies resolved once when a report is first claimed.

    The snapshot is stored on the report and reused on resume, so admin edits
    to the catalog, role assignments or prompts never reach an in-flight run.
    """

    routing: ModelRoutingConfig
    prompts: PromptSet
    level_policy: LevelThresholdPolicy
    retry_policy: RetryPolicy
    default_target_level: int = 3
    store_snapshots: bool = True
    prompt_version: str = PROMPT_VERSION
    global_context: str = ""
    simulation_method_guides: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "routing": self.routing.to_dict(),
            "prompts": self.prompts.to_dict(),
            "level_policy": self.level_policy.to_dict(),
            "retry_policy": {
                "max_attempts": self.retry_policy.max_attempts,
                "backoff_base_seconds": self.retry_policy.backoff_base_seconds,
                "backoff_factor": self.retry_policy.backoff_factor,
            },
            "default_target_level": self.default_target_level,
            "store_snapshots": self.store_snapshots,
            "prompt_version": self.prompt_version,
            "global_context": self.global_context,
            "simulation_method_guides": dict(self.simulation_method_guides),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PipelineConfig":
        policy = data.get("level_policy") or {}
        retry = data.get("retry_policy") or {}
        return cls(
            routing=ModelRoutingConfig.from_dict(data["routing"]),
            prompts=PromptSet.from_dict(data["prompts"]),
            level_policy=LevelThresholdPolicy(
                fulfilled_ratio=float(policy.get("fulfilled_ratio", 1.0)),
                contra_indicator_blocks_level=bool(policy.get("contra_indicator_blocks_level", True)),
            ),
            retry_policy=RetryPolicy(
                max_attempts=int(retry.get("max_attempts", 2)),
                backoff_base_seconds=float(retry.get("backoff_base_seconds", 1.0)),
                backoff_factor=float(retry.get("backoff_factor", 2.0)),
            ),
            default_target_level=int(data.get("default_target_level", 3)),
            store_snapshots=bool(data.get("store_snapshots", True)),
            prompt_version=str(data.get("prompt_version", PROMPT_VERSION)),
            global_context=str(data.get("global_context") or ""),
            simulation_method_guides={
                str(method): str(guide) for method, guide in (data.get("simulation_method_guides") or {}).items()
            },
        )


def retry_policy_from_settings(settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.router_max_attempts,
        backoff_base_seconds=settings.router_backoff_base_seconds,
        backoff_factor=settings.router_backoff_factor,
    )


def resolve_pipeline_config(
    db: Session,
    project_context: ProjectContext,
    settings: Settings | None = None,
) -> PipelineConfig:
    """Resolve the live catalog, role assignments, prompts and policies into a snapshot."""

    active_settings = settings or get_settings()
    return PipelineConfig(
        routing=resolve_routing_config(db, active_settings),
        prompts=PromptSet.with_overrides(
            project_context.prompt_overrides,
            project_context=project_context.context_guide,
        ),
        level_policy=LevelThresholdPolicy(
            fulfilled_ratio=active_settings.level_threshold_ratio,
            contra_indicator_blocks_level=active_settings.contra_indicator_blocks_level,
        ),
        retry_policy=retry_policy_from_settings(active_settings),
        default_target_level=active_settings.default_target_level,
        store_snapshots=active_settings.store_prompt_snapshots,
        global_context=project_context.global_context_guide,
        simulation_method_guides=dict(project_context.simulation_method_guides),
    )
