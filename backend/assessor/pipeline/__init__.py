"""Report generation pipeline: phases, orchestration and ask-ai refinement."""

from assessor.pipeline.config import PipelineConfig, resolve_pipeline_config
from assessor.pipeline.orchestrator import NewDocument, PipelineOrchestrator, ReportStatusView
from assessor.pipeline.phases import PHASE_SEQUENCE, Phase, PhaseExecutor, ReportState

__all__ = [
    "PHASE_SEQUENCE",
    "NewDocument",
    "Phase",
    "PhaseExecutor",
    "PipelineConfig",
    "PipelineOrchestrator",
    "ReportState",
    "ReportStatusView",
    "resolve_pipeline_config",
]
