"""ORM models package exports."""

from assessor.models.ai_model_config import AIModelConfig, AIRoleConfig
from assessor.models.competency_analysis import CompetencyAnalysis
from assessor.models.evidence import Evidence
from assessor.models.executive_summary import ExecutiveSummary
from assessor.models.key_behavior_analysis import KeyBehaviorAnalysis, KeyBehaviorStatus
from assessor.models.project import CompetencyDictionaryRecord, Project, SimulationMethodGuide, SystemSetting
from assessor.models.report import Report, ReportStatus
from assessor.models.source_document import ExtractionStatus, SourceDocument
from assessor.models.usage_log_entry import UsageAction, UsageLogEntry, UsageOutcome

__all__ = [
    "AIModelConfig",
    "AIRoleConfig",
    "CompetencyAnalysis",
    "CompetencyDictionaryRecord",
    "Evidence",
    "ExecutiveSummary",
    "ExtractionStatus",
    "KeyBehaviorAnalysis",
    "KeyBehaviorStatus",
    "Project",
    "Report",
    "ReportStatus",
    "SimulationMethodGuide",
    "SourceDocument",
    "SystemSetting",
    "UsageAction",
    "UsageLogEntry",
    "UsageOutcome",
]
