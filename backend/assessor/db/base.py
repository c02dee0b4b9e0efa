"""SQLAlchemy metadata registry import for Alembic."""

from assessor.models import (
    AIModelConfig,
    AIRoleConfig,
    CompetencyAnalysis,
    CompetencyDictionaryRecord,
    Evidence,
    ExecutiveSummary,
    KeyBehaviorAnalysis,
    Project,
    Report,
    SourceDocument,
    UsageLogEntry,
)
from assessor.models.base import Base

__all__ = [
    "Base",
    "AIModelConfig",
    "AIRoleConfig",
    "CompetencyAnalysis",
    "CompetencyDictionaryRecord",
    "Evidence",
    "ExecutiveSummary",
    "KeyBehaviorAnalysis",
    "Project",
    "Report",
    "SourceDocument",
    "UsageLogEntry",
]
