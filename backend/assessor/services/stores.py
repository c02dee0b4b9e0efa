"""Read-only collaborators the pipeline consumes: document store and project store."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from assessor.competency.dictionary import DictionarySnapshot
from assessor.models.project import CompetencyDictionaryRecord, Project, SimulationMethodGuide, SystemSetting
from assessor.models.source_document import SourceDocument


GLOBAL_CONTEXT_GUIDE_KEY = "global_context_guide"


class StoreLookupError(LookupError):
    """Raised when a referenced document or project does not exist."""


@dataclass(slots=True)
class ProjectContext:
    context_guide: str = ""
    prompt_overrides: dict[str, str] = field(default_factory=dict)
    global_context_guide: str = ""
    simulation_method_guides: dict[str, str] = field(default_factory=dict)


class DocumentStore(Protocol):
    def get_extracted_text(self, document_id: int) -> str:
        """Return the clean text of an uploaded document."""


class ProjectStore(Protocol):
    def get_competency_dictionary_snapshot(self, project_id: int) -> DictionarySnapshot:
        """Return a detached copy of the project's competency dictionary."""

    def get_project_context(self, project_id: int) -> ProjectContext:
        """Return the global, project and simulation method context guides plus prompt overrides."""


class SqlDocumentStore:
    """Reads text written by the external extraction service into ``source_documents``."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get_extracted_text(self, document_id: int) -> str:
        with self._session_factory() as db:
            document = db.get(SourceDocument, document_id)
            if document is None:
                raise StoreLookupError(f"Source document {document_id} not found")
            return document.extracted_text or ""


class SqlProjectStore:
    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get_competency_dictionary_snapshot(self, project_id: int) -> DictionarySnapshot:
        with self._session_factory() as db:
            project = db.get(Project, project_id)
            if project is None:
                raise StoreLookupError(f"Project {project_id} not found")
            if project.dictionary_id is None:
                raise StoreLookupError(f"Project {project_id} has no competency dictionary")
            record = db.scalar(
                select(CompetencyDictionaryRecord).where(CompetencyDictionaryRecord.id == project.dictionary_id)
            )
            if record is None:
                raise StoreLookupError(f"Competency dictionary {project.dictionary_id} not found")
            return DictionarySnapshot.from_content(record.name, dict(record.content_json or {}))

    def get_project_context(self, project_id: int) -> ProjectContext:
        with self._session_factory() as db:
            project = db.get(Project, project_id)
            if project is None:
                raise StoreLookupError(f"Project {project_id} not found")
            global_guide = db.scalar(select(SystemSetting.value).where(SystemSetting.key == GLOBAL_CONTEXT_GUIDE_KEY))
            method_guides = {
                guide.method_name: guide.context_guide.strip()
                for guide in db.scalars(
                    select(SimulationMethodGuide)
                    .where(SimulationMethodGuide.project_id == project_id)
                    .order_by(SimulationMethodGuide.method_name)
                )
                if guide.context_guide and guide.context_guide.strip()
            }
            return ProjectContext(
                context_guide=project.context_guide or "",
                prompt_overrides=dict(project.prompt_overrides_json or {}),
                global_context_guide=(global_guide or "").strip(),
                simulation_method_guides=method_guides,
            )
