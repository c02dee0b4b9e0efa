"""Pipeline error taxonomy.

Every error carries a stable ``reason_code``. Reports and API responses expose
the reason code and a fixed user-facing message, never the raw provider text.
"""

from __future__ import annotations

USER_MESSAGES: dict[str, str] = {
    "MODEL_UNAVAILABLE": "Generation interrupted: the AI models are unavailable. Resume is available.",
    "SCHEMA_VIOLATION": "Generation interrupted: the AI returned an unreadable answer. Resume is available.",
    "STORAGE_UNAVAILABLE": "Generation interrupted: storage was unavailable. Resume is available.",
    "WORKER_LOST": "Generation interrupted: the worker stopped unexpectedly. Resume is available.",
    "CONFIGURATION_INVALID": (
        "Generation interrupted: a configured model or project setting is no longer valid. "
        "Fix the configuration, then resume."
    ),
    "INTERNAL_ERROR": "Generation interrupted by an unexpected error. Resume is available.",
    "INVALID_STATE": "The report is not in a state that allows this action.",
    "REPORT_NOT_FOUND": "Report not found.",
    "UNKNOWN_MODEL": "The model is not present in the model catalog.",
    "ASK_AI_DISABLED": "Ask AI feature is disabled by the administrator.",
}


def user_message(reason_code: str | None) -> str | None:
    if reason_code is None:
        return None
    return USER_MESSAGES.get(reason_code, "Generation interrupted. Resume is available.")


class PipelineError(RuntimeError):
    """Base class for report pipeline errors."""

    reason_code = "PIPELINE_ERROR"


class ModelUnavailable(PipelineError):
    """Raised when the primary and backup models are both exhausted."""

    reason_code = "MODEL_UNAVAILABLE"


class SchemaViolation(PipelineError):
    """Raised when model output stays malformed after one corrective re-prompt."""

    reason_code = "SCHEMA_VIOLATION"


class DictionaryMismatch(PipelineError):
    """Evidence references a competency, level or key behavior missing from the snapshot.

    Recovered locally: the offending item is dropped and a warning is logged.
    """

    reason_code = "DICTIONARY_MISMATCH"


class InvalidState(PipelineError):
    """Raised when a report action is not allowed in the report's current status."""

    reason_code = "INVALID_STATE"


class ReportNotFound(PipelineError):
    reason_code = "REPORT_NOT_FOUND"


class UnknownModel(PipelineError):
    """Raised when a role is assigned a model that is not in the catalog."""

    reason_code = "UNKNOWN_MODEL"


class ConfigurationInvalid(PipelineError):
    """Raised when a report run cannot resolve its models or project settings."""

    reason_code = "CONFIGURATION_INVALID"


class AskAiDisabled(PipelineError):
    reason_code = "ASK_AI_DISABLED"


class StorageUnavailable(PipelineError):
    """Raised when pipeline state cannot be persisted. Always fatal for the job."""

    reason_code = "STORAGE_UNAVAILABLE"


class LedgerUnavailable(StorageUnavailable):
    """Raised when a usage entry cannot be persisted."""


class PhaseFailed(PipelineError):
    """Terminal failure of one phase, carrying the phase name and the triggering reason code."""

    def __init__(self, phase: str, reason_code: str, message: str) -> None:
        super().__init__(message)
        self.phase = phase
        self.reason_code = reason_code


HTTP_STATUS: dict[str, int] = {
    InvalidState.reason_code: 409,
    ReportNotFound.reason_code: 404,
    UnknownModel.reason_code: 422,
    AskAiDisabled.reason_code: 403,
    ModelUnavailable.reason_code: 503,
    SchemaViolation.reason_code: 502,
    StorageUnavailable.reason_code: 503,
}


def error_detail(exc: PipelineError) -> dict[str, str | None]:
    """User-facing error body: reason code plus the fixed message, never provider text."""

    return {"reason_code": exc.reason_code, "message": user_message(exc.reason_code)}
