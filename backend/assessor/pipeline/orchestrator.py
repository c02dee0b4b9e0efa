"""Pipeline orchestrator: the report state machine around the fixed phase sequence.

QUEUED -> RUNNING -> {COMPLETE | PHASE_FAILED | CANCELLED}; PHASE_FAILED -> RUNNING
on resume is the only backward transition. Cancellation is cooperative and takes
effect at the next phase boundary.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from time import perf_counter

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from assessor.config import Settings, get_settings
from assessor.errors import (
    USER_MESSAGES,
    ConfigurationInvalid,
    InvalidState,
    PhaseFailed,
    PipelineError,
    ReportNotFound,
    StorageUnavailable,
    UnknownModel,
    user_message,
)
from assessor.models.report import Report, ReportStatus
from assessor.models.source_document import ExtractionStatus, SourceDocument
from assessor.pipeline.config import PipelineConfig, resolve_pipeline_config
from assessor.pipeline.phases import PHASE_SEQUENCE, PhaseExecutor, ReportState
from assessor.routing.gateway import ModelGateway
from assessor.routing.router import ModelRouter
from assessor.services.job_queue import Job, JobQueue, JobStatus
from assessor.services.stores import DocumentStore, ProjectStore, StoreLookupError
from assessor.services.usage_ledger import UsageLedger

logger = logging.getLogger(__name__)

_CLAIMABLE = (ReportStatus.QUEUED.value, ReportStatus.PHASE_FAILED.value)


@dataclass(slots=True)
class NewDocument:
    file_ref: str
    simulation_method: str
    extracted_text: str | None = None


@dataclass(slots=True)
class ReportStatusView:
    report_id: int
    status: str
    current_phase: str | None
    completed_phases: list[str]
    failed_phase: str | None
    reason_code: str | None
    message: str | None
    cancel_requested: bool


class PipelineOrchestrator:
    """Owns report status transitions and drives phases in order on one worker."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        queue: JobQueue,
        gateway: ModelGateway,
        ledger: UsageLedger,
        documents: DocumentStore,
        projects: ProjectStore,
        *,
        settings: Settings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._session_factory = session_factory
        self._queue = queue
        self._gateway = gateway
        self._ledger = ledger
        self._documents = documents
        self._projects = projects
        self._settings = settings or get_settings()
        self._sleep = sleep

    def create_report(
        self,
        db: Session,
        *,
        project_id: int,
        title: str,
        target_levels: dict[str, int],
        specific_context: str = "",
        documents: Sequence[NewDocument] = (),
    ) -> Report:
        """Create a QUEUED report holding a copy of the project's dictionary."""

        dictionary = self._projects.get_competency_dictionary_snapshot(project_id)
        report = Report(
            project_id=project_id,
            title=title,
            target_levels_json={str(key): int(value) for key, value in target_levels.items()},
            specific_context=specific_context,
            status=ReportStatus.QUEUED.value,
            completed_phases_json=[],
            phase_progress_json={},
            dictionary_snapshot_json=dictionary.model_dump(mode="json"),
        )
        db.add(report)
        db.flush()
        for document in documents:
            db.add(
                SourceDocument(
                    report_id=report.id,
                    file_ref=document.file_ref,
                    simulation_method=document.simulation_method,
                    extracted_text=document.extracted_text,
                    extraction_status=(
                        ExtractionStatus.EXTRACTED.value
                        if document.extracted_text is not None
                        else ExtractionStatus.PENDING.value
                    ),
                )
            )
        db.commit()
        db.refresh(report)
        logger.info(
            "pipeline.report_created report_id=%s project_id=%s documents=%d",
            report.id,
            project_id,
            len(documents),
        )
        return report

    def submit(self, db: Session, report_id: int) -> Job | None:
        """Enqueue a QUEUED report. No-op while the report already has a live job."""

        report = self._get(db, report_id)
        if report.status == ReportStatus.RUNNING.value:
            return None
        if report.status != ReportStatus.QUEUED.value:
            raise InvalidState(f"Report {report_id} is {report.status}; only QUEUED reports can be submitted")
        return self._enqueue(db, report)

    def resume(self, db: Session, report_id: int) -> Job:
        """Re-enqueue a PHASE_FAILED report; completed phases are never re-run."""

        report = self._get(db, report_id)
        if report.status != ReportStatus.PHASE_FAILED.value:
            raise InvalidState(f"Report {report_id} is {report.status}; only PHASE_FAILED reports can be resumed")
        return self._enqueue(db, report)

    def cancel(self, db: Session, report_id: int) -> ReportStatusView:
        """Cancel a QUEUED report now, or flag a RUNNING one for its worker's next phase boundary.

        Both moves are conditional updates, so a worker claiming the report
        concurrently turns a queued cancel into a running one instead of being overwritten.
        """

        report = self._get(db, report_id)
        if report.status == ReportStatus.QUEUED.value and self._transition(
            db,
            report,
            ReportStatus.QUEUED,
            status=ReportStatus.CANCELLED.value,
            active_job_id=None,
            current_phase=None,
        ):
            logger.info("pipeline.cancelled report_id=%s while=QUEUED", report_id)
            return report_status_view(report)
        if report.status == ReportStatus.RUNNING.value and self._transition(
            db,
            report,
            ReportStatus.RUNNING,
            cancel_requested=True,
        ):
            logger.info("pipeline.cancel_requested report_id=%s", report_id)
            return report_status_view(report)
        raise InvalidState(f"Report {report_id} is {report.status}; only QUEUED or RUNNING reports can be cancelled")

    def status(self, db: Session, report_id: int) -> ReportStatusView:
        return report_status_view(self._get(db, report_id))

    def run(self, report_id: int, job_id: str) -> str:
        """Run the remaining phases of a report on the calling worker; return the final status.

        Once the report is claimed, every failure leaves it PHASE_FAILED so it can be resumed;
        it never stays RUNNING past the end of this call.
        """

        total_started = perf_counter()
        db = self._session_factory()
        try:
            if not self._claim(db, report_id, job_id):
                logger.info("pipeline.claim_skipped report_id=%s job_id=%s", report_id, job_id)
                report = db.get(Report, report_id)
                return report.status if report is not None else ReportStatus.CANCELLED.value

            report = self._get(db, report_id)
            state = ReportState.from_report(report, self._config_for(db, report))
            executor = PhaseExecutor(
                db,
                ModelRouter(
                    self._gateway,
                    self._ledger,
                    state.config.routing,
                    policy=state.config.retry_policy,
                    store_snapshots=state.config.store_snapshots,
                    sleep=self._sleep,
                ),
                self._documents,
            )

            for phase in PHASE_SEQUENCE:
                if phase.value in state.completed_phases:
                    continue
                db.refresh(report)
                if report.status != ReportStatus.RUNNING.value or report.worker_job_id != job_id:
                    logger.warning(
                        "pipeline.ownership_lost report_id=%s job_id=%s status=%s before_phase=%s",
                        report_id,
                        job_id,
                        report.status,
                        phase.value,
                    )
                    return report.status
                if report.cancel_requested:
                    self._finish(db, report, ReportStatus.CANCELLED)
                    logger.info("pipeline.cancelled report_id=%s before_phase=%s", report_id, phase.value)
                    return ReportStatus.CANCELLED.value
                report.current_phase = phase.value
                db.commit()
                try:
                    state = executor.run(phase, state)
                except PhaseFailed as exc:
                    self._fail(db, report_id, exc.phase, exc.reason_code)
                    logger.warning(
                        "pipeline.phase_failed report_id=%s phase=%s reason_code=%s detail=%s",
                        report_id,
                        exc.phase,
                        exc.reason_code,
                        exc,
                    )
                    return ReportStatus.PHASE_FAILED.value
                report.completed_phases_json = list(state.completed_phases)
                db.commit()

            self._finish(db, report, ReportStatus.COMPLETE)
            logger.info(
                "pipeline.report_timing report_id=%s job_id=%s total_ms=%.2f",
                report_id,
                job_id,
                (perf_counter() - total_started) * 1000.0,
            )
            return ReportStatus.COMPLETE.value
        except StorageUnavailable as exc:
            db.rollback()
            logger.exception("pipeline.storage_failed report_id=%s job_id=%s", report_id, job_id)
            self._fail_quietly(report_id, job_id, exc.reason_code)
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("pipeline.storage_failed report_id=%s job_id=%s", report_id, job_id)
            self._fail_quietly(report_id, job_id, StorageUnavailable.reason_code)
            raise StorageUnavailable(f"Report {report_id} state could not be persisted") from exc
        except (PipelineError, LookupError) as exc:
            db.rollback()
            reason_code = _failure_reason(exc)
            logger.warning(
                "pipeline.run_failed report_id=%s job_id=%s reason_code=%s detail=%s",
                report_id,
                job_id,
                reason_code,
                exc,
            )
            self._fail_quietly(report_id, job_id, reason_code)
            return ReportStatus.PHASE_FAILED.value
        except Exception:
            db.rollback()
            logger.exception("pipeline.run_crashed report_id=%s job_id=%s", report_id, job_id)
            self._fail_quietly(report_id, job_id, "INTERNAL_ERROR")
            raise
        finally:
            db.close()

    def recover_interrupted(self) -> int:
        """Startup crash recovery: RUNNING reports fail with WORKER_LOST, pending jobs are re-enqueued."""

        recovered = 0
        with self._session_factory() as db:
            running = list(db.scalars(select(Report).where(Report.status == ReportStatus.RUNNING.value)))
            for report in running:
                report.status = ReportStatus.PHASE_FAILED.value
                report.failed_phase = report.current_phase
                report.failure_reason_code = "WORKER_LOST"
                report.failure_message = user_message("WORKER_LOST")
                report.active_job_id = None
                report.worker_job_id = None
                report.cancel_requested = False
                recovered += 1
            db.commit()

            pending = list(
                db.scalars(
                    select(Report).where(
                        Report.status.in_(_CLAIMABLE),
                        Report.active_job_id.is_not(None),
                    )
                )
            )
            pending.extend(
                db.scalars(
                    select(Report).where(
                        Report.status == ReportStatus.QUEUED.value,
                        Report.active_job_id.is_(None),
                    )
                )
            )
            for report in pending:
                self._enqueue(db, report)
        logger.info("pipeline.recovery_complete failed_running=%d requeued=%d", recovered, len(pending))
        return recovered

    def _enqueue(self, db: Session, report: Report) -> Job:
        existing = self._queue.find(report.id)
        if (
            existing is not None
            and existing.status is JobStatus.WAITING
            and existing.id == report.active_job_id
        ):
            return existing
        job_id = uuid.uuid4().hex
        report.active_job_id = job_id
        db.commit()
        job = self._queue.enqueue(report.id, job_id=job_id)
        if job.id != job_id:
            report.active_job_id = job.id
            db.commit()
        logger.info("pipeline.job_enqueued report_id=%s job_id=%s status=%s", report.id, job.id, report.status)
        return job

    def _claim(self, db: Session, report_id: int, job_id: str) -> bool:
        """Atomically move QUEUED/PHASE_FAILED -> RUNNING for the job that owns the report."""

        result = db.execute(
            update(Report)
            .where(
                Report.id == report_id,
                Report.active_job_id == job_id,
                Report.status.in_(_CLAIMABLE),
            )
            .values(
                status=ReportStatus.RUNNING.value,
                worker_job_id=job_id,
                failed_phase=None,
                failure_reason_code=None,
                failure_message=None,
                cancel_requested=False,
            )
        )
        db.commit()
        return result.rowcount == 1

    def _transition(self, db: Session, report: Report, expected: ReportStatus, **values: object) -> bool:
        """Apply ``values`` only while the report is still ``expected``; ``report`` is refreshed either way."""

        result = db.execute(
            update(Report)
            .where(Report.id == report.id, Report.status == expected.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        db.refresh(report)
        return result.rowcount == 1

    def _config_for(self, db: Session, report: Report) -> PipelineConfig:
        if report.config_snapshot_json:
            return PipelineConfig.from_dict(report.config_snapshot_json)
        try:
            config = resolve_pipeline_config(
                db,
                self._projects.get_project_context(report.project_id),
                self._settings,
            )
        except (UnknownModel, StoreLookupError) as exc:
            raise ConfigurationInvalid(f"Report {report.id}: {exc}") from exc
        report.config_snapshot_json = config.to_dict()
        db.commit()
        return config

    def _finish(self, db: Session, report: Report, status: ReportStatus) -> None:
        report.status = status.value
        report.current_phase = None
        report.active_job_id = None
        report.worker_job_id = None
        report.cancel_requested = False
        db.commit()

    def _fail(self, db: Session, report_id: int, phase: str | None, reason_code: str) -> None:
        report = self._get(db, report_id)
        report.status = ReportStatus.PHASE_FAILED.value
        report.failed_phase = phase
        report.failure_reason_code = reason_code
        report.failure_message = user_message(reason_code)
        report.active_job_id = None
        report.worker_job_id = None
        report.cancel_requested = False
        db.commit()

    def _fail_quietly(self, report_id: int, job_id: str, reason_code: str) -> None:
        """Best effort after an aborted run; startup recovery covers the case where this also fails."""

        try:
            with self._session_factory() as db:
                report = db.get(Report, report_id)
                if (
                    report is not None
                    and report.status == ReportStatus.RUNNING.value
                    and report.worker_job_id == job_id
                ):
                    self._fail(db, report_id, report.current_phase, reason_code)
        except SQLAlchemyError:
            logger.exception("pipeline.mark_failed_failed report_id=%s", report_id)

    def _get(self, db: Session, report_id: int) -> Report:
        report = db.get(Report, report_id)
        if report is None:
            raise ReportNotFound(f"Report {report_id} not found")
        return report


def report_status_view(report: Report) -> ReportStatusView:
    return ReportStatusView(
        report_id=report.id,
        status=report.status,
        current_phase=report.current_phase,
        completed_phases=list(report.completed_phases_json or []),
        failed_phase=report.failed_phase,
        reason_code=report.failure_reason_code,
        message=report.failure_message,
        cancel_requested=report.cancel_requested,
    )


def _failure_reason(exc: Exception) -> str:
    if isinstance(exc, PipelineError) and exc.reason_code in USER_MESSAGES:
        return exc.reason_code
    return ConfigurationInvalid.reason_code
