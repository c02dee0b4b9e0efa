"""Report generation routes."""

from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.orm import Session

from assessor.db.dependencies import get_db
from assessor.errors import HTTP_STATUS, PipelineError, error_detail
from assessor.pipeline.ask_ai import AskAiRequest
from assessor.pipeline.orchestrator import NewDocument
from assessor.schemas.common import ApiResponse
from assessor.schemas.report import (
    AskAiRequestBody,
    AskAiResult,
    JobRead,
    ReportCreated,
    ReportCreateRequest,
    ReportRead,
    ReportStatusRead,
)
from assessor.services.job_queue import Job
from assessor.services.reports import get_report_detail
from assessor.services.runtime import PipelineRuntime, get_runtime
from assessor.services.stores import StoreLookupError

router = APIRouter(prefix="/reports")


def _http_error(exc: PipelineError) -> HTTPException:
    return HTTPException(status_code=HTTP_STATUS.get(exc.reason_code, 500), detail=error_detail(exc))


def _job_read(job: Job) -> JobRead:
    return JobRead(id=job.id, report_id=job.report_id, kind=job.kind, status=job.status.value)


@router.post("", response_model=ApiResponse[ReportCreated], status_code=201)
def create_report(
    payload: ReportCreateRequest,
    db: Session = Depends(get_db),
    runtime: PipelineRuntime = Depends(get_runtime),
) -> ApiResponse[ReportCreated]:
    """Create a QUEUED report and enqueue its generation job."""

    try:
        report = runtime.orchestrator.create_report(
            db,
            project_id=payload.project_id,
            title=payload.title,
            target_levels=payload.target_levels,
            specific_context=payload.specific_context,
            documents=[
                NewDocument(
                    file_ref=document.file_ref,
                    simulation_method=document.simulation_method,
                    extracted_text=document.extracted_text,
                )
                for document in payload.documents
            ],
        )
        runtime.orchestrator.submit(db, report.id)
    except StoreLookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return ApiResponse(data=ReportCreated(report_id=report.id))


@router.get("/{report_id}", response_model=ApiResponse[ReportRead])
def get_report(
    report_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[ReportRead]:
    """Current status, phase and any persisted phase output."""

    try:
        return ApiResponse(data=get_report_detail(db, report_id))
    except PipelineError as exc:
        raise _http_error(exc) from exc


@router.get("/{report_id}/status", response_model=ApiResponse[ReportStatusRead])
def get_report_status(
    report_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    runtime: PipelineRuntime = Depends(get_runtime),
) -> ApiResponse[ReportStatusRead]:
    try:
        view = runtime.orchestrator.status(db, report_id)
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return ApiResponse(data=ReportStatusRead.model_validate(view))


@router.post("/{report_id}/resume", response_model=ApiResponse[JobRead], status_code=202)
def resume_report(
    report_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    runtime: PipelineRuntime = Depends(get_runtime),
) -> ApiResponse[JobRead]:
    """Resume a PHASE_FAILED report from its failed phase."""

    try:
        job = runtime.orchestrator.resume(db, report_id)
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return ApiResponse(data=_job_read(job))


@router.post("/{report_id}/cancel", response_model=ApiResponse[ReportStatusRead])
def cancel_report(
    report_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    runtime: PipelineRuntime = Depends(get_runtime),
) -> ApiResponse[ReportStatusRead]:
    try:
        view = runtime.orchestrator.cancel(db, report_id)
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return ApiResponse(data=ReportStatusRead.model_validate(view))


@router.post("/{report_id}/ask-ai", response_model=ApiResponse[AskAiResult])
def ask_ai(
    payload: AskAiRequestBody,
    report_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    runtime: PipelineRuntime = Depends(get_runtime),
) -> ApiResponse[AskAiResult]:
    """Refine one text block of a COMPLETE report."""

    try:
        result = runtime.ask_ai.refine(
            db,
            report_id,
            AskAiRequest(
                text=payload.text,
                instruction=payload.instruction,
                context_type=payload.context_type,
                competency_id=payload.competency_id,
            ),
        )
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return ApiResponse(data=AskAiResult(refined_content=result.refined_content, reasoning=result.reasoning))
