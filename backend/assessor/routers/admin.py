"""Admin routes: usage ledger queries, queue counts and model role assignment."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from assessor.db.dependencies import get_db
from assessor.errors import HTTP_STATUS, UnknownModel, error_detail
from assessor.schemas.admin import (
    QueueStatsRead,
    RoleAssignmentRead,
    RoleAssignmentRequest,
    UsageEntryRead,
    UsageSummaryRead,
)
from assessor.schemas.common import ApiResponse
from assessor.services.model_catalog import ModelRole, assign_role_model
from assessor.services.runtime import PipelineRuntime, get_runtime
from assessor.services.usage_ledger import UsageFilter

router = APIRouter(prefix="/admin")


def _usage_filter(
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    project_id: int | None = Query(default=None, ge=1),
    report_id: int | None = Query(default=None, ge=1),
    model_id: str | None = Query(default=None, min_length=1),
    action: str | None = Query(default=None, min_length=1),
) -> UsageFilter:
    return UsageFilter(
        start=start,
        end=end,
        project_id=project_id,
        report_id=report_id,
        model_id=model_id,
        action=action,
    )


@router.get("/usage/summary", response_model=ApiResponse[UsageSummaryRead])
def get_usage_summary(
    usage_filter: UsageFilter = Depends(_usage_filter),
    runtime: PipelineRuntime = Depends(get_runtime),
) -> ApiResponse[UsageSummaryRead]:
    """Aggregate tokens and cost over matching ledger entries."""

    return ApiResponse(data=UsageSummaryRead.model_validate(runtime.ledger.summary(usage_filter)))


@router.get("/usage/entries", response_model=ApiResponse[list[UsageEntryRead]])
def get_usage_entries(
    usage_filter: UsageFilter = Depends(_usage_filter),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    runtime: PipelineRuntime = Depends(get_runtime),
) -> ApiResponse[list[UsageEntryRead]]:
    entries = runtime.ledger.list_entries(usage_filter, limit=limit, offset=offset)
    return ApiResponse(data=[UsageEntryRead.model_validate(entry) for entry in entries])


@router.get("/queue", response_model=ApiResponse[QueueStatsRead])
def get_queue_stats(runtime: PipelineRuntime = Depends(get_runtime)) -> ApiResponse[QueueStatsRead]:
    return ApiResponse(data=QueueStatsRead.model_validate(runtime.queue.stats()))


@router.put("/model-roles/{role}", response_model=ApiResponse[RoleAssignmentRead])
def put_model_role(
    role: ModelRole,
    payload: RoleAssignmentRequest,
    db: Session = Depends(get_db),
) -> ApiResponse[RoleAssignmentRead]:
    """Point a role at a catalog model. Running reports keep their resolved models."""

    try:
        row = assign_role_model(
            db,
            role,
            payload.model_id,
            temperature=payload.temperature,
            backup_model_id=payload.backup_model_id,
        )
    except UnknownModel as exc:
        raise HTTPException(status_code=HTTP_STATUS[exc.reason_code], detail=error_detail(exc)) from exc
    return ApiResponse(data=RoleAssignmentRead.model_validate(row))
