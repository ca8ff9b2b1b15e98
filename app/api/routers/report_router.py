"""
Report generation endpoints.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.dependencies import get_admin_id, get_report_service
from app.schemas.reports import (
    ReportAcceptedResponse,
    ReportListResponse,
    ReportStatusResponse,
    ReportSubmitRequest,
)
from app.services.report_service import ReportNotFoundError, ReportService
from reports.models import ReportJob

router = APIRouter(prefix="/admin/reports", tags=["admin-reports"])


@router.post(
    "/generate",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ReportAcceptedResponse,
)
async def generate_report(
    payload: ReportSubmitRequest,
    admin_id: UUID | None = Depends(get_admin_id),
    service: ReportService = Depends(get_report_service),
) -> ReportAcceptedResponse:
    job = await service.submit(
        report_type=payload.type,
        title=payload.title,
        parameters=payload.parameters,
        start_date=payload.start_date,
        end_date=payload.end_date,
        generated_by=admin_id,
    )
    return ReportAcceptedResponse(report_id=job.id, status=job.status.value)


@router.get("", response_model=ReportListResponse, response_model_exclude_none=True)
async def list_reports(
    report_type: str | None = Query(default=None, alias="type", description="Optional report type filter"),
    status_filter: str | None = Query(default=None, alias="status", description="Optional status filter"),
    limit: int = Query(default=20, ge=1, le=100, description="Max reports returned"),
    service: ReportService = Depends(get_report_service),
) -> ReportListResponse:
    jobs = await service.list_reports(
        limit=limit,
        report_type=report_type,
        status=status_filter,
    )
    return ReportListResponse(reports=[_to_status_response(job) for job in jobs])


@router.get(
    "/{report_id}",
    response_model=ReportStatusResponse,
    response_model_exclude_none=True,
)
async def get_report(
    report_id: UUID,
    service: ReportService = Depends(get_report_service),
) -> ReportStatusResponse:
    try:
        job = await service.get_report(report_id)
    except ReportNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Report not found: {report_id}",
        ) from exc
    return _to_status_response(job)


def _to_status_response(job: ReportJob) -> ReportStatusResponse:
    return ReportStatusResponse(
        report_id=job.id,
        type=job.type,
        title=job.title,
        status=job.status.value,
        parameters=job.parameters,
        data=job.data,
        error=job.error,
        created_at=job.created_at,
        started_at=job.started_at,
        generated_at=job.generated_at,
    )
