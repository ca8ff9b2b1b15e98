"""
Admin dashboard statistics endpoint.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from analytics.metrics import AggregationError
from app.api.dependencies import get_dashboard_service
from app.schemas.dashboard import DashboardStatsResponse
from app.services.dashboard_service import DashboardService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/dashboard", tags=["admin-dashboard"])


@router.get(
    "/stats",
    response_model=DashboardStatsResponse,
    response_model_by_alias=True,
)
async def get_dashboard_stats(
    time_range: str | None = Query(
        default=None,
        alias="timeRange",
        description="today, week, month or year; anything else falls back to week",
    ),
    service: DashboardService = Depends(get_dashboard_service),
) -> DashboardStatsResponse:
    try:
        return await service.get_stats(time_range)
    except AggregationError as exc:
        logger.error("Dashboard stats request failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error",
        ) from exc
