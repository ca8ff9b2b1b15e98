"""
app/api/dependencies.py

Shared FastAPI dependencies.

Services are built once in the application lifespan and stored on
``app.state``; these getters hand them to route handlers.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import Header, HTTPException, Request, status

from app.services.dashboard_service import DashboardService
from app.services.report_service import ReportService


def get_dashboard_service(request: Request) -> DashboardService:
    return request.app.state.dashboard_service


def get_report_service(request: Request) -> ReportService:
    return request.app.state.report_service


def get_admin_id(x_admin_id: str | None = Header(default=None)) -> UUID | None:
    """
    Read the acting admin's id from the ``X-Admin-Id`` header.

    The header is set by the upstream auth layer; it is optional, but when
    present it must be a UUID.
    """

    if x_admin_id is None or not x_admin_id.strip():
        return None
    try:
        return UUID(x_admin_id.strip())
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Admin-Id must be a UUID.",
        ) from exc
