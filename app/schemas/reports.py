"""
Schemas for report submission and status endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from app.schemas.dashboard import CamelModel


class ReportSubmitRequest(CamelModel):
    type: str = Field(min_length=1, max_length=50)
    title: str | None = Field(default=None, max_length=255)
    parameters: dict[str, Any] = Field(default_factory=dict)
    start_date: datetime | None = None
    end_date: datetime | None = None


class ReportAcceptedResponse(CamelModel):
    report_id: UUID
    status: str


class ReportStatusResponse(CamelModel):
    report_id: UUID
    type: str
    title: str | None = None
    status: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    data: dict[str, Any] | None = None
    error: str | None = None
    created_at: datetime
    started_at: datetime | None = None
    generated_at: datetime | None = None


class ReportListResponse(CamelModel):
    reports: list[ReportStatusResponse] = Field(default_factory=list)
