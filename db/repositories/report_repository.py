"""
Repository for report job lifecycle persistence and status lookup.

State-changing writes are single conditional UPDATE statements guarded by the
statuses the lifecycle allows as sources (see :mod:`reports.models`). A write
that matches no row returns ``None``: either the job does not exist or it has
already moved on, and terminal records are never rewritten.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Protocol

from sqlalchemy import Select, Update, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from db.models.report import Report
from db.repositories.errors import ReportPersistenceError
from reports.models import ReportJob, ReportStatus, sources_for


class ReportRepository(Protocol):
    async def create(
        self,
        *,
        report_type: str,
        title: str | None = None,
        parameters: dict[str, Any] | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        generated_by: uuid.UUID | None = None,
    ) -> ReportJob:
        ...

    async def get(self, job_id: uuid.UUID) -> ReportJob | None:
        ...

    async def list_jobs(
        self,
        *,
        limit: int = 20,
        report_type: str | None = None,
        status: str | None = None,
    ) -> list[ReportJob]:
        ...

    async def claim(self, job_id: uuid.UUID) -> ReportJob | None:
        ...

    async def complete(self, job_id: uuid.UUID, data: dict[str, Any]) -> ReportJob | None:
        ...

    async def fail(self, job_id: uuid.UUID, error: str) -> ReportJob | None:
        ...

    async def list_stale(self, status: ReportStatus, cutoff: datetime) -> list[ReportJob]:
        ...


def _to_job(report: Report) -> ReportJob:
    return ReportJob(
        id=report.id,
        type=report.type,
        status=ReportStatus(report.status),
        created_at=report.created_at,
        title=report.title,
        parameters=dict(report.parameters or {}),
        start_date=report.start_date,
        end_date=report.end_date,
        data=report.data,
        error=report.error,
        generated_by=report.generated_by,
        started_at=report.started_at,
        generated_at=report.generated_at,
    )


def _transition_statement(job_id: uuid.UUID, target: ReportStatus, **values: Any) -> Update:
    """UPDATE moving one job to *target*; matches only while the job is in an allowed source status."""
    allowed = sorted(status.value for status in sources_for(target))
    return (
        update(Report)
        .where(Report.id == job_id, Report.status.in_(allowed))
        .values(status=target.value, updated_at=datetime.now(timezone.utc), **values)
        .returning(Report)
        .execution_options(synchronize_session=False)
    )


class SQLAlchemyReportRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        if session_factory is None:
            from db.session import get_session_factory

            self._session_factory = get_session_factory()
        else:
            self._session_factory = session_factory

    async def create(
        self,
        *,
        report_type: str,
        title: str | None = None,
        parameters: dict[str, Any] | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        generated_by: uuid.UUID | None = None,
    ) -> ReportJob:
        report = Report(
            type=report_type,
            title=title,
            status=ReportStatus.PENDING.value,
            parameters=parameters or {},
            start_date=start_date,
            end_date=end_date,
            generated_by=generated_by,
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(report)
                    await session.flush()
                    await session.refresh(report)
        except SQLAlchemyError as exc:
            raise ReportPersistenceError("Failed to create report job.") from exc
        return _to_job(report)

    async def get(self, job_id: uuid.UUID) -> ReportJob | None:
        try:
            async with self._session_factory() as session:
                report = await session.get(Report, job_id)
        except SQLAlchemyError as exc:
            raise ReportPersistenceError(f"Failed to load report job {job_id}.") from exc
        return _to_job(report) if report is not None else None

    async def list_jobs(
        self,
        *,
        limit: int = 20,
        report_type: str | None = None,
        status: str | None = None,
    ) -> list[ReportJob]:
        stmt: Select[tuple[Report]] = select(Report)
        if report_type:
            stmt = stmt.where(Report.type == report_type)
        if status:
            stmt = stmt.where(Report.status == status)
        stmt = stmt.order_by(Report.created_at.desc()).limit(max(1, limit))

        try:
            async with self._session_factory() as session:
                reports = (await session.scalars(stmt)).all()
        except SQLAlchemyError as exc:
            raise ReportPersistenceError("Failed to list report jobs.") from exc
        return [_to_job(report) for report in reports]

    async def claim(self, job_id: uuid.UUID) -> ReportJob | None:
        return await self._transition(
            job_id,
            ReportStatus.GENERATING,
            started_at=datetime.now(timezone.utc),
        )

    async def complete(self, job_id: uuid.UUID, data: dict[str, Any]) -> ReportJob | None:
        return await self._transition(
            job_id,
            ReportStatus.COMPLETED,
            data=data,
            generated_at=datetime.now(timezone.utc),
        )

    async def fail(self, job_id: uuid.UUID, error: str) -> ReportJob | None:
        return await self._transition(job_id, ReportStatus.FAILED, error=error)

    async def list_stale(self, status: ReportStatus, cutoff: datetime) -> list[ReportJob]:
        since = func.coalesce(Report.started_at, Report.created_at)
        stmt = (
            select(Report)
            .where(Report.status == status.value, since < cutoff)
            .order_by(Report.created_at.asc())
        )
        try:
            async with self._session_factory() as session:
                reports = (await session.scalars(stmt)).all()
        except SQLAlchemyError as exc:
            raise ReportPersistenceError("Failed to list stale report jobs.") from exc
        return [_to_job(report) for report in reports]

    async def _transition(
        self,
        job_id: uuid.UUID,
        target: ReportStatus,
        **values: Any,
    ) -> ReportJob | None:
        stmt = _transition_statement(job_id, target, **values)
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    report = (await session.scalars(stmt)).first()
        except SQLAlchemyError as exc:
            raise ReportPersistenceError(
                f"Failed to move report job {job_id} to {target.value}."
            ) from exc
        return _to_job(report) if report is not None else None
