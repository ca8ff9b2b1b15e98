"""
Report job submission, lookup and stale-job recovery.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from db.repositories.report_repository import ReportRepository
from reports.engine import ReportEngine
from reports.executor import ReportTaskExecutor
from reports.models import ReportJob, ReportStatus

logger = logging.getLogger(__name__)

DISPATCH_FAILED_MESSAGE = "Failed to schedule report generation job."
INTERRUPTED_MESSAGE = "Report generation interrupted before completion."


class ReportNotFoundError(LookupError):
    def __init__(self, job_id: uuid.UUID) -> None:
        super().__init__(f"Report not found: {job_id}")
        self.job_id = job_id


class ReportService:
    """
    Coordinates job creation, background dispatch and status reads.

    Submission never waits for generation: the job is persisted as
    ``pending`` and handed to the executor, and the caller gets the id back.

    Ids handed to the executor stay in ``_active`` until their run returns,
    whether they are still queued or already generating. The stale sweep
    never touches those.
    """

    def __init__(
        self,
        *,
        repository: ReportRepository,
        engine: ReportEngine,
        executor: ReportTaskExecutor,
        stale_after: timedelta = timedelta(minutes=60),
    ) -> None:
        self._repository = repository
        self._engine = engine
        self._executor = executor
        self._stale_after = stale_after
        self._active: set[uuid.UUID] = set()

    @property
    def active_jobs(self) -> frozenset[uuid.UUID]:
        """Job ids dispatched by this process whose run has not returned yet."""
        return frozenset(self._active)

    def _dispatch(self, job_id: uuid.UUID) -> None:
        self._active.add(job_id)
        try:
            self._executor.submit(self._run, job_id)
        except Exception:
            self._active.discard(job_id)
            raise

    async def _run(self, job_id: uuid.UUID) -> None:
        try:
            await self._engine.run(job_id)
        finally:
            self._active.discard(job_id)

    async def submit(
        self,
        *,
        report_type: str,
        title: str | None = None,
        parameters: dict[str, Any] | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        generated_by: uuid.UUID | None = None,
    ) -> ReportJob:
        job = await self._repository.create(
            report_type=report_type,
            title=title,
            parameters=parameters or {},
            start_date=start_date,
            end_date=end_date,
            generated_by=generated_by,
        )
        logger.info("Report job %s accepted type=%r", job.id, report_type)

        try:
            self._dispatch(job.id)
        except Exception:
            logger.exception("Failed to dispatch report job %s", job.id)
            await self._repository.fail(job.id, DISPATCH_FAILED_MESSAGE)
            raise

        return job

    async def get_report(self, job_id: uuid.UUID) -> ReportJob:
        job = await self._repository.get(job_id)
        if job is None:
            raise ReportNotFoundError(job_id)
        return job

    async def list_reports(
        self,
        *,
        limit: int = 20,
        report_type: str | None = None,
        status: str | None = None,
    ) -> list[ReportJob]:
        return await self._repository.list_jobs(
            limit=limit,
            report_type=report_type,
            status=status,
        )

    async def sweep_stale(self, *, now: datetime | None = None) -> dict[str, int]:
        """
        Recover jobs orphaned by a restart.

        Only jobs this process is not running are considered; a job in
        ``_active`` runs to completion however long it takes. Orphaned
        ``generating`` jobs older than the stale threshold are failed since
        they cannot be resumed. Orphaned ``pending`` jobs that old were never
        picked up and are dispatched again.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - self._stale_after

        failed = 0
        for job in await self._repository.list_stale(ReportStatus.GENERATING, cutoff):
            if job.id in self._active:
                continue
            if await self._repository.fail(job.id, INTERRUPTED_MESSAGE) is not None:
                failed += 1
                logger.warning("Report job %s marked failed: orphaned in generating", job.id)

        redispatched = 0
        for job in await self._repository.list_stale(ReportStatus.PENDING, cutoff):
            if job.id in self._active:
                continue
            try:
                self._dispatch(job.id)
            except Exception:
                logger.exception("Failed to re-dispatch stale report job %s", job.id)
                await self._repository.fail(job.id, DISPATCH_FAILED_MESSAGE)
                continue
            redispatched += 1

        if failed or redispatched:
            logger.info(
                "Stale report sweep failed=%d redispatched=%d cutoff=%s",
                failed,
                redispatched,
                cutoff.isoformat(),
            )
        return {"failed": failed, "redispatched": redispatched}
