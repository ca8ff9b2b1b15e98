"""
reports/engine.py

Background execution of one report job.

The engine is the only writer of a job after submission. For a job id it:

1. claims the job (``pending`` → ``generating``); a lost claim is a no-op,
2. dispatches on the job type to the matching generator,
3. commits ``completed`` with the JSON-encoded payload, or ``failed`` with
   the captured ``"<ExceptionType>: <message>"``.

No retry is attempted. A job type with no generator completes with an empty
payload rather than failing.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from fastapi.encoders import jsonable_encoder

from db.repositories.entity_store import EntityStore
from db.repositories.report_repository import ReportRepository
from reports.generators import GENERATORS, ReportContext, ReportGenerator, ReportParameters
from reports.models import ReportJob, ReportType

logger = logging.getLogger(__name__)


class ReportEngine:
    """
    Claims, generates and finalises report jobs.

    Parameters
    ----------
    repository:
        Job repository; the sole channel between submitter and engine.
    store:
        Entity store handed to generators.
    generators:
        Generator per report type. Defaults to :data:`reports.generators.GENERATORS`.
    row_limit:
        Cap on detail rows in a payload.
    error_max_length:
        Captured error messages are truncated to this many characters.
    """

    def __init__(
        self,
        repository: ReportRepository,
        store: EntityStore,
        *,
        generators: Mapping[ReportType, ReportGenerator] | None = None,
        row_limit: int = 100,
        error_max_length: int = 2000,
    ) -> None:
        self._repository = repository
        self._store = store
        self._generators = dict(generators) if generators is not None else dict(GENERATORS)
        self._row_limit = row_limit
        self._error_max_length = error_max_length

    async def run(self, job_id: uuid.UUID) -> ReportJob | None:
        """
        Execute one job end to end and return its final record.

        Returns ``None`` when the job could not be claimed (unknown id, or
        already claimed or finished elsewhere).
        """
        job = await self._repository.claim(job_id)
        if job is None:
            logger.warning("Report job %s could not be claimed; skipping", job_id)
            return None
        logger.info("Report job %s generating type=%r", job_id, job.type)

        try:
            data = jsonable_encoder(await self._generate(job))
        except Exception as exc:
            return await self._fail(job_id, exc)

        try:
            completed = await self._repository.complete(job_id, data)
        except Exception as exc:
            return await self._fail(job_id, exc)

        if completed is None:
            logger.warning("Report job %s left generating before completion was recorded", job_id)
            return await self._repository.get(job_id)
        logger.info("Report job %s completed", job_id)
        return completed

    async def _generate(self, job: ReportJob) -> dict[str, Any]:
        report_type = job.report_type
        generator = self._generators.get(report_type) if report_type is not None else None
        if generator is None:
            logger.warning(
                "Report job %s has unrecognised type %r; completing with empty data",
                job.id,
                job.type,
            )
            return {}

        context = ReportContext(
            parameters=ReportParameters.from_job(job),
            store=self._store,
            row_limit=self._row_limit,
            now=datetime.now(timezone.utc),
        )
        return await generator(context)

    async def _fail(self, job_id: uuid.UUID, exc: Exception) -> ReportJob | None:
        error_message = f"{type(exc).__name__}: {exc}"[: self._error_max_length]
        logger.error("Report job %s failed: %s", job_id, error_message, exc_info=exc)
        try:
            failed = await self._repository.fail(job_id, error_message)
        except Exception:
            logger.exception("Failed to persist failed report job state id=%s", job_id)
            return None
        if failed is None:
            logger.error("Unable to mark report job as failed; it is no longer generating id=%s", job_id)
        return failed
