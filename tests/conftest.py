"""
tests/conftest.py

Shared in-memory fakes for the entity store, the report repository and the
task executor. No database is touched anywhere in the suite.
"""

from __future__ import annotations

import asyncio
import uuid
from collections import Counter
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import pytest

from db.repositories.errors import EntityStoreError
from db.repositories.types import Collection, EntityQuery, GroupCount
from reports.models import ReportJob, ReportStatus, sources_for


# ---------------------------------------------------------------------------
# Entity store
# ---------------------------------------------------------------------------


def _matches(record: dict[str, Any], query: EntityQuery | None) -> bool:
    if query is None:
        return True
    for field, value in query.equals.items():
        if record.get(field) != value:
            return False
    for field, values in query.one_of.items():
        if record.get(field) not in values:
            return False
    for bound in query.ranges:
        value = record.get(bound.field)
        if value is None:
            return False
        if bound.gte is not None and not value >= bound.gte:
            return False
        if bound.lt is not None and not value < bound.lt:
            return False
        if bound.lte is not None and not value <= bound.lte:
            return False
    for field in query.non_empty:
        if not record.get(field):
            return False
    return True


class InMemoryEntityStore:
    """
    Dict-backed entity store honouring the full :class:`EntityQuery` contract.

    Operation names listed in ``fail_on`` raise :class:`EntityStoreError`.
    ``peak_open_calls`` records the most calls that were in progress at once.
    """

    def __init__(self, *, fail_on: set[str] | None = None, reachable: bool = True) -> None:
        self.records: dict[Collection, list[dict[str, Any]]] = {c: [] for c in Collection}
        self.fail_on = set(fail_on or ())
        self.reachable = reachable
        self.calls: Counter[str] = Counter()
        self.open_calls = 0
        self.peak_open_calls = 0

    def add(self, collection: Collection, **fields: Any) -> dict[str, Any]:
        record = {"id": uuid.uuid4(), **fields}
        if collection is Collection.AUDIT_LOGS:
            record.setdefault("timestamp", datetime.now(timezone.utc))
        else:
            record.setdefault("created_at", datetime.now(timezone.utc))
        self.records[collection].append(record)
        return record

    async def _check(self, operation: str) -> None:
        self.calls[operation] += 1
        self.open_calls += 1
        self.peak_open_calls = max(self.peak_open_calls, self.open_calls)
        try:
            # yield once so concurrent callers overlap like real sessions
            await asyncio.sleep(0)
        finally:
            self.open_calls -= 1
        if operation in self.fail_on:
            raise EntityStoreError(f"{operation} failed")

    def _select(self, collection: Collection, query: EntityQuery | None) -> list[dict[str, Any]]:
        return [record for record in self.records[collection] if _matches(record, query)]

    async def count(self, collection: Collection, query: EntityQuery | None = None) -> int:
        await self._check("count")
        return len(self._select(collection, query))

    async def group_count(
        self,
        collection: Collection,
        field: str,
        query: EntityQuery | None = None,
        *,
        limit: int | None = None,
    ) -> list[GroupCount]:
        await self._check("group_count")
        counts = Counter(record.get(field) for record in self._select(collection, query))
        groups = sorted(counts.items(), key=lambda item: (-item[1], str(item[0])))
        if limit is not None:
            groups = groups[:limit]
        return [GroupCount(key=key, count=count) for key, count in groups]

    async def average(
        self,
        collection: Collection,
        field: str,
        query: EntityQuery | None = None,
    ) -> float | None:
        await self._check("average")
        values = [
            record[field]
            for record in self._select(collection, query)
            if record.get(field) is not None
        ]
        return sum(values) / len(values) if values else None

    async def find(
        self,
        collection: Collection,
        query: EntityQuery | None = None,
        *,
        order_by: str = "created_at",
        descending: bool = True,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        await self._check("find")
        rows = sorted(
            self._select(collection, query),
            key=lambda record: record[order_by],
            reverse=descending,
        )
        if limit is not None:
            rows = rows[:limit]
        return [dict(row) for row in rows]

    async def ping(self) -> bool:
        await self._check("ping")
        return self.reachable


# ---------------------------------------------------------------------------
# Report repository
# ---------------------------------------------------------------------------


class InMemoryReportRepository:
    """Dict-backed report repository with the same guarded transitions as the SQL one."""

    def __init__(self) -> None:
        self.jobs: dict[uuid.UUID, ReportJob] = {}

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
        job = ReportJob(
            id=uuid.uuid4(),
            type=report_type,
            status=ReportStatus.PENDING,
            created_at=datetime.now(timezone.utc),
            title=title,
            parameters=dict(parameters or {}),
            start_date=start_date,
            end_date=end_date,
            generated_by=generated_by,
        )
        self.jobs[job.id] = job
        return job

    async def get(self, job_id: uuid.UUID) -> ReportJob | None:
        return self.jobs.get(job_id)

    async def list_jobs(
        self,
        *,
        limit: int = 20,
        report_type: str | None = None,
        status: str | None = None,
    ) -> list[ReportJob]:
        jobs = [
            job
            for job in self.jobs.values()
            if (report_type is None or job.type == report_type)
            and (status is None or job.status.value == status)
        ]
        jobs.sort(key=lambda job: job.created_at, reverse=True)
        return jobs[:limit]

    async def claim(self, job_id: uuid.UUID) -> ReportJob | None:
        return self._transition(
            job_id, ReportStatus.GENERATING, started_at=datetime.now(timezone.utc)
        )

    async def complete(self, job_id: uuid.UUID, data: dict[str, Any]) -> ReportJob | None:
        return self._transition(
            job_id,
            ReportStatus.COMPLETED,
            data=data,
            generated_at=datetime.now(timezone.utc),
        )

    async def fail(self, job_id: uuid.UUID, error: str) -> ReportJob | None:
        return self._transition(job_id, ReportStatus.FAILED, error=error)

    async def list_stale(self, status: ReportStatus, cutoff: datetime) -> list[ReportJob]:
        return [
            job
            for job in self.jobs.values()
            if job.status is status and (job.started_at or job.created_at) < cutoff
        ]

    def backdate(self, job_id: uuid.UUID, **fields: Any) -> None:
        self.jobs[job_id] = replace(self.jobs[job_id], **fields)

    def _transition(self, job_id: uuid.UUID, target: ReportStatus, **values: Any) -> ReportJob | None:
        job = self.jobs.get(job_id)
        if job is None or job.status not in sources_for(target):
            return None
        updated = replace(job, status=target, **values)
        self.jobs[job_id] = updated
        return updated


# ---------------------------------------------------------------------------
# Task executors
# ---------------------------------------------------------------------------


class RecordingExecutor:
    """Collects submitted tasks; ``run_all`` awaits them in submission order."""

    def __init__(self) -> None:
        self.submitted: list[tuple[Callable[..., Awaitable[Any]], tuple[Any, ...]]] = []

    def submit(self, task: Callable[..., Awaitable[Any]], *args: Any) -> None:
        self.submitted.append((task, args))

    async def run_all(self) -> None:
        pending, self.submitted = self.submitted, []
        for task, args in pending:
            await task(*args)


class RejectingExecutor:
    def submit(self, task: Callable[..., Awaitable[Any]], *args: Any) -> None:
        raise RuntimeError("executor is full")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def store() -> InMemoryEntityStore:
    return InMemoryEntityStore()


@pytest.fixture()
def repository() -> InMemoryReportRepository:
    return InMemoryReportRepository()


@pytest.fixture()
def executor() -> RecordingExecutor:
    return RecordingExecutor()
