"""
tests/test_report_engine.py

Pytest unit tests for ReportEngine.

Coverage
--------
- pending → generating → completed with a JSON-ready payload
- Unknown report type completes with empty data
- Generator exception captured into ``error``; ``data`` stays empty
- Error message format and truncation
- Claim is exclusive: a second run is a no-op
- Terminal records are never rewritten
"""

from __future__ import annotations

import asyncio
import uuid

from conftest import InMemoryEntityStore, InMemoryReportRepository
from db.repositories.types import Collection
from reports.engine import ReportEngine
from reports.generators import ReportContext
from reports.models import ReportStatus, ReportType


async def _boom(ctx: ReportContext) -> dict:
    raise ValueError("bad filter")


def _submit(repository: InMemoryReportRepository, report_type: str, **parameters):
    return asyncio.run(repository.create(report_type=report_type, parameters=parameters))


def _seed_users(store: InMemoryEntityStore) -> None:
    for _ in range(3):
        store.add(Collection.USERS, role="student", status="active")
    store.add(Collection.USERS, role="teacher", status="active")


class TestSuccessfulRun:
    def test_user_report_completes(
        self, store: InMemoryEntityStore, repository: InMemoryReportRepository
    ) -> None:
        _seed_users(store)
        job = _submit(repository, "user", role="student")

        result = asyncio.run(ReportEngine(repository, store).run(job.id))

        assert result is not None
        assert result.status is ReportStatus.COMPLETED
        assert result.error is None
        assert result.generated_at is not None
        assert result.data["statistics"]["byRole"] == {"student": 3}
        assert repository.jobs[job.id].status is ReportStatus.COMPLETED

    def test_payload_is_json_ready(
        self, store: InMemoryEntityStore, repository: InMemoryReportRepository
    ) -> None:
        _seed_users(store)
        job = _submit(repository, "user")

        result = asyncio.run(ReportEngine(repository, store).run(job.id))

        first = result.data["users"][0]
        assert isinstance(first["id"], str)
        assert isinstance(first["created_at"], str)
        uuid.UUID(first["id"])

    def test_row_limit_is_applied(
        self, store: InMemoryEntityStore, repository: InMemoryReportRepository
    ) -> None:
        _seed_users(store)
        job = _submit(repository, "user")

        result = asyncio.run(ReportEngine(repository, store, row_limit=2).run(job.id))

        assert len(result.data["users"]) == 2
        assert result.data["truncated"] is True

    def test_unknown_type_completes_with_empty_data(
        self, store: InMemoryEntityStore, repository: InMemoryReportRepository
    ) -> None:
        job = _submit(repository, "weather")

        result = asyncio.run(ReportEngine(repository, store).run(job.id))

        assert result.status is ReportStatus.COMPLETED
        assert result.data == {}
        assert result.error is None


class TestFailedRun:
    def test_generator_exception_is_captured(
        self, store: InMemoryEntityStore, repository: InMemoryReportRepository
    ) -> None:
        job = _submit(repository, "user")
        engine = ReportEngine(repository, store, generators={ReportType.USER: _boom})

        result = asyncio.run(engine.run(job.id))

        assert result.status is ReportStatus.FAILED
        assert result.error == "ValueError: bad filter"
        assert result.data is None

    def test_store_failure_is_captured(self, repository: InMemoryReportRepository) -> None:
        store = InMemoryEntityStore(fail_on={"count"})
        job = _submit(repository, "user")

        result = asyncio.run(ReportEngine(repository, store).run(job.id))

        assert result.status is ReportStatus.FAILED
        assert result.error.startswith("EntityStoreError: ")

    def test_error_is_truncated(
        self, store: InMemoryEntityStore, repository: InMemoryReportRepository
    ) -> None:
        job = _submit(repository, "user")
        engine = ReportEngine(
            repository,
            store,
            generators={ReportType.USER: _boom},
            error_max_length=10,
        )

        result = asyncio.run(engine.run(job.id))

        assert result.error == "ValueError"


class TestClaimAndImmutability:
    def test_second_run_is_a_no_op(
        self, store: InMemoryEntityStore, repository: InMemoryReportRepository
    ) -> None:
        _seed_users(store)
        job = _submit(repository, "user")
        engine = ReportEngine(repository, store)

        first = asyncio.run(engine.run(job.id))
        second = asyncio.run(engine.run(job.id))

        assert first.status is ReportStatus.COMPLETED
        assert second is None
        assert repository.jobs[job.id] == first

    def test_unknown_job_id(
        self, store: InMemoryEntityStore, repository: InMemoryReportRepository
    ) -> None:
        assert asyncio.run(ReportEngine(repository, store).run(uuid.uuid4())) is None

    def test_completed_job_cannot_fail(
        self, store: InMemoryEntityStore, repository: InMemoryReportRepository
    ) -> None:
        job = _submit(repository, "system")
        completed = asyncio.run(ReportEngine(repository, store).run(job.id))

        assert asyncio.run(repository.fail(job.id, "late error")) is None
        assert repository.jobs[job.id].data == completed.data
        assert repository.jobs[job.id].error is None

    def test_failed_job_cannot_complete(
        self, store: InMemoryEntityStore, repository: InMemoryReportRepository
    ) -> None:
        job = _submit(repository, "user")
        asyncio.run(ReportEngine(repository, store, generators={ReportType.USER: _boom}).run(job.id))

        assert asyncio.run(repository.complete(job.id, {"late": True})) is None
        assert repository.jobs[job.id].status is ReportStatus.FAILED
        assert repository.jobs[job.id].data is None
