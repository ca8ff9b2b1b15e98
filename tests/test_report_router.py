"""
tests/test_report_router.py

HTTP contract tests for the report endpoints, using FastAPI's TestClient
with in-memory fakes wired onto ``app.state``.
"""

from __future__ import annotations

import asyncio
import uuid

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.routers import report_router
from app.services.report_service import ReportService
from conftest import InMemoryEntityStore, InMemoryReportRepository, RecordingExecutor
from db.repositories.types import Collection
from reports.engine import ReportEngine


@pytest.fixture()
def client(
    store: InMemoryEntityStore,
    repository: InMemoryReportRepository,
    executor: RecordingExecutor,
) -> TestClient:
    application = FastAPI()
    application.include_router(report_router)
    application.state.report_service = ReportService(
        repository=repository,
        engine=ReportEngine(repository, store),
        executor=executor,
    )
    return TestClient(application)


def test_generate_returns_202_with_pending(client: TestClient, executor: RecordingExecutor) -> None:
    response = client.post(
        "/admin/reports/generate",
        json={"type": "user", "title": "Students", "parameters": {"role": "student"}},
    )

    assert response.status_code == 202
    body = response.json()
    assert body["status"] == "pending"
    uuid.UUID(body["reportId"])
    assert len(executor.submitted) == 1


def test_generated_by_taken_from_header(client: TestClient, repository: InMemoryReportRepository) -> None:
    admin_id = uuid.uuid4()
    response = client.post(
        "/admin/reports/generate",
        json={"type": "system"},
        headers={"X-Admin-Id": str(admin_id)},
    )

    job = repository.jobs[uuid.UUID(response.json()["reportId"])]
    assert job.generated_by == admin_id


def test_bad_admin_header_rejected(client: TestClient) -> None:
    response = client.post(
        "/admin/reports/generate",
        json={"type": "system"},
        headers={"X-Admin-Id": "not-a-uuid"},
    )
    assert response.status_code == 400


def test_missing_type_rejected(client: TestClient) -> None:
    response = client.post("/admin/reports/generate", json={"title": "No type"})
    assert response.status_code == 422


def test_poll_reflects_lifecycle(
    client: TestClient,
    store: InMemoryEntityStore,
    executor: RecordingExecutor,
) -> None:
    store.add(Collection.USERS, role="student")
    store.add(Collection.USERS, role="student")
    store.add(Collection.USERS, role="teacher")

    report_id = client.post(
        "/admin/reports/generate",
        json={"type": "user", "parameters": {"role": "student"}},
    ).json()["reportId"]

    pending = client.get(f"/admin/reports/{report_id}").json()
    assert pending["status"] == "pending"
    assert "data" not in pending
    assert "error" not in pending

    asyncio.run(executor.run_all())

    completed = client.get(f"/admin/reports/{report_id}").json()
    assert completed["status"] == "completed"
    assert completed["data"]["statistics"]["byRole"] == {"student": 2}
    assert "generatedAt" in completed


def test_unknown_type_completes_with_empty_data(client: TestClient, executor: RecordingExecutor) -> None:
    report_id = client.post("/admin/reports/generate", json={"type": "weather"}).json()["reportId"]
    asyncio.run(executor.run_all())

    body = client.get(f"/admin/reports/{report_id}").json()
    assert body["status"] == "completed"
    assert body["data"] == {}


def test_unknown_report_is_404(client: TestClient) -> None:
    response = client.get(f"/admin/reports/{uuid.uuid4()}")
    assert response.status_code == 404


def test_list_reports(client: TestClient) -> None:
    client.post("/admin/reports/generate", json={"type": "user"})
    client.post("/admin/reports/generate", json={"type": "exam"})

    body = client.get("/admin/reports", params={"type": "exam"}).json()
    assert [report["type"] for report in body["reports"]] == ["exam"]

    everything = client.get("/admin/reports").json()
    assert len(everything["reports"]) == 2
