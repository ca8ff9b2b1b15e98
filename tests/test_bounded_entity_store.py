"""
tests/test_bounded_entity_store.py

Pytest unit tests for BoundedEntityStore.

Coverage
--------
- A month stats request fans out far past the pool size unbounded
- The same request through the bounded store never exceeds the cap
- Results and errors pass through unchanged
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from app.config import AnalyticsSettings
from app.schemas.dashboard import DashboardStatsResponse
from app.services.dashboard_service import DashboardService
from conftest import InMemoryEntityStore
from db.repositories.entity_store import BoundedEntityStore
from db.repositories.errors import EntityStoreError
from db.repositories.types import Collection, EntityQuery

NOW = datetime(2026, 3, 15, 10, 30, tzinfo=timezone.utc)
POOL_SIZE = 5


def _seeded() -> InMemoryEntityStore:
    store = InMemoryEntityStore()
    for day in (2, 9, 20):
        store.add(Collection.USERS, role="student", created_at=datetime(2026, 3, day, tzinfo=timezone.utc))
    store.add(Collection.USERS, role="teacher", created_at=datetime(2026, 2, 20, tzinfo=timezone.utc))
    store.add(Collection.EXAMS, subject="Math", status="active")
    store.add(Collection.CLASSES, status="active")
    return store


def _month_stats(store) -> DashboardStatsResponse:
    service = DashboardService(store=store, settings=AnalyticsSettings(), clock=lambda: 1.0, started_at=0.0)
    return asyncio.run(service.get_stats("month", now=NOW))


class TestBoundedEntityStore:
    def test_rejects_non_positive_limit(self) -> None:
        with pytest.raises(ValueError):
            BoundedEntityStore(InMemoryEntityStore(), max_concurrency=0)

    def test_unbounded_month_request_exceeds_pool(self) -> None:
        store = _seeded()
        _month_stats(store)
        assert store.peak_open_calls > POOL_SIZE * 3

    def test_month_request_stays_within_limit(self) -> None:
        unbounded = _month_stats(_seeded())

        store = _seeded()
        bounded = _month_stats(BoundedEntityStore(store, max_concurrency=POOL_SIZE))

        assert 1 <= store.peak_open_calls <= POOL_SIZE
        assert len(bounded.user_growth) == 30
        assert bounded.user_growth == unbounded.user_growth
        assert bounded.total_users == unbounded.total_users == 4
        assert bounded.system.status == "Good"

    def test_passes_calls_through(self) -> None:
        store = _seeded()
        bounded = BoundedEntityStore(store, max_concurrency=1)

        async def scenario():
            return await asyncio.gather(
                bounded.count(Collection.USERS, EntityQuery().where(role="student")),
                bounded.group_count(Collection.USERS, "role"),
                bounded.find(Collection.USERS, order_by="created_at", limit=1),
                bounded.ping(),
            )

        students, by_role, newest, reachable = asyncio.run(scenario())

        assert students == 3
        assert {group.key: group.count for group in by_role} == {"student": 3, "teacher": 1}
        assert newest[0]["created_at"] == datetime(2026, 3, 20, tzinfo=timezone.utc)
        assert reachable is True
        assert store.peak_open_calls == 1

    def test_errors_propagate(self) -> None:
        bounded = BoundedEntityStore(InMemoryEntityStore(fail_on={"count"}), max_concurrency=2)
        with pytest.raises(EntityStoreError):
            asyncio.run(bounded.count(Collection.USERS))
