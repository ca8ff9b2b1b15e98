"""
analytics/metrics.py

Dashboard metrics snapshot over the entity store.

Query design
------------
Every metric is one independent count or group-by against the store. They
have no data dependency on each other, so :class:`MetricsAggregator` issues
all of them at once with ``asyncio.gather`` and waits for every result
before building the snapshot.

Failure contract
----------------
Fail-fast. If any single query raises, the whole snapshot raises
:class:`AggregationError`; a partially-filled snapshot is never returned.

Growth
------
``growth_percentage`` compares users created in the current window with
users created in the equal-length window immediately before it::

    previous > 0                 → round((current - previous) / previous * 100, 1)
    previous == 0, current > 0   → 100.0
    previous == 0, current == 0  → 0.0
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Mapping

from analytics.time_window import ResolvedWindow
from db.models.user import UserRole
from db.repositories.entity_store import EntityStore
from db.repositories.types import Collection, EntityQuery, GroupCount

logger = logging.getLogger(__name__)


class AggregationError(RuntimeError):
    """
    Raised when any sub-query of a dashboard aggregation fails.

    The underlying exception is chained as ``__cause__``; callers surface only
    an opaque failure.
    """


def growth_percentage(current: int, previous: int) -> float:
    if previous > 0:
        return round((current - previous) / previous * 100, 1)
    if current > 0:
        return 100.0
    return 0.0


@dataclass(frozen=True)
class MetricsSnapshot:
    counts: Mapping[str, int]
    growth_percentage: float
    exam_distribution: list[GroupCount] = field(default_factory=list)
    class_status: list[GroupCount] = field(default_factory=list)

    def __getitem__(self, name: str) -> int:
        return self.counts[name]


async def gather_all_or_nothing(named: Mapping[str, Awaitable[Any]], *, what: str) -> dict[str, Any]:
    """
    Await every awaitable in *named* concurrently and return results by name.

    Raises :class:`AggregationError` on the first failure; queries still in
    flight at that point are cancelled and awaited before it propagates.
    """
    tasks = [asyncio.ensure_future(awaitable) for awaitable in named.values()]
    try:
        results = await asyncio.gather(*tasks)
    except Exception as exc:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.exception("%s aggregation failed", what)
        raise AggregationError(f"{what} aggregation failed.") from exc
    return dict(zip(named.keys(), results))


class MetricsAggregator:
    """
    Builds a :class:`MetricsSnapshot` for one resolved window.

    Parameters
    ----------
    store:
        Entity store capability. Only read operations are used.
    top_subjects:
        How many subjects to keep in the exam distribution.
    active_user_window:
        Look-back for ``active_users`` (users with a recent login).
    new_user_window:
        Look-back for ``new_users``. Independent of the dashboard range.
    """

    def __init__(
        self,
        store: EntityStore,
        *,
        top_subjects: int = 6,
        active_user_window: timedelta = timedelta(hours=24),
        new_user_window: timedelta = timedelta(days=7),
    ) -> None:
        self._store = store
        self._top_subjects = top_subjects
        self._active_user_window = active_user_window
        self._new_user_window = new_user_window

    async def snapshot(self, window: ResolvedWindow, *, now: datetime | None = None) -> MetricsSnapshot:
        now = now or window.current.end
        store = self._store
        any_user = EntityQuery()

        queries: dict[str, Awaitable[Any]] = {
            "total_users": store.count(Collection.USERS),
            "total_teachers": store.count(Collection.USERS, any_user.where(role=UserRole.TEACHER)),
            "total_students": store.count(Collection.USERS, any_user.where(role=UserRole.STUDENT)),
            "total_classes": store.count(Collection.CLASSES),
            "active_classes": store.count(Collection.CLASSES, EntityQuery().where(status="active")),
            "total_exams": store.count(Collection.EXAMS),
            "active_exams": store.count(Collection.EXAMS, EntityQuery().where(status="active")),
            "pending_exams": store.count(Collection.EXAMS, EntityQuery().where(status="pending")),
            "total_admins": store.count(Collection.ADMINS, EntityQuery().where(is_active=True)),
            "active_users": store.count(
                Collection.USERS,
                any_user.within("last_login", gte=now - self._active_user_window),
            ),
            "new_users": store.count(
                Collection.USERS,
                any_user.within("created_at", gte=now - self._new_user_window),
            ),
            "current_period_users": store.count(
                Collection.USERS,
                any_user.within("created_at", gte=window.current.start, lt=window.current.end),
            ),
            "previous_period_users": store.count(
                Collection.USERS,
                any_user.within("created_at", gte=window.previous.start, lt=window.previous.end),
            ),
            "exam_distribution": store.group_count(
                Collection.EXAMS, "subject", limit=self._top_subjects
            ),
            "class_status": store.group_count(Collection.CLASSES, "status"),
        }

        results = await gather_all_or_nothing(queries, what="Dashboard metrics")
        exam_distribution = results.pop("exam_distribution")
        class_status = results.pop("class_status")
        growth = growth_percentage(
            results["current_period_users"], results["previous_period_users"]
        )
        logger.debug(
            "Metrics snapshot range=%s current_users=%d previous_users=%d growth=%.1f",
            window.time_range.value,
            results["current_period_users"],
            results["previous_period_users"],
            growth,
        )
        return MetricsSnapshot(
            counts=results,
            growth_percentage=growth,
            exam_distribution=exam_distribution,
            class_status=class_status,
        )
