"""
Admin dashboard statistics assembly.

One request resolves the time window and then runs, concurrently, the
metrics snapshot, the cumulative user-growth series, the recent audit
activity lookup and a store ping. Any failure fails the whole response.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from analytics.metrics import MetricsAggregator, MetricsSnapshot, gather_all_or_nothing
from analytics.time_window import resolve_time_window
from analytics.timeseries import TimeSeriesBuilder, TimeSeriesPoint
from app.config import AnalyticsSettings
from app.schemas.dashboard import (
    ClassStatusItem,
    DashboardStatsResponse,
    ExamDistributionItem,
    RecentActivity,
    SystemHealth,
    UserGrowthPoint,
)
from db.models.user import UserRole
from db.repositories.entity_store import EntityStore
from db.repositories.types import Collection, EntityQuery

logger = logging.getLogger(__name__)

_USER_SERIES = {
    "students": EntityQuery().where(role=UserRole.STUDENT),
    "teachers": EntityQuery().where(role=UserRole.TEACHER),
}


class DashboardService:
    """
    Builds :class:`DashboardStatsResponse` payloads.

    ``clock`` is a monotonic seconds source used for the uptime figure;
    ``started_at`` is its reading when the process came up.
    """

    def __init__(
        self,
        *,
        store: EntityStore,
        settings: AnalyticsSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
        started_at: float | None = None,
    ) -> None:
        self._store = store
        self._settings = settings or AnalyticsSettings()
        self._clock = clock
        self._started_at = started_at if started_at is not None else clock()
        self._aggregator = MetricsAggregator(
            store,
            top_subjects=self._settings.top_subjects,
            active_user_window=timedelta(hours=self._settings.active_user_hours),
            new_user_window=timedelta(days=self._settings.new_user_days),
        )
        self._series = TimeSeriesBuilder(store)

    async def get_stats(
        self,
        time_range: str | None = None,
        *,
        now: datetime | None = None,
    ) -> DashboardStatsResponse:
        now = now or datetime.now(timezone.utc)
        window = resolve_time_window(time_range, now=now)

        results = await gather_all_or_nothing(
            {
                "snapshot": self._aggregator.snapshot(window, now=now),
                "user_growth": self._series.build(window, _USER_SERIES),
                "activities": self._store.find(
                    Collection.AUDIT_LOGS,
                    order_by="timestamp",
                    limit=self._settings.recent_activity_limit,
                ),
                "database_ok": self._store.ping(),
            },
            what="Dashboard stats",
        )
        snapshot: MetricsSnapshot = results["snapshot"]
        user_growth: list[TimeSeriesPoint] = results["user_growth"]

        logger.info(
            "Dashboard stats built range=%s users=%d growth=%.1f",
            window.time_range.value,
            snapshot["total_users"],
            snapshot.growth_percentage,
        )
        return DashboardStatsResponse(
            total_users=snapshot["total_users"],
            total_teachers=snapshot["total_teachers"],
            total_students=snapshot["total_students"],
            total_classes=snapshot["total_classes"],
            active_classes=snapshot["active_classes"],
            total_exams=snapshot["total_exams"],
            active_exams=snapshot["active_exams"],
            pending_exams=snapshot["pending_exams"],
            total_admins=snapshot["total_admins"],
            active_users=snapshot["active_users"],
            new_users=snapshot["new_users"],
            user_growth_percentage=snapshot.growth_percentage,
            user_growth=[
                UserGrowthPoint(
                    date=point.label,
                    students=point.values["students"],
                    teachers=point.values["teachers"],
                )
                for point in user_growth
            ],
            exam_distribution=[
                ExamDistributionItem(name=group.key or "Unknown", value=group.count)
                for group in snapshot.exam_distribution
            ],
            class_status=[
                ClassStatusItem(status=group.key or "unknown", count=group.count)
                for group in snapshot.class_status
            ],
            system=self._system_health(results["database_ok"]),
            recent_activities=[_to_activity(entry) for entry in results["activities"]],
            time_range=window.time_range.value,
            generated_at=now,
        )

    def _system_health(self, database_ok: bool) -> SystemHealth:
        uptime = max(0.0, self._clock() - self._started_at)
        return SystemHealth(
            status="Good" if database_ok else "Poor",
            uptime=f"{uptime:.2f}",
            web_server=self._settings.system_web_server,
            database=self._settings.system_database,
            storage=self._settings.system_storage,
        )


def _to_activity(entry: dict[str, Any]) -> RecentActivity:
    user = entry.get("admin_name") or "System"
    action = entry.get("action") or ""
    timestamp: datetime | None = entry.get("timestamp")
    return RecentActivity(
        id=str(entry["id"]),
        type=action,
        description=f"{user} {action} {entry.get('entity') or ''}".strip(),
        user=user,
        time=f"{timestamp:%H:%M}" if timestamp is not None else "",
    )
