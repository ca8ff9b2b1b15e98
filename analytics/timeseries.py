"""
analytics/timeseries.py

Cumulative time series for trend charts.

Each point's value for a series is a running total: the number of records in
that series created strictly before the bucket's end boundary. It is not the
number of new arrivals inside the bucket, so every series is non-decreasing
from oldest to newest point when the underlying data is static.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Mapping

from analytics.metrics import gather_all_or_nothing
from analytics.time_window import ResolvedWindow
from db.repositories.entity_store import EntityStore
from db.repositories.types import Collection, EntityQuery

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeSeriesPoint:
    label: str
    values: Mapping[str, int] = field(default_factory=dict)


class TimeSeriesBuilder:
    """
    Produces exactly ``window.bucket_count`` points in chronological order.

    Parameters
    ----------
    store:
        Entity store capability.
    collection:
        Collection the series are counted over.
    time_field:
        Creation-time field compared against bucket boundaries.
    """

    def __init__(
        self,
        store: EntityStore,
        *,
        collection: Collection = Collection.USERS,
        time_field: str = "created_at",
    ) -> None:
        self._store = store
        self._collection = collection
        self._time_field = time_field

    async def build(
        self,
        window: ResolvedWindow,
        series: Mapping[str, EntityQuery],
    ) -> list[TimeSeriesPoint]:
        buckets = window.buckets()
        queries: dict[str, Awaitable[int]] = {}
        for index, bucket in enumerate(buckets):
            for name, query in series.items():
                queries[f"{index}:{name}"] = self._store.count(
                    self._collection,
                    query.within(self._time_field, lt=bucket.end),
                )

        counts = await gather_all_or_nothing(queries, what="Time series")
        points = [
            TimeSeriesPoint(
                label=bucket.label,
                values={name: counts[f"{index}:{name}"] for name in series},
            )
            for index, bucket in enumerate(buckets)
        ]
        logger.debug(
            "Built %d-point %s series for %s over %s",
            len(points),
            window.bucket_unit.value,
            ", ".join(series),
            self._collection.value,
        )
        return points
