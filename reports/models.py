"""
reports/models.py

Report job domain types and the job state machine.

Lifecycle
---------
::

    pending ──claim──▶ generating ──success──▶ completed
       │                    └──────failure──▶ failed
       └──dispatch failure / stale sweep────▶ failed

There are no backward transitions. ``completed`` and ``failed`` are terminal:
once a job reaches either, its ``data`` and ``error`` never change.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ReportType(str, Enum):
    USER = "user"
    CLASS = "class"
    EXAM = "exam"
    SYSTEM = "system"
    VIOLATION = "violation"


class ReportStatus(str, Enum):
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES: frozenset[ReportStatus] = frozenset(
    {ReportStatus.COMPLETED, ReportStatus.FAILED}
)

ALLOWED_TRANSITIONS: dict[ReportStatus, frozenset[ReportStatus]] = {
    ReportStatus.PENDING: frozenset({ReportStatus.GENERATING, ReportStatus.FAILED}),
    ReportStatus.GENERATING: frozenset({ReportStatus.COMPLETED, ReportStatus.FAILED}),
    ReportStatus.COMPLETED: frozenset(),
    ReportStatus.FAILED: frozenset(),
}


class InvalidReportTransitionError(RuntimeError):
    """Raised when a job is asked to move along an edge the lifecycle does not have."""


def sources_for(target: ReportStatus) -> frozenset[ReportStatus]:
    """
    Return every status from which *target* may be entered.

    Raises :class:`InvalidReportTransitionError` when no edge leads to *target*.
    """
    sources = frozenset(
        source for source, targets in ALLOWED_TRANSITIONS.items() if target in targets
    )
    if not sources:
        raise InvalidReportTransitionError(f"No report job may move to {target.value!r}.")
    return sources


@dataclass(frozen=True)
class ReportJob:
    """
    Snapshot of one persisted report job.

    ``type`` holds the submitted string as-is; it is not guaranteed to be a
    :class:`ReportType` value.
    """

    id: uuid.UUID
    type: str
    status: ReportStatus
    created_at: datetime
    title: str | None = None
    parameters: dict[str, Any] = field(default_factory=dict)
    start_date: datetime | None = None
    end_date: datetime | None = None
    data: dict[str, Any] | None = None
    error: str | None = None
    generated_by: uuid.UUID | None = None
    started_at: datetime | None = None
    generated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def report_type(self) -> ReportType | None:
        try:
            return ReportType(self.type)
        except ValueError:
            return None
