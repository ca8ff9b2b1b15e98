"""
reports/generators.py

One generator per :class:`~reports.models.ReportType`.

Each generator receives a :class:`ReportContext` (parsed parameters, the
entity store and the detail-row cap) and returns a JSON-ready payload:

    <detail rows>   raw matched records, capped at ``row_limit``
    statistics      counts grouped by category (role, status, subject, ...)
    truncated       True when the detail rows were capped
    generatedAt     ISO timestamp of generation

Statistics are always computed over the full match, never over the capped
rows. Date ranges are inclusive at both ends. Generators only read; any
exception they raise is captured by the engine into the job's ``error``.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from db.repositories.entity_store import EntityStore
from db.repositories.types import Collection, EntityQuery, GroupCount
from reports.models import ReportJob, ReportType

logger = logging.getLogger(__name__)

_USER_FIELDS = ("id", "name", "email", "role", "status", "created_at", "last_login")
_CLASS_FIELDS = ("id", "class_name", "class_code", "status", "teacher_id", "student_count", "created_at")
_EXAM_FIELDS = ("id", "title", "subject", "status", "class_id", "created_by", "average_score", "created_at")
_ATTEMPT_FIELDS = ("id", "exam_id", "student_id", "score", "submitted_at")
_SESSION_FIELDS = ("id", "exam_id", "student_id", "violations", "created_at")

# users without a status are active accounts
_DEFAULT_USER_STATUS = "active"


class ReportParameters(BaseModel):
    """
    Generator parameters as submitted by the console (camelCase on the wire).

    Unknown keys are ignored. Naive datetimes are taken as UTC.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    start_date: datetime | None = None
    end_date: datetime | None = None
    role: str | None = None
    status: str | None = None
    class_id: uuid.UUID | None = None
    teacher_id: uuid.UUID | None = None
    exam_id: uuid.UUID | None = None
    student_id: uuid.UUID | None = None

    @field_validator("start_date", "end_date")
    @classmethod
    def assume_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @classmethod
    def from_job(cls, job: ReportJob) -> ReportParameters:
        """
        Parse the job's ``parameters``; the job-level start/end dates fill in
        when the parameters carry no range of their own.
        """
        params = cls.model_validate(job.parameters or {})
        fallback: dict[str, Any] = {}
        if params.start_date is None and job.start_date is not None:
            fallback["start_date"] = _as_utc(job.start_date)
        if params.end_date is None and job.end_date is not None:
            fallback["end_date"] = _as_utc(job.end_date)
        return params.model_copy(update=fallback) if fallback else params

    def date_range(self, field_name: str = "created_at") -> EntityQuery:
        return EntityQuery().within(field_name, gte=self.start_date, lte=self.end_date)


@dataclass(frozen=True)
class ReportContext:
    parameters: ReportParameters
    store: EntityStore
    row_limit: int = 100
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


ReportGenerator = Callable[[ReportContext], Awaitable[dict[str, Any]]]


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _project(record: dict[str, Any], fields: Iterable[str]) -> dict[str, Any]:
    return {name: record.get(name) for name in fields}


def _count_map(groups: list[GroupCount], *, missing: str = "unknown") -> dict[str, int]:
    counts: dict[str, int] = {}
    for group in groups:
        key = missing if group.key is None else str(group.key)
        counts[key] = counts.get(key, 0) + group.count
    return counts


async def generate_user_report(ctx: ReportContext) -> dict[str, Any]:
    params, store = ctx.parameters, ctx.store
    query = params.date_range()
    if params.role:
        query = query.where(role=params.role)
    if params.status == _DEFAULT_USER_STATUS:
        query = query.where_in("status", (_DEFAULT_USER_STATUS, None))
    elif params.status:
        query = query.where(status=params.status)

    total, by_role, by_status, users = await asyncio.gather(
        store.count(Collection.USERS, query),
        store.group_count(Collection.USERS, "role", query),
        store.group_count(Collection.USERS, "status", query),
        store.find(Collection.USERS, query, limit=ctx.row_limit),
    )
    return {
        "users": [_project(user, _USER_FIELDS) for user in users],
        "statistics": {
            "total": total,
            "byRole": _count_map(by_role),
            "byStatus": _count_map(by_status, missing=_DEFAULT_USER_STATUS),
            "growth": {},
        },
        "truncated": total > len(users),
        "generatedAt": ctx.now.isoformat(),
    }


async def generate_class_report(ctx: ReportContext) -> dict[str, Any]:
    params, store = ctx.parameters, ctx.store
    query = params.date_range()
    if params.status:
        query = query.where(status=params.status)
    if params.teacher_id:
        query = query.where(teacher_id=params.teacher_id)

    total, by_status, average_size, classes = await asyncio.gather(
        store.count(Collection.CLASSES, query),
        store.group_count(Collection.CLASSES, "status", query),
        store.average(Collection.CLASSES, "student_count", query),
        store.find(Collection.CLASSES, query, limit=ctx.row_limit),
    )
    return {
        "classes": [_project(item, _CLASS_FIELDS) for item in classes],
        "statistics": {
            "total": total,
            "byStatus": _count_map(by_status),
            "averageClassSize": round(average_size or 0.0, 1),
        },
        "truncated": total > len(classes),
        "generatedAt": ctx.now.isoformat(),
    }


async def generate_exam_report(ctx: ReportContext) -> dict[str, Any]:
    params, store = ctx.parameters, ctx.store
    query = params.date_range()
    if params.class_id:
        query = query.where(class_id=params.class_id)
    if params.status:
        query = query.where(status=params.status)

    exams, by_status, by_subject = await asyncio.gather(
        store.find(Collection.EXAMS, query),
        store.group_count(Collection.EXAMS, "status", query),
        store.group_count(Collection.EXAMS, "subject", query),
    )

    total_attempts = 0
    average_score: float | None = None
    attempts: list[dict[str, Any]] = []
    if exams:
        attempt_query = EntityQuery().where_in("exam_id", [exam["id"] for exam in exams])
        total_attempts, average_score, attempts = await asyncio.gather(
            store.count(Collection.EXAM_ATTEMPTS, attempt_query),
            store.average(Collection.EXAM_ATTEMPTS, "score", attempt_query),
            store.find(Collection.EXAM_ATTEMPTS, attempt_query, limit=ctx.row_limit),
        )

    return {
        "exams": [_project(exam, _EXAM_FIELDS) for exam in exams[: ctx.row_limit]],
        "attempts": [_project(attempt, _ATTEMPT_FIELDS) for attempt in attempts],
        "statistics": {
            "totalExams": len(exams),
            "totalAttempts": total_attempts,
            "averageScore": average_score or 0.0,
            "byStatus": _count_map(by_status),
            "bySubject": _count_map(by_subject),
        },
        "truncated": len(exams) > ctx.row_limit or total_attempts > len(attempts),
        "generatedAt": ctx.now.isoformat(),
    }


async def generate_system_report(ctx: ReportContext) -> dict[str, Any]:
    params, store = ctx.parameters, ctx.store
    audit_query = params.date_range("timestamp")

    collections = list(Collection)
    results = await asyncio.gather(
        *(store.count(collection) for collection in collections),
        store.count(Collection.ADMINS, EntityQuery().where(is_active=True)),
        store.count(Collection.AUDIT_LOGS, audit_query),
        store.group_count(Collection.AUDIT_LOGS, "action", audit_query),
        store.ping(),
    )
    collection_counts = results[: len(collections)]
    active_admins, audit_events, by_action, database_ok = results[len(collections):]

    return {
        "collections": {
            collection.value: count
            for collection, count in zip(collections, collection_counts)
        },
        "statistics": {
            "activeAdmins": active_admins,
            "auditEvents": audit_events,
            "byAction": _count_map(by_action),
        },
        "database": "connected" if database_ok else "disconnected",
        "truncated": False,
        "generatedAt": ctx.now.isoformat(),
    }


async def generate_violation_report(ctx: ReportContext) -> dict[str, Any]:
    params, store = ctx.parameters, ctx.store
    query = params.date_range().with_non_empty("violations")
    if params.exam_id:
        query = query.where(exam_id=params.exam_id)
    if params.student_id:
        query = query.where(student_id=params.student_id)

    total, by_exam, by_student, sessions = await asyncio.gather(
        store.count(Collection.EXAM_SESSIONS, query),
        store.group_count(Collection.EXAM_SESSIONS, "exam_id", query),
        store.group_count(Collection.EXAM_SESSIONS, "student_id", query),
        store.find(Collection.EXAM_SESSIONS, query, limit=ctx.row_limit),
    )
    return {
        "sessions": [_project(session, _SESSION_FIELDS) for session in sessions],
        "statistics": {
            "totalSessions": total,
            "flaggedStudents": len(by_student),
            "byExam": _count_map(by_exam),
        },
        "truncated": total > len(sessions),
        "generatedAt": ctx.now.isoformat(),
    }


GENERATORS: dict[ReportType, ReportGenerator] = {
    ReportType.USER: generate_user_report,
    ReportType.CLASS: generate_class_report,
    ReportType.EXAM: generate_exam_report,
    ReportType.SYSTEM: generate_system_report,
    ReportType.VIOLATION: generate_violation_report,
}

_unhandled = set(ReportType) - set(GENERATORS)
if _unhandled:
    raise RuntimeError(f"No report generator registered for: {sorted(t.value for t in _unhandled)}")
