"""
tests/test_sql_statements.py

Compiles the SQL the PostgreSQL repositories emit, without a database.

Coverage
--------
- Entity query criteria: equality, IS NULL, IN with and without NULL,
  gte / lt / lte bounds, jsonb_array_length for non-empty arrays
- Unknown fields rejected before any SQL is built
- Report transitions: guarded UPDATE ... WHERE status IN (<allowed sources>)
  ... RETURNING for every reachable target
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql

from db.models import ExamSession, User
from db.repositories.entity_store import _criteria
from db.repositories.errors import UnknownFieldError
from db.repositories.report_repository import _transition_statement
from db.repositories.types import EntityQuery
from reports.models import InvalidReportTransitionError, ReportStatus

START = datetime(2026, 3, 1, tzinfo=timezone.utc)
END = datetime(2026, 3, 31, tzinfo=timezone.utc)


def _compile(stmt, **compile_kwargs):
    return stmt.compile(dialect=postgresql.dialect(), compile_kwargs=compile_kwargs)


def _count_sql(model, query: EntityQuery, **compile_kwargs) -> str:
    stmt = select(func.count()).select_from(model).where(*_criteria(model, query))
    return str(_compile(stmt, **compile_kwargs))


# ---------------------------------------------------------------------------
# Entity query criteria
# ---------------------------------------------------------------------------


class TestCriteria:
    def test_no_query_adds_no_clauses(self) -> None:
        assert _criteria(User, None) == []

    def test_equality_and_null(self) -> None:
        query = EntityQuery().where(role="student", status=None)

        sql = _count_sql(User, query, literal_binds=True)

        assert "users.role = 'student'" in sql
        assert "users.status IS NULL" in sql
        assert "users.status =" not in sql

    def test_membership(self) -> None:
        query = EntityQuery().where_in("role", ("student", "teacher"))

        sql = _count_sql(User, query, literal_binds=True)

        assert "users.role IN ('student', 'teacher')" in sql
        assert "IS NULL" not in sql

    def test_membership_with_none_matches_missing(self) -> None:
        query = EntityQuery().where_in("status", ("active", None))

        sql = _count_sql(User, query, literal_binds=True)

        assert "users.status IS NULL OR users.status IN ('active')" in sql

    def test_inclusive_range(self) -> None:
        query = EntityQuery().within("created_at", gte=START, lte=END)

        compiled = _compile(
            select(func.count()).select_from(User).where(*_criteria(User, query))
        )
        sql = str(compiled)

        assert "users.created_at >= " in sql
        assert "users.created_at <= " in sql
        assert "users.created_at < " not in sql
        assert set(compiled.params.values()) == {START, END}

    def test_exclusive_upper_bound(self) -> None:
        query = EntityQuery().within("created_at", lt=END)

        compiled = _compile(
            select(func.count()).select_from(User).where(*_criteria(User, query))
        )
        sql = str(compiled)

        assert "users.created_at < " in sql
        assert "users.created_at <= " not in sql
        assert list(compiled.params.values()) == [END]

    def test_non_empty_array(self) -> None:
        query = EntityQuery().with_non_empty("violations")

        sql = _count_sql(ExamSession, query)

        assert "jsonb_array_length(exam_sessions.violations) > " in sql

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(UnknownFieldError):
            _criteria(User, EntityQuery().where(favourite_colour="blue"))


# ---------------------------------------------------------------------------
# Report transitions
# ---------------------------------------------------------------------------


class TestTransitionStatement:
    @pytest.mark.parametrize(
        ("target", "sources"),
        [
            (ReportStatus.GENERATING, ["pending"]),
            (ReportStatus.COMPLETED, ["generating"]),
            (ReportStatus.FAILED, ["generating", "pending"]),
        ],
    )
    def test_guarded_by_source_status(self, target: ReportStatus, sources: list[str]) -> None:
        job_id = uuid.uuid4()

        compiled = _compile(_transition_statement(job_id, target))
        sql = str(compiled)

        assert sql.startswith("UPDATE reports SET ")
        assert "WHERE reports.id = " in sql
        assert "AND reports.status IN (" in sql
        assert "RETURNING " in sql
        assert compiled.params["status"] == target.value
        assert job_id in compiled.params.values()
        guards = [value for value in compiled.params.values() if isinstance(value, list)]
        assert guards == [sources]

    def test_values_are_written(self) -> None:
        data = {"statistics": {"total": 3}}

        compiled = _compile(
            _transition_statement(uuid.uuid4(), ReportStatus.COMPLETED, data=data, generated_at=END)
        )
        sql = str(compiled)

        assert "data=" in sql
        assert "generated_at=" in sql
        assert "updated_at=" in sql
        assert compiled.params["data"] == data
        assert compiled.params["generated_at"] == END

    def test_nothing_targets_pending(self) -> None:
        with pytest.raises(InvalidReportTransitionError):
            _transition_statement(uuid.uuid4(), ReportStatus.PENDING)
