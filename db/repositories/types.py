"""
Typed query DTOs shared by the entity store and its callers.

An :class:`EntityQuery` is a small immutable predicate over one collection.
It is deliberately limited to what the dashboard and report generators need
(equality, membership, ranges and non-empty array checks) so that every
backend can evaluate it without a query language.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping, Sequence


class Collection(str, Enum):
    USERS = "users"
    CLASSES = "classes"
    EXAMS = "exams"
    EXAM_ATTEMPTS = "exam_attempts"
    EXAM_SESSIONS = "exam_sessions"
    ADMINS = "admins"
    AUDIT_LOGS = "audit_logs"


@dataclass(frozen=True)
class FieldRange:
    """
    Bounds on one field. ``gte`` and ``lte`` are inclusive, ``lt`` exclusive.
    """

    field: str
    gte: Any = None
    lt: Any = None
    lte: Any = None


@dataclass(frozen=True)
class EntityQuery:
    equals: Mapping[str, Any] = field(default_factory=dict)
    one_of: Mapping[str, Sequence[Any]] = field(default_factory=dict)
    ranges: tuple[FieldRange, ...] = ()
    non_empty: tuple[str, ...] = ()

    def where(self, **equals: Any) -> EntityQuery:
        return replace(self, equals={**self.equals, **equals})

    def where_in(self, field_name: str, values: Sequence[Any]) -> EntityQuery:
        return replace(self, one_of={**self.one_of, field_name: tuple(values)})

    def within(
        self,
        field_name: str,
        *,
        gte: Any = None,
        lt: Any = None,
        lte: Any = None,
    ) -> EntityQuery:
        if gte is None and lt is None and lte is None:
            return self
        bound = FieldRange(field=field_name, gte=gte, lt=lt, lte=lte)
        return replace(self, ranges=(*self.ranges, bound))

    def with_non_empty(self, field_name: str) -> EntityQuery:
        return replace(self, non_empty=(*self.non_empty, field_name))


@dataclass(frozen=True)
class GroupCount:
    """
    One bucket of a group-by count. ``key`` is ``None`` for records missing the field.
    """

    key: Any
    count: int
