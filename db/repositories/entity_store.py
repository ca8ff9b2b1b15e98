"""
Read-side access to the platform's entity collections.

:class:`EntityStore` is the capability the analytics and report layers depend
on: count, group-by count, average and bounded find over a named collection.
:class:`SQLAlchemyEntityStore` is the PostgreSQL-backed implementation.

Every call opens its own short-lived session, so callers may issue many
calls concurrently (``asyncio.gather``) without sharing a session across
tasks. No transactional guarantee spans multiple calls. Wrap the store in
:class:`BoundedEntityStore` to keep the number of sessions open at once
within the connection pool.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from sqlalchemy import ColumnElement, Select, func, inspect as sa_inspect, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from db.models import Admin, AuditLog, Exam, ExamAttempt, ExamSession, ProctorClass, User
from db.repositories.errors import EntityStoreError, UnknownFieldError
from db.repositories.types import Collection, EntityQuery, GroupCount

logger = logging.getLogger(__name__)


class EntityStore(Protocol):
    async def count(self, collection: Collection, query: EntityQuery | None = None) -> int:
        ...

    async def group_count(
        self,
        collection: Collection,
        field: str,
        query: EntityQuery | None = None,
        *,
        limit: int | None = None,
    ) -> list[GroupCount]:
        ...

    async def average(
        self,
        collection: Collection,
        field: str,
        query: EntityQuery | None = None,
    ) -> float | None:
        ...

    async def find(
        self,
        collection: Collection,
        query: EntityQuery | None = None,
        *,
        order_by: str = "created_at",
        descending: bool = True,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        ...

    async def ping(self) -> bool:
        ...


_MODELS: dict[Collection, type] = {
    Collection.USERS: User,
    Collection.CLASSES: ProctorClass,
    Collection.EXAMS: Exam,
    Collection.EXAM_ATTEMPTS: ExamAttempt,
    Collection.EXAM_SESSIONS: ExamSession,
    Collection.ADMINS: Admin,
    Collection.AUDIT_LOGS: AuditLog,
}


def _column(model: type, field: str) -> Any:
    mapper = sa_inspect(model)
    if field not in mapper.column_attrs:
        raise UnknownFieldError(f"{model.__tablename__} has no field {field!r}")
    return getattr(model, field)


def _criteria(model: type, query: EntityQuery | None) -> list[ColumnElement[bool]]:
    if query is None:
        return []

    clauses: list[ColumnElement[bool]] = []
    for field, value in query.equals.items():
        column = _column(model, field)
        clauses.append(column.is_(None) if value is None else column == value)
    for field, values in query.one_of.items():
        column = _column(model, field)
        present = [value for value in values if value is not None]
        clause = column.in_(present)
        # a None member also matches missing values
        if len(present) < len(values):
            clause = or_(column.is_(None), clause)
        clauses.append(clause)
    for bound in query.ranges:
        column = _column(model, bound.field)
        if bound.gte is not None:
            clauses.append(column >= bound.gte)
        if bound.lt is not None:
            clauses.append(column < bound.lt)
        if bound.lte is not None:
            clauses.append(column <= bound.lte)
    for field in query.non_empty:
        clauses.append(func.jsonb_array_length(_column(model, field)) > 0)
    return clauses


def _to_record(instance: object) -> dict[str, Any]:
    mapper = sa_inspect(type(instance))
    return {attr.key: getattr(instance, attr.key) for attr in mapper.column_attrs}


class SQLAlchemyEntityStore:
    """
    Entity store over the PostgreSQL tables mapped in :mod:`db.models`.

    Parameters
    ----------
    session_factory:
        Async session factory. Defaults to the process-wide factory from
        :mod:`db.session`.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        if session_factory is None:
            from db.session import get_session_factory

            self._session_factory = get_session_factory()
        else:
            self._session_factory = session_factory

    async def count(self, collection: Collection, query: EntityQuery | None = None) -> int:
        model = _MODELS[collection]
        stmt = select(func.count()).select_from(model).where(*_criteria(model, query))
        result = await self._scalar(stmt, collection)
        total = int(result or 0)
        logger.debug("count collection=%s query=%r → %d", collection.value, query, total)
        return total

    async def group_count(
        self,
        collection: Collection,
        field: str,
        query: EntityQuery | None = None,
        *,
        limit: int | None = None,
    ) -> list[GroupCount]:
        model = _MODELS[collection]
        column = _column(model, field)
        count_expr = func.count().label("count")
        stmt = (
            select(column, count_expr)
            .where(*_criteria(model, query))
            .group_by(column)
            .order_by(count_expr.desc(), column)
        )
        if limit is not None:
            stmt = stmt.limit(max(1, limit))

        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as exc:
            raise EntityStoreError(f"group_count failed on {collection.value}.{field}") from exc

        return [GroupCount(key=row[0], count=int(row[1])) for row in rows]

    async def average(
        self,
        collection: Collection,
        field: str,
        query: EntityQuery | None = None,
    ) -> float | None:
        model = _MODELS[collection]
        stmt = select(func.avg(_column(model, field))).where(*_criteria(model, query))
        result = await self._scalar(stmt, collection)
        return float(result) if result is not None else None

    async def find(
        self,
        collection: Collection,
        query: EntityQuery | None = None,
        *,
        order_by: str = "created_at",
        descending: bool = True,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        model = _MODELS[collection]
        order_column = _column(model, order_by)
        stmt: Select[Any] = select(model).where(*_criteria(model, query)).order_by(
            order_column.desc() if descending else order_column.asc()
        )
        if limit is not None:
            stmt = stmt.limit(max(1, limit))

        try:
            async with self._session_factory() as session:
                instances = (await session.scalars(stmt)).all()
        except SQLAlchemyError as exc:
            raise EntityStoreError(f"find failed on {collection.value}") from exc

        return [_to_record(instance) for instance in instances]

    async def ping(self) -> bool:
        try:
            async with self._session_factory() as session:
                await session.execute(select(1))
        except (SQLAlchemyError, OSError):
            logger.warning("Entity store ping failed", exc_info=True)
            return False
        return True

    async def _scalar(self, stmt: Select[Any], collection: Collection) -> Any:
        try:
            async with self._session_factory() as session:
                return await session.scalar(stmt)
        except SQLAlchemyError as exc:
            raise EntityStoreError(f"query failed on {collection.value}") from exc


class BoundedEntityStore:
    """
    Caps how many calls into *store* run at the same time.

    Fan-out callers still gather freely; calls beyond ``max_concurrency``
    wait on a semaphore instead of queueing for a pooled connection and
    timing out there. Size it to the connection pool.
    """

    def __init__(self, store: EntityStore, *, max_concurrency: int) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._store = store
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def count(self, collection: Collection, query: EntityQuery | None = None) -> int:
        async with self._semaphore:
            return await self._store.count(collection, query)

    async def group_count(
        self,
        collection: Collection,
        field: str,
        query: EntityQuery | None = None,
        *,
        limit: int | None = None,
    ) -> list[GroupCount]:
        async with self._semaphore:
            return await self._store.group_count(collection, field, query, limit=limit)

    async def average(
        self,
        collection: Collection,
        field: str,
        query: EntityQuery | None = None,
    ) -> float | None:
        async with self._semaphore:
            return await self._store.average(collection, field, query)

    async def find(
        self,
        collection: Collection,
        query: EntityQuery | None = None,
        *,
        order_by: str = "created_at",
        descending: bool = True,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        async with self._semaphore:
            return await self._store.find(
                collection,
                query,
                order_by=order_by,
                descending=descending,
                limit=limit,
            )

    async def ping(self) -> bool:
        async with self._semaphore:
            return await self._store.ping()
