"""
Repository layer exports.
"""

from db.repositories.entity_store import BoundedEntityStore, EntityStore, SQLAlchemyEntityStore
from db.repositories.errors import (
    EntityStoreError,
    ReportPersistenceError,
    RepositoryError,
    UnknownFieldError,
)
from db.repositories.report_repository import ReportRepository, SQLAlchemyReportRepository
from db.repositories.types import Collection, EntityQuery, FieldRange, GroupCount

__all__ = [
    "BoundedEntityStore",
    "Collection",
    "EntityQuery",
    "EntityStore",
    "EntityStoreError",
    "FieldRange",
    "GroupCount",
    "ReportPersistenceError",
    "ReportRepository",
    "RepositoryError",
    "SQLAlchemyEntityStore",
    "SQLAlchemyReportRepository",
    "UnknownFieldError",
]
