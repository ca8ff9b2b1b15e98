"""
Repository-layer exceptions for entity store and report job persistence.
"""

from __future__ import annotations


class RepositoryError(Exception):
    """Base exception for persistence failures."""


class EntityStoreError(RepositoryError):
    """Raised when a count, aggregate or find against the entity store fails."""


class UnknownFieldError(EntityStoreError):
    """Raised when a query references a field the collection does not have."""


class ReportPersistenceError(RepositoryError):
    """Raised when a report job record cannot be written or read."""
