"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.admin import Admin, AuditLog
from db.models.exam import Exam, ExamAttempt, ExamSession
from db.models.proctor_class import ProctorClass
from db.models.report import Report
from db.models.user import User

__all__ = [
    "Admin",
    "AuditLog",
    "Exam",
    "ExamAttempt",
    "ExamSession",
    "ProctorClass",
    "Report",
    "User",
]
