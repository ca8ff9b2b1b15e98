"""
db/models/user.py

Platform user (student or teacher) as read by the analytics layer.

User records are owned by the account service; this model maps only the
columns the dashboard and report generators count, group and list.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class UserRole:
    STUDENT = "student"
    TEACHER = "teacher"


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="student, teacher",
    )
    status: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
        comment="active, suspended, deleted; NULL is treated as active",
    )
    last_login: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_users_role", "role"),
        Index("ix_users_created_at", "created_at"),
        Index("ix_users_role_created_at", "role", "created_at"),
        Index("ix_users_last_login", "last_login"),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} role={self.role!r}>"
