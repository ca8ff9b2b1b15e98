"""
Schemas for the admin dashboard statistics endpoint.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserGrowthPoint(CamelModel):
    date: str
    students: int
    teachers: int


class ExamDistributionItem(CamelModel):
    name: str
    value: int


class ClassStatusItem(CamelModel):
    status: str
    count: int


class SystemHealth(CamelModel):
    status: Literal["Good", "Poor"]
    uptime: str
    web_server: str
    database: str
    storage: str


class RecentActivity(CamelModel):
    id: str
    type: str
    description: str
    user: str
    time: str


class DashboardStatsResponse(CamelModel):
    total_users: int
    total_teachers: int
    total_students: int
    total_classes: int
    active_classes: int
    total_exams: int
    active_exams: int
    pending_exams: int
    total_admins: int
    active_users: int
    new_users: int
    user_growth_percentage: float
    user_growth: list[UserGrowthPoint] = Field(default_factory=list)
    exam_distribution: list[ExamDistributionItem] = Field(default_factory=list)
    class_status: list[ClassStatusItem] = Field(default_factory=list)
    system: SystemHealth
    recent_activities: list[RecentActivity] = Field(default_factory=list)
    time_range: str
    generated_at: datetime
