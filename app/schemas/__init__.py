"""
app/schemas package marker.
"""

from app.schemas.dashboard import (
    ClassStatusItem,
    DashboardStatsResponse,
    ExamDistributionItem,
    RecentActivity,
    SystemHealth,
    UserGrowthPoint,
)
from app.schemas.reports import (
    ReportAcceptedResponse,
    ReportListResponse,
    ReportStatusResponse,
    ReportSubmitRequest,
)

__all__ = [
    "ClassStatusItem",
    "DashboardStatsResponse",
    "ExamDistributionItem",
    "RecentActivity",
    "ReportAcceptedResponse",
    "ReportListResponse",
    "ReportStatusResponse",
    "ReportSubmitRequest",
    "SystemHealth",
    "UserGrowthPoint",
]
