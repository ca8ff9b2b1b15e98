"""
app/services package marker.
"""

from app.services.dashboard_service import DashboardService
from app.services.report_service import ReportNotFoundError, ReportService

__all__ = [
    "DashboardService",
    "ReportNotFoundError",
    "ReportService",
]
