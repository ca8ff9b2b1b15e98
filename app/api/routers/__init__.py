"""
app/api/routers package marker.
"""

from app.api.routers.dashboard_router import router as dashboard_router
from app.api.routers.report_router import router as report_router

__all__ = [
    "dashboard_router",
    "report_router",
]
