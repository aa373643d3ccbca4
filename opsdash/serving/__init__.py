"""
Dashboard Serving Module
"""
from .views import (
    AttendanceDashboardView,
    BusinessDashboardView,
    ContentChecklistView,
    DashboardView,
    TalentDashboardView,
)

__all__ = [
    "AttendanceDashboardView",
    "BusinessDashboardView",
    "ContentChecklistView",
    "DashboardView",
    "TalentDashboardView",
]
