"""
Filtering, Rollup and KPI Engines
"""
from .attendance import AttendanceEngine, compute_attendance, sundays_in_month
from .filters import FilterContext, FilterScope, coerce_date
from .kpi import TalentKPIEngine, achievement_percent, compute_kpi, is_achieved
from .rollups import BusinessRollupEngine, build_business_rollups, checklist_progress, half_up

__all__ = [
    "AttendanceEngine",
    "compute_attendance",
    "sundays_in_month",
    "FilterContext",
    "FilterScope",
    "coerce_date",
    "TalentKPIEngine",
    "achievement_percent",
    "compute_kpi",
    "is_achieved",
    "BusinessRollupEngine",
    "build_business_rollups",
    "checklist_progress",
    "half_up",
]
