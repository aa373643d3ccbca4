"""
Record and Result Models
"""
from .records import (
    BUSINESS_ENTITIES,
    EMPLOYEE_ENTITIES,
    ENTITY_MODELS,
    TALENT_ENTITIES,
    TENANT_FIELD,
    Attendance,
    AttendanceStatus,
    ContentPosting,
    ContentTarget,
    DailyTarget,
    Employee,
    EmployeeStatus,
    EntityType,
    Holiday,
    KPITarget,
    Product,
    Record,
    Sale,
    Shop,
    Talent,
    TalentPosting,
    TalentStatus,
    Tenant,
)
from .results import (
    AggregationResult,
    AttendanceCounts,
    AttendanceDashboardResult,
    ChecklistProgress,
    DataCompleteness,
    GlobalTotals,
    KPIAchievement,
    LeaderboardRow,
    ProductRollup,
    ShopRollup,
    TalentDashboardResult,
    TalentOverview,
)
from .snapshot import CollectionSnapshot

__all__ = [
    "BUSINESS_ENTITIES",
    "EMPLOYEE_ENTITIES",
    "ENTITY_MODELS",
    "TALENT_ENTITIES",
    "TENANT_FIELD",
    "Attendance",
    "AttendanceStatus",
    "ContentPosting",
    "ContentTarget",
    "DailyTarget",
    "Employee",
    "EmployeeStatus",
    "EntityType",
    "Holiday",
    "KPITarget",
    "Product",
    "Record",
    "Sale",
    "Shop",
    "Talent",
    "TalentPosting",
    "TalentStatus",
    "Tenant",
    "AggregationResult",
    "AttendanceCounts",
    "AttendanceDashboardResult",
    "ChecklistProgress",
    "DataCompleteness",
    "GlobalTotals",
    "KPIAchievement",
    "LeaderboardRow",
    "ProductRollup",
    "ShopRollup",
    "TalentDashboardResult",
    "TalentOverview",
    "CollectionSnapshot",
]
