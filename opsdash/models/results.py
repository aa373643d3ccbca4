"""
Derived view models produced by the rollup and KPI engines.

All models are frozen and compare structurally, so two recomputations over the
same inputs are equal and serialize identically. ``model_dump(by_alias=True)``
yields the camelCase shape consumed by the presentation layer.
"""

from datetime import date
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


class ResultModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


class DataCompleteness(ResultModel):
    """
    Observability signal attached to every rollup.

    The rollups themselves stay fail-open (missing data reads as zero); this
    block tells a caller *why* a number may be lower than expected.
    """
    failed_collections: Tuple[str, ...] = ()
    pending_collections: Tuple[str, ...] = ()
    unresolved_references: Dict[str, int] = Field(default_factory=dict)
    foreign_tenant_records: int = 0

    @computed_field(alias="isComplete")
    @property
    def is_complete(self) -> bool:
        return not (
            self.failed_collections
            or self.pending_collections
            or any(self.unresolved_references.values())
            or self.foreign_tenant_records
        )


# =============================================================================
# BUSINESS ROLLUPS
# =============================================================================

class ProductRollup(ResultModel):
    product_id: str
    name: str
    units_sold: int = 0
    revenue: float = 0.0
    content_count: int = 0


class ShopRollup(ResultModel):
    shop_id: str
    name: str
    product_count: int = 0
    units_sold: int = 0
    revenue: float = 0.0
    content_count: int = 0
    products: Tuple[ProductRollup, ...] = ()


class GlobalTotals(ResultModel):
    shop_count: int = 0
    product_count: int = 0
    units_sold: int = 0
    revenue: float = 0.0
    content_count: int = 0


class AggregationResult(ResultModel):
    tenant_id: str
    shop_rollups: Tuple[ShopRollup, ...] = ()
    global_totals: GlobalTotals = Field(default_factory=GlobalTotals, alias="global")
    completeness: DataCompleteness = Field(default_factory=DataCompleteness)


class ChecklistProgress(ResultModel):
    """Completion of the daily content checklist"""
    tenant_id: str
    day: date
    total: int = 0
    done: int = 0
    pending: int = 0
    percent: int = 0


# =============================================================================
# TALENT ROLLUPS
# =============================================================================

class KPIAchievement(ResultModel):
    talent_id: str
    name: str
    target: int = 0
    actual: int = 0
    percent: int = 0
    is_achieved: bool = False


class LeaderboardRow(ResultModel):
    talent_id: str
    name: str
    posted: int = 0


class TalentOverview(ResultModel):
    total_talents: int = 0
    total_daily_targets: int = 0
    total_posted: int = 0
    completion_rate: int = 0
    leaderboard: Tuple[LeaderboardRow, ...] = ()


class TalentDashboardResult(ResultModel):
    tenant_id: str
    year: int
    month: int
    kpi: Tuple[KPIAchievement, ...] = ()
    overview: TalentOverview = Field(default_factory=TalentOverview)
    completeness: DataCompleteness = Field(default_factory=DataCompleteness)

    @property
    def achieved_count(self) -> int:
        return sum(1 for row in self.kpi if row.is_achieved)

    def for_talent(self, talent_id: str) -> Optional[KPIAchievement]:
        return next((row for row in self.kpi if row.talent_id == talent_id), None)


# =============================================================================
# ATTENDANCE ROLLUPS
# =============================================================================

class AttendanceCounts(ResultModel):
    """Attendance marks of one employee inside the filter scope"""
    employee_id: str
    name: str
    present: int = 0
    sick: int = 0
    absent: int = 0
    leave: int = 0

    @property
    def recorded(self) -> int:
        return self.present + self.sick + self.absent + self.leave


class AttendanceDashboardResult(ResultModel):
    tenant_id: str
    year: int
    month: int
    total_employees: int = 0
    sundays: int = 0
    holidays: Tuple[date, ...] = ()
    days_off: int = 0
    employees: Tuple[AttendanceCounts, ...] = ()
    completeness: DataCompleteness = Field(default_factory=DataCompleteness)

    def for_employee(self, employee_id: str) -> Optional[AttendanceCounts]:
        return next((row for row in self.employees if row.employee_id == employee_id), None)
