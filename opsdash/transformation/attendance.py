"""
Attendance Engine

Per-employee attendance counts over the filter scope, plus the monthly
days-off figure shown next to them.

- only PRESENT, SICK, ABSENT and LEAVE marks are counted; anything else and
  undated marks are ignored
- the date range is inclusive up to the end of ``date_end``
- days off for a month are its Sundays plus every holiday entry in it
"""

import calendar
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

import polars as pl
import structlog

from opsdash.config import get_settings
from opsdash.models.records import Attendance, AttendanceStatus, Employee, EntityType, Holiday
from opsdash.models.results import AttendanceCounts, AttendanceDashboardResult, DataCompleteness
from opsdash.models.snapshot import CollectionSnapshot
from .filters import FilterScope
from .kpi import Clock, Period, default_clock

logger = structlog.get_logger(__name__)

ATTENDANCE_SCHEMA = {"employee_id": pl.Utf8, "status": pl.Utf8}
COUNTED_STATUSES = [status.value for status in AttendanceStatus]


def sundays_in_month(year: int, month: int) -> int:
    _, days = calendar.monthrange(year, month)
    return sum(1 for day in range(1, days + 1) if date(year, month, day).weekday() == calendar.SUNDAY)


class AttendanceEngine:
    """
    Pure attendance computation over an employee snapshot.

    Example:
        engine = AttendanceEngine()
        result = engine.build(snapshot, FilterScope(date_start=date(2024, 3, 1), group_field="employee_id"))
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or default_clock
        self.tz = ZoneInfo(get_settings().analytics.timezone)

    def current_period(self) -> Period:
        now = self.clock()
        return now.year, now.month

    def counts(
        self,
        snapshot: CollectionSnapshot,
        scope: Optional[FilterScope] = None,
    ) -> Tuple[AttendanceCounts, ...]:
        """One row per employee in roster order, narrowed by the employee filter"""
        scope = scope or FilterScope(group_field="employee_id")
        employees: Sequence[Employee] = snapshot.scoped(EntityType.EMPLOYEE)[0]
        attendance: Sequence[Attendance] = snapshot.scoped(EntityType.ATTENDANCE)[0]

        by_employee = self._count_marks([a for a in attendance if scope.matches(a)])

        rows = []
        for employee in employees:
            if scope.group_id is not None and employee.id != scope.group_id:
                continue
            marks = by_employee.get(employee.id, {})
            rows.append(
                AttendanceCounts(
                    employee_id=employee.id,
                    name=employee.name,
                    present=marks.get(AttendanceStatus.PRESENT.value, 0),
                    sick=marks.get(AttendanceStatus.SICK.value, 0),
                    absent=marks.get(AttendanceStatus.ABSENT.value, 0),
                    leave=marks.get(AttendanceStatus.LEAVE.value, 0),
                )
            )
        return tuple(rows)

    def holidays_in_month(self, snapshot: CollectionSnapshot, year: int, month: int) -> Tuple[date, ...]:
        """Holiday dates falling in the month, in collection order, duplicates kept"""
        holidays: Sequence[Holiday] = snapshot.scoped(EntityType.HOLIDAY)[0]
        found = []
        for holiday in holidays:
            if holiday.date is None:
                continue
            day = self._local(holiday.date).date()
            if day.year == year and day.month == month:
                found.append(day)
        return tuple(found)

    def build(
        self,
        snapshot: CollectionSnapshot,
        scope: Optional[FilterScope] = None,
        period: Optional[Period] = None,
    ) -> AttendanceDashboardResult:
        """Counts, headcount and days off for one recompute"""
        year, month = period or self.current_period()
        sundays = sundays_in_month(year, month)
        holidays = self.holidays_in_month(snapshot, year, month)
        logger.debug("Computing attendance", year=year, month=month, holidays=len(holidays))
        return AttendanceDashboardResult(
            tenant_id=snapshot.tenant_id,
            year=year,
            month=month,
            total_employees=len(snapshot.scoped(EntityType.EMPLOYEE)[0]),
            sundays=sundays,
            holidays=holidays,
            days_off=sundays + len(holidays),
            employees=self.counts(snapshot, scope),
            completeness=self._completeness(snapshot),
        )

    def _local(self, when: datetime) -> datetime:
        return when.astimezone(self.tz) if when.tzinfo is not None else when

    def _count_marks(self, attendance: Sequence[Attendance]) -> Dict[str, Dict[str, int]]:
        rows: List[Tuple[str, str]] = [
            (a.employee_id, a.status)
            for a in attendance
            if a.date is not None and a.employee_id is not None
        ]
        frame = pl.DataFrame(
            {name: [row[i] for row in rows] for i, name in enumerate(ATTENDANCE_SCHEMA)},
            schema=ATTENDANCE_SCHEMA,
        )
        counted = (
            frame
            .filter(pl.col("status").is_in(COUNTED_STATUSES))
            .group_by(["employee_id", "status"])
            .agg(pl.len().alias("count"))
        )
        found: Dict[str, Dict[str, int]] = {}
        for row in counted.iter_rows(named=True):
            found.setdefault(row["employee_id"], {})[row["status"]] = int(row["count"])
        return found

    def _completeness(self, snapshot: CollectionSnapshot) -> DataCompleteness:
        foreign = 0
        for entity_type in (EntityType.EMPLOYEE, EntityType.ATTENDANCE, EntityType.HOLIDAY):
            foreign += snapshot.scoped(entity_type)[1]

        known = {e.id for e in snapshot.scoped(EntityType.EMPLOYEE)[0]}
        attendance = snapshot.scoped(EntityType.ATTENDANCE)[0]

        return DataCompleteness(
            failed_collections=snapshot.failed_names(),
            pending_collections=snapshot.pending_names(),
            unresolved_references={
                EntityType.ATTENDANCE.value: sum(1 for a in attendance if a.employee_id not in known),
            },
            foreign_tenant_records=foreign,
        )


def compute_attendance(
    snapshot: CollectionSnapshot,
    scope: Optional[FilterScope] = None,
    period: Optional[Period] = None,
    clock: Optional[Clock] = None,
) -> AttendanceDashboardResult:
    """Convenience wrapper around ``AttendanceEngine.build``"""
    return AttendanceEngine(clock=clock).build(snapshot, scope, period)
