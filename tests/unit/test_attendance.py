"""
Unit Tests - Attendance Engine
"""
from datetime import date

import pytest

from opsdash.models.records import Attendance, AttendanceStatus, Employee, EmployeeStatus, EntityType
from opsdash.transformation.attendance import AttendanceEngine, compute_attendance, sundays_in_month
from opsdash.transformation.filters import FilterScope

from conftest import TENANT_A, make_doc

MARCH = FilterScope(date_start=date(2024, 3, 1), date_end=date(2024, 3, 31), group_field="employee_id")


@pytest.fixture
def engine(fixed_clock):
    return AttendanceEngine(clock=fixed_clock)


@pytest.fixture
def snapshot(build_snapshot, attendance_documents):
    return build_snapshot(TENANT_A, attendance_documents)


def marks(row):
    return row.present, row.sick, row.absent, row.leave


class TestAttendanceRecords:
    """Tests for the employee and attendance record models"""

    def test_legacy_labels_are_mapped(self):
        """Test Indonesian status labels parse to the English enums"""
        employee = Employee.model_validate(make_doc(TENANT_A, "E1", status="resign"))
        mark = Attendance.model_validate(make_doc(TENANT_A, "a-1", employeeId="E1", status=" sakit "))

        assert employee.status == EmployeeStatus.RESIGNED
        assert mark.status == AttendanceStatus.SICK.value

    def test_unknown_attendance_status_is_kept(self):
        """Test an unrecognised mark still parses so it can be reported"""
        mark = Attendance.model_validate(make_doc(TENANT_A, "a-1", employeeId="E1", status="Lembur"))

        assert mark.status == "LEMBUR"

    def test_blank_join_date(self):
        employee = Employee.model_validate(make_doc(TENANT_A, "E1", joinDate=""))

        assert employee.join_date is None


class TestSundaysInMonth:
    """Tests for sundays_in_month"""

    @pytest.mark.parametrize("year,month,expected", [
        (2024, 2, 4),
        (2024, 3, 5),
        (2024, 9, 5),
        (2026, 2, 4),
    ])
    def test_counts(self, year, month, expected):
        assert sundays_in_month(year, month) == expected


class TestAttendanceEngine:
    """Tests for AttendanceEngine"""

    def test_counts_within_range(self, engine, snapshot):
        """Test marks are counted per status inside the date range"""
        rows = {row.employee_id: row for row in engine.counts(snapshot, MARCH)}

        assert marks(rows["E1"]) == (2, 1, 0, 0)
        assert marks(rows["E2"]) == (0, 0, 1, 0)
        assert marks(rows["E3"]) == (0, 0, 0, 0)

    def test_end_day_is_inclusive(self, engine, snapshot):
        """Test a late-evening mark on the last day is counted, the next midnight is not"""
        one_day = FilterScope(date_start=date(2024, 3, 31), date_end=date(2024, 3, 31), group_field="employee_id")

        row = engine.counts(snapshot, one_day)[0]

        assert row.employee_id == "E1"
        assert marks(row) == (1, 0, 0, 0)

    def test_unbounded_scope_counts_all_dated_marks(self, engine, snapshot):
        """Test undated marks and unknown statuses are never counted"""
        rows = {row.employee_id: row for row in engine.counts(snapshot)}

        assert marks(rows["E1"]) == (2, 1, 0, 1)
        assert marks(rows["E2"]) == (1, 0, 1, 0)
        assert rows["E1"].recorded == 4

    def test_rows_follow_roster_order(self, engine, snapshot):
        """Test every employee gets a row, resigned staff included"""
        assert [row.employee_id for row in engine.counts(snapshot, MARCH)] == ["E1", "E2", "E3"]

    def test_employee_filter(self, engine, snapshot):
        """Test the employee filter narrows the rows to one employee"""
        scope = FilterScope(
            date_start=date(2024, 3, 1),
            date_end=date(2024, 3, 31),
            group_id="E2",
            group_field="employee_id",
        )

        rows = engine.counts(snapshot, scope)

        assert [row.employee_id for row in rows] == ["E2"]
        assert marks(rows[0]) == (0, 0, 1, 0)

    def test_other_tenant_marks_ignored(self, engine, snapshot):
        """Test tenant B's mark for an E1 id does not reach tenant A's counts"""
        scope = FilterScope(date_start=date(2024, 3, 2), date_end=date(2024, 3, 2), group_field="employee_id")

        rows = engine.counts(snapshot, scope)

        assert all(row.recorded == 0 for row in rows)

    def test_days_off(self, engine, snapshot):
        """Test days off are the month's Sundays plus its holidays"""
        result = engine.build(snapshot, MARCH, period=(2024, 3))

        assert result.sundays == 5
        assert result.holidays == (date(2024, 3, 11), date(2024, 3, 29))
        assert result.days_off == 7

    def test_days_off_for_other_month(self, engine, snapshot):
        result = engine.build(snapshot, period=(2024, 2))

        assert result.days_off == 4 + 1

    def test_period_defaults_to_clock_month(self, engine, snapshot):
        """Test the days-off month follows the clock"""
        result = engine.build(snapshot)

        assert (result.year, result.month) == (2024, 3)
        assert result.days_off == 7

    def test_holiday_bucketed_in_analytics_timezone(self, engine, build_snapshot):
        """Test an aware holiday timestamp lands on its Jakarta calendar day"""
        snapshot = build_snapshot(TENANT_A, {
            EntityType.HOLIDAY: [make_doc(TENANT_A, "h-1", date="2024-03-31T20:00:00+00:00")],
        })

        assert engine.holidays_in_month(snapshot, 2024, 3) == ()
        assert engine.holidays_in_month(snapshot, 2024, 4) == (date(2024, 4, 1),)

    def test_total_employees_ignores_filter(self, engine, snapshot):
        """Test the headcount covers every employee whatever the filter"""
        scope = FilterScope(group_id="E1", group_field="employee_id")

        result = engine.build(snapshot, scope)

        assert result.total_employees == 3
        assert len(result.employees) == 1

    def test_completeness(self, engine, snapshot):
        """Test unknown employees and foreign records are reported"""
        completeness = engine.build(snapshot, MARCH).completeness

        assert completeness.unresolved_references == {"attendance": 1}
        assert completeness.foreign_tenant_records == 1
        assert not completeness.is_complete

    def test_failed_collection_reads_as_empty(self, engine, build_snapshot, attendance_documents):
        """Test a failed attendance collection yields zero counts, flagged"""
        documents = dict(attendance_documents)
        documents[EntityType.ATTENDANCE] = []

        result = engine.build(build_snapshot(TENANT_A, documents, failed=[EntityType.ATTENDANCE]), MARCH)

        assert all(row.recorded == 0 for row in result.employees)
        assert result.completeness.failed_collections == ("attendance",)

    def test_empty_snapshot(self, engine, build_snapshot):
        result = engine.build(build_snapshot(TENANT_A, {}), period=(2024, 3))

        assert result.total_employees == 0
        assert result.employees == ()
        assert result.days_off == 5
        assert result.completeness.is_complete

    def test_deterministic(self, engine, snapshot):
        """Test two recomputations over the same snapshot are equal"""
        assert engine.build(snapshot, MARCH) == engine.build(snapshot, MARCH)

    def test_compute_attendance(self, fixed_clock, snapshot):
        result = compute_attendance(snapshot, MARCH, clock=fixed_clock)

        assert result.for_employee("E1").present == 2
        assert result.for_employee("missing") is None

    def test_serialized_shape(self, engine, snapshot):
        """Test the view model serializes with camelCase keys"""
        payload = engine.build(snapshot, MARCH).model_dump(mode="json", by_alias=True)

        assert payload["totalEmployees"] == 3
        assert payload["daysOff"] == 7
        assert payload["employees"][0]["employeeId"] == "E1"
        assert payload["completeness"]["isComplete"] is False
