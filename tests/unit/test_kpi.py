"""
Unit Tests - Talent KPI Engine
"""
from datetime import date

import pytest

from opsdash.models.records import EntityType
from opsdash.transformation.filters import FilterScope
from opsdash.transformation.kpi import TalentKPIEngine, achievement_percent, compute_kpi, is_achieved

from conftest import TENANT_A, TENANT_B, make_doc


@pytest.fixture
def engine(fixed_clock):
    return TalentKPIEngine(clock=fixed_clock, include_inactive=True)


@pytest.fixture
def snapshot(build_snapshot, talent_documents):
    return build_snapshot(TENANT_A, talent_documents)


class TestAchievementPercent:
    """Tests for the achievement policy"""

    @pytest.mark.parametrize("actual", [0, 1, 5, 19, 20, 21, 100, 1000])
    @pytest.mark.parametrize("target", [0, 1, 3, 20, 250])
    def test_percent_is_clamped(self, actual, target):
        """Test 0 <= percent <= 100 and 100 whenever the target is met"""
        percent = achievement_percent(actual, target)

        assert 0 <= percent <= 100
        if actual >= target > 0:
            assert percent == 100

    def test_zero_target_policy(self):
        """Test no target counts any activity as full achievement"""
        assert achievement_percent(0, 0) == 0
        assert achievement_percent(1, 0) == 100
        assert achievement_percent(7, 0) == 100

    @pytest.mark.parametrize("actual,target,expected", [(1, 3, 33), (2, 3, 67), (1, 8, 13), (10, 20, 50)])
    def test_rounding(self, actual, target, expected):
        """Test display rounding is half-up"""
        assert achievement_percent(actual, target) == expected

    def test_achieved_requires_positive_target(self):
        """Test a zero target is never achieved"""
        assert is_achieved(20, 20)
        assert is_achieved(25, 20)
        assert not is_achieved(19, 20)
        assert not is_achieved(5, 0)
        assert not is_achieved(0, 0)


class TestTalentKPIEngine:
    """Tests for TalentKPIEngine"""

    def test_reference_scenario(self, engine, snapshot):
        """Test X over-achieves and Y is rewarded without a target"""
        rows = {row.talent_id: row for row in engine.achievements(snapshot)}

        x, y = rows["X"], rows["Y"]
        assert (x.target, x.actual, x.percent, x.is_achieved) == (20, 25, 100, True)
        assert (y.target, y.actual, y.percent, y.is_achieved) == (0, 5, 100, False)

    def test_month_names_resolve(self, engine, snapshot):
        """Test a target stored as 'Maret' counts for March"""
        z = engine.achievements(snapshot)[2]

        assert (z.talent_id, z.target, z.actual, z.percent) == ("Z", 5, 0, 0)

    def test_roster_order(self, engine, snapshot):
        """Test rows follow the roster, not achievement"""
        assert [row.talent_id for row in engine.achievements(snapshot)] == ["X", "Y", "Z"]

    def test_inactive_talents_can_be_excluded(self, fixed_clock, snapshot):
        """Test the roster drops INACTIVE talents when configured"""
        engine = TalentKPIEngine(clock=fixed_clock, include_inactive=False)

        assert [row.talent_id for row in engine.achievements(snapshot)] == ["X", "Y"]

    def test_explicit_period(self, engine, snapshot):
        """Test a past month can be inspected"""
        rows = {row.talent_id: row for row in engine.achievements(snapshot, period=(2024, 2))}

        assert (rows["X"].target, rows["X"].actual, rows["X"].percent) == (10, 4, 40)
        assert not rows["X"].is_achieved
        assert (rows["Y"].target, rows["Y"].actual, rows["Y"].percent) == (0, 0, 0)

    def test_period_defaults_to_clock(self, engine):
        """Test the clock decides the current month"""
        assert engine.current_period() == (2024, 3)

    def test_month_boundary_uses_analytics_timezone(self, engine, build_snapshot, talent_documents):
        """Test an aware UTC timestamp late on 29 Feb is already March in Jakarta"""
        talent_documents[EntityType.TALENT_POSTING] += [
            make_doc(TENANT_A, "utc", talentId="Y", postCount=1, links=["l"], date="2024-02-29T20:00:00+00:00"),
            make_doc(TENANT_A, "naive", talentId="Y", postCount=2, links=["l", "m"], date="2024-02-29T23:00:00"),
        ]

        rows = {row.talent_id: row for row in engine.achievements(build_snapshot(TENANT_A, talent_documents))}

        assert rows["Y"].actual == 6

    def test_first_target_row_wins(self, engine, build_snapshot, talent_documents):
        """Test a duplicate target row for the same month is ignored"""
        talent_documents[EntityType.KPI_TARGET].append(
            make_doc(TENANT_A, "dup", talentId="X", month=3, year=2024, targetCount=999)
        )

        x = engine.achievements(build_snapshot(TENANT_A, talent_documents))[0]

        assert x.target == 20

    def test_other_tenant_postings_are_ignored(self, engine, build_snapshot, talent_documents):
        """Test postings of another tenant never count toward actuals"""
        talent_documents[EntityType.TALENT_POSTING].append(
            make_doc(TENANT_B, "foreign", talentId="X", postCount=50, date="2024-03-03")
        )

        result = engine.build(build_snapshot(TENANT_A, talent_documents))

        assert result.for_talent("X").actual == 25
        assert result.completeness.foreign_tenant_records == 1

    def test_unresolved_posting_is_reported(self, engine, build_snapshot, talent_documents):
        """Test a posting for a deleted talent is counted, not raised"""
        talent_documents[EntityType.TALENT_POSTING].append(
            make_doc(TENANT_A, "orphan", talentId="gone", postCount=3, date="2024-03-03")
        )

        result = engine.build(build_snapshot(TENANT_A, talent_documents))

        assert [row.talent_id for row in result.kpi] == ["X", "Y", "Z"]
        assert result.completeness.unresolved_references["talent_posting"] == 1

    def test_empty_roster(self, engine, build_snapshot):
        """Test no talents yields no rows"""
        assert engine.achievements(build_snapshot(TENANT_A, {})) == ()

    def test_build(self, engine, snapshot):
        """Test the combined dashboard result"""
        result = engine.build(snapshot)

        assert (result.year, result.month) == (2024, 3)
        assert result.achieved_count == 1
        assert result.for_talent("Y").target == 0
        assert result.for_talent("nobody") is None
        assert result.completeness.is_complete

    def test_build_is_idempotent(self, engine, snapshot):
        """Test two builds serialize identically"""
        assert engine.build(snapshot).model_dump_json() == engine.build(snapshot).model_dump_json()

    def test_kpi_serialization(self, engine, snapshot):
        """Test KPI rows serialize with presentation field names"""
        row = engine.achievements(snapshot)[0].model_dump(by_alias=True)

        assert set(row) == {"talentId", "name", "target", "actual", "percent", "isAchieved"}

    def test_compute_kpi_wrapper(self, fixed_clock, snapshot):
        """Test the functional wrapper matches the engine"""
        rows = compute_kpi(snapshot, period=(2024, 3), clock=fixed_clock)

        assert rows[0].actual == 25


class TestTalentOverview:
    """Tests for the talent overview block"""

    def test_unfiltered_overview(self, engine, snapshot):
        """Test totals, completion rate and leaderboard without a filter"""
        overview = engine.overview(snapshot)

        assert overview.total_talents == 3
        assert overview.total_daily_targets == 16
        assert overview.total_posted == 34
        # 34 / 16 = 212.5%, not capped
        assert overview.completion_rate == 213
        assert [(row.talent_id, row.posted) for row in overview.leaderboard] == [("X", 29), ("Y", 5), ("Z", 0)]

    def test_scoped_overview(self, engine, snapshot):
        """Test the talent and date filter narrow every figure"""
        scope = FilterScope(date_start=date(2024, 3, 1), date_end=date(2024, 3, 31), group_id="X", group_field="talent_id")

        overview = engine.overview(snapshot, scope)

        assert overview.total_talents == 1
        assert (overview.total_daily_targets, overview.total_posted) == (8, 25)
        assert overview.completion_rate == 313
        assert [row.talent_id for row in overview.leaderboard] == ["X"]

    def test_no_daily_targets(self, engine, build_snapshot, talent_documents):
        """Test the completion rate is 0 when nothing was planned"""
        talent_documents[EntityType.DAILY_TARGET] = []

        overview = engine.overview(build_snapshot(TENANT_A, talent_documents))

        assert overview.completion_rate == 0

    def test_leaderboard_ties_keep_roster_order(self, engine, snapshot):
        """Test equal totals stay in roster order"""
        scope = FilterScope(date_start=date(2024, 4, 1), group_field="talent_id")

        overview = engine.overview(snapshot, scope)

        assert [row.talent_id for row in overview.leaderboard] == ["X", "Y", "Z"]
        assert overview.total_posted == 0
