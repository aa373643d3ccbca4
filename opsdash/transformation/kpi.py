"""
Talent KPI Engine

Joins the talent roster, the sparse monthly KPI targets and the posting log
into per-talent achievement for one calendar month, plus the talent overview
(daily-target completion and the posting leaderboard).

Achievement policy:
- a missing target row means target 0
- target 0 with any posting counts as 100%, with none as 0%
- the displayed percent is capped at 100; ``target`` and ``actual`` stay raw
- "achieved" requires a positive target
"""

from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

import polars as pl
import structlog

from opsdash.config import get_settings
from opsdash.models.records import (
    DailyTarget,
    EntityType,
    KPITarget,
    Talent,
    TalentPosting,
    TalentStatus,
)
from opsdash.models.results import (
    DataCompleteness,
    KPIAchievement,
    LeaderboardRow,
    TalentDashboardResult,
    TalentOverview,
)
from opsdash.models.snapshot import CollectionSnapshot
from .filters import FilterScope
from .rollups import half_up

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]
Period = Tuple[int, int]

POSTING_SCHEMA = {"talent_id": pl.Utf8, "post_count": pl.Int64, "year": pl.Int32, "month": pl.Int32}


def achievement_percent(actual: int, target: int) -> int:
    """Capped, rounded achievement percentage"""
    if target > 0:
        raw = actual / target * 100
    else:
        raw = 100.0 if actual > 0 else 0.0
    return half_up(min(raw, 100.0))


def is_achieved(actual: int, target: int) -> bool:
    return target > 0 and actual >= target


def default_clock() -> datetime:
    """Wall-clock now in the configured analytics timezone"""
    return datetime.now(ZoneInfo(get_settings().analytics.timezone))


class TalentKPIEngine:
    """
    Pure KPI computation over a talent snapshot.

    The reporting month defaults to the clock's current month; pass an
    explicit ``period=(year, month)`` to look at another month.

    Example:
        engine = TalentKPIEngine()
        rows = engine.achievements(snapshot, period=(2024, 1))
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        include_inactive: Optional[bool] = None,
    ):
        settings = get_settings()
        self.clock = clock or default_clock
        self.tz = ZoneInfo(settings.analytics.timezone)
        if include_inactive is None:
            include_inactive = settings.analytics.include_inactive_talents
        self.include_inactive = include_inactive

    def current_period(self) -> Period:
        now = self.clock()
        return now.year, now.month

    def roster(self, snapshot: CollectionSnapshot) -> List[Talent]:
        talents, _ = snapshot.scoped(EntityType.TALENT)
        if self.include_inactive:
            return list(talents)
        return [t for t in talents if t.status == TalentStatus.ACTIVE]

    def achievements(
        self,
        snapshot: CollectionSnapshot,
        period: Optional[Period] = None,
    ) -> Tuple[KPIAchievement, ...]:
        """KPI rows in roster order"""
        year, month = period or self.current_period()
        targets, _ = snapshot.scoped(EntityType.KPI_TARGET)
        postings, _ = snapshot.scoped(EntityType.TALENT_POSTING)

        target_by_talent = self._targets_for(targets, year, month)
        actual_by_talent = self._posted_in_month(postings, year, month)

        rows = []
        for talent in self.roster(snapshot):
            target = target_by_talent.get(talent.id, 0)
            actual = actual_by_talent.get(talent.id, 0)
            rows.append(
                KPIAchievement(
                    talent_id=talent.id,
                    name=talent.name,
                    target=target,
                    actual=actual,
                    percent=achievement_percent(actual, target),
                    is_achieved=is_achieved(actual, target),
                )
            )
        return tuple(rows)

    def overview(
        self,
        snapshot: CollectionSnapshot,
        scope: Optional[FilterScope] = None,
    ) -> TalentOverview:
        """
        Totals across the roster, narrowed by the talent filter scope.

        ``completion_rate`` is posted/planned and is deliberately not capped.
        """
        scope = scope or FilterScope(group_field="talent_id")
        roster = [t for t in self.roster(snapshot) if scope.group_id is None or t.id == scope.group_id]
        daily_targets, _ = snapshot.scoped(EntityType.DAILY_TARGET)
        postings, _ = snapshot.scoped(EntityType.TALENT_POSTING)

        scoped_targets: List[DailyTarget] = [t for t in daily_targets if scope.matches(t)]
        scoped_postings: List[TalentPosting] = [p for p in postings if scope.matches(p)]

        total_planned = sum(t.content_count for t in scoped_targets)
        total_posted = sum(p.post_count for p in scoped_postings)

        posted_by_talent: Dict[str, int] = {}
        for posting in scoped_postings:
            if posting.talent_id is not None:
                posted_by_talent[posting.talent_id] = posted_by_talent.get(posting.talent_id, 0) + posting.post_count

        # sorted() is stable, so equal totals keep roster order
        leaderboard = sorted(
            (
                LeaderboardRow(talent_id=t.id, name=t.name, posted=posted_by_talent.get(t.id, 0))
                for t in roster
            ),
            key=lambda row: row.posted,
            reverse=True,
        )

        return TalentOverview(
            total_talents=len(roster),
            total_daily_targets=total_planned,
            total_posted=total_posted,
            completion_rate=half_up(total_posted / total_planned * 100) if total_planned > 0 else 0,
            leaderboard=tuple(leaderboard),
        )

    def build(
        self,
        snapshot: CollectionSnapshot,
        scope: Optional[FilterScope] = None,
        period: Optional[Period] = None,
    ) -> TalentDashboardResult:
        """KPI rows, overview and completeness for one recompute"""
        year, month = period or self.current_period()
        return TalentDashboardResult(
            tenant_id=snapshot.tenant_id,
            year=year,
            month=month,
            kpi=self.achievements(snapshot, (year, month)),
            overview=self.overview(snapshot, scope),
            completeness=self._completeness(snapshot),
        )

    def _targets_for(self, targets: Sequence[KPITarget], year: int, month: int) -> Dict[str, int]:
        found: Dict[str, int] = {}
        for row in targets:
            if row.year == year and row.month == month and row.talent_id not in found:
                found[row.talent_id] = row.target_count
        return found

    def _local(self, when: datetime) -> datetime:
        # naive timestamps are already wall-clock in the analytics timezone
        return when.astimezone(self.tz) if when.tzinfo is not None else when

    def _posted_in_month(self, postings: Sequence[TalentPosting], year: int, month: int) -> Dict[str, int]:
        rows = []
        for p in postings:
            if p.date is None or p.talent_id is None:
                continue
            when = self._local(p.date)
            rows.append((p.talent_id, p.post_count, when.year, when.month))
        frame = pl.DataFrame(
            {name: [row[i] for row in rows] for i, name in enumerate(POSTING_SCHEMA)},
            schema=POSTING_SCHEMA,
        )
        monthly = (
            frame
            .filter((pl.col("year") == year) & (pl.col("month") == month))
            .group_by("talent_id")
            .agg(pl.col("post_count").sum().alias("actual"))
        )
        return {row["talent_id"]: int(row["actual"]) for row in monthly.iter_rows(named=True)}

    def _completeness(self, snapshot: CollectionSnapshot) -> DataCompleteness:
        foreign = 0
        for entity_type in (EntityType.TALENT, EntityType.KPI_TARGET, EntityType.TALENT_POSTING, EntityType.DAILY_TARGET):
            foreign += snapshot.scoped(entity_type)[1]

        talents, _ = snapshot.scoped(EntityType.TALENT)
        known = {t.id for t in talents}
        postings, _ = snapshot.scoped(EntityType.TALENT_POSTING)
        targets, _ = snapshot.scoped(EntityType.KPI_TARGET)

        return DataCompleteness(
            failed_collections=snapshot.failed_names(),
            pending_collections=snapshot.pending_names(),
            unresolved_references={
                EntityType.TALENT_POSTING.value: sum(1 for p in postings if p.talent_id not in known),
                EntityType.KPI_TARGET.value: sum(1 for t in targets if t.talent_id not in known),
            },
            foreign_tenant_records=foreign,
        )


def compute_kpi(
    snapshot: CollectionSnapshot,
    period: Optional[Period] = None,
    clock: Optional[Clock] = None,
) -> Tuple[KPIAchievement, ...]:
    """Convenience wrapper around ``TalentKPIEngine.achievements``"""
    return TalentKPIEngine(clock=clock).achievements(snapshot, period)
