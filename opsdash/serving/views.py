"""
Dashboard Views

A view is the scheduler between the record store and an engine: it owns a
subscription manager and a filter context, recomputes whenever one of its
collections is replaced or the filter scope changes, and hands the latest
result to its listeners.

Listeners are only called when the recomputed result differs from the
previous one, so redundant deliveries do not repaint anything.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Callable, Generic, List, Mapping, Optional, Tuple, TypeVar
from zoneinfo import ZoneInfo

import structlog
from prometheus_client import Counter, Histogram

from opsdash.config import get_settings
from opsdash.ingestion.events import CollectionChanged, DashboardEvent, EventBus
from opsdash.ingestion.store import RecordStore
from opsdash.ingestion.subscription_manager import EqualityFilters, SubscriptionManager
from opsdash.models.records import (
    BUSINESS_ENTITIES,
    EMPLOYEE_ENTITIES,
    TALENT_ENTITIES,
    ContentTarget,
    EntityType,
)
from opsdash.models.results import (
    AggregationResult,
    AttendanceDashboardResult,
    ChecklistProgress,
    TalentDashboardResult,
)
from opsdash.models.snapshot import CollectionSnapshot
from opsdash.quality.validators import ValidationResult, validate_snapshot
from opsdash.transformation.attendance import AttendanceEngine
from opsdash.transformation.filters import FilterContext, FilterScope, coerce_date
from opsdash.transformation.kpi import Period, TalentKPIEngine
from opsdash.transformation.rollups import BusinessRollupEngine, checklist_progress

logger = structlog.get_logger(__name__)


# =============================================================================
# METRICS
# =============================================================================

RECOMPUTE_TIME = Histogram(
    "opsdash_recompute_seconds",
    "Time spent recomputing a dashboard view",
    ["view"],
)

RECOMPUTES = Counter(
    "opsdash_recomputes_total",
    "Dashboard recomputations",
    ["view", "outcome"],
)


ResultT = TypeVar("ResultT")
ResultListener = Callable[[Any], None]


def _check_period(value: Optional[Period]) -> Optional[Period]:
    if value is None:
        return None
    year, month = value
    if not 1 <= month <= 12:
        raise ValueError(f"month must be 1-12, got {month}")
    return int(year), int(month)


class DashboardView(ABC, Generic[ResultT]):
    """
    Base class for views backed by one subscription scope.

    Subclasses declare the collections they need and implement ``compute``.
    """

    name: str = "dashboard"
    entity_types: Tuple[EntityType, ...] = ()
    group_field: str = "shop_id"

    def __init__(
        self,
        store: RecordStore,
        bus: Optional[EventBus] = None,
        filters: Optional[FilterContext] = None,
    ):
        self.bus = bus or EventBus()
        self.manager = SubscriptionManager(store, self.bus)
        self.filters = filters or FilterContext(group_field=self.group_field)
        self._result: Optional[ResultT] = None
        self._listeners: List[ResultListener] = []
        self._detach: List[Callable[[], None]] = []

    @property
    def result(self) -> Optional[ResultT]:
        return self._result

    @property
    def tenant_id(self) -> Optional[str]:
        return self.manager.tenant_id

    @property
    def is_mounted(self) -> bool:
        return bool(self._detach)

    def add_listener(self, listener: ResultListener) -> Callable[[], None]:
        """Register a result listener; returns a function that removes it"""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def mount(self, tenant_id: str) -> Optional[ResultT]:
        """
        Open the view for a tenant, replacing any previous tenant scope.

        Returns:
            The result computed from the initial deliveries
        """
        if not self._detach:
            self._detach = [
                self.bus.subscribe(CollectionChanged, self._on_collection_changed),
                self.filters.add_listener(self._on_filter_changed),
            ]
        self._result = None
        logger.info("Mounting view", view=self.name, tenant_id=tenant_id)
        self.manager.open(tenant_id, self.entity_types, self.equality_filters())
        return self.refresh()

    def switch_tenant(self, tenant_id: str) -> Optional[ResultT]:
        return self.mount(tenant_id)

    def unmount(self) -> None:
        for detach in self._detach:
            detach()
        self._detach = []
        self.manager.close()
        self._result = None
        logger.info("Unmounted view", view=self.name)

    def refresh(self) -> Optional[ResultT]:
        """Recompute from the current snapshot and notify on change"""
        if not self.manager.is_open:
            return self._result

        snapshot = self.manager.snapshot()
        with RECOMPUTE_TIME.labels(view=self.name).time():
            result = self.compute(snapshot, self.filters.scope)

        if result == self._result:
            RECOMPUTES.labels(view=self.name, outcome="unchanged").inc()
            return self._result

        self._result = result
        RECOMPUTES.labels(view=self.name, outcome="changed").inc()
        for listener in list(self._listeners):
            listener(result)
        return result

    def integrity_report(self) -> ValidationResult:
        """Run the integrity checks over the current collections"""
        return validate_snapshot(self.manager.snapshot())

    def equality_filters(self) -> Optional[EqualityFilters]:
        """Extra per-collection store filters; none by default"""
        return None

    @abstractmethod
    def compute(self, snapshot: CollectionSnapshot, scope: FilterScope) -> ResultT:
        pass

    def _on_collection_changed(self, event: DashboardEvent) -> None:
        if event.tenant_id != self.manager.tenant_id:
            return
        if getattr(event, "entity_type", None) not in self.entity_types:
            return
        self.refresh()

    def _on_filter_changed(self, scope: FilterScope) -> None:
        self.refresh()


class BusinessDashboardView(DashboardView[AggregationResult]):
    """Shop / product revenue rollup"""

    name = "business"
    entity_types = BUSINESS_ENTITIES
    group_field = "shop_id"

    def __init__(
        self,
        store: RecordStore,
        bus: Optional[EventBus] = None,
        filters: Optional[FilterContext] = None,
        engine: Optional[BusinessRollupEngine] = None,
    ):
        super().__init__(store, bus, filters)
        self.engine = engine or BusinessRollupEngine()

    def compute(self, snapshot: CollectionSnapshot, scope: FilterScope) -> AggregationResult:
        return self.engine.aggregate(snapshot, scope)


class TalentDashboardView(DashboardView[TalentDashboardResult]):
    """
    Talent KPI achievement and overview.

    The KPI month follows the engine clock unless ``period`` is set.
    """

    name = "talent"
    entity_types = TALENT_ENTITIES
    group_field = "talent_id"

    def __init__(
        self,
        store: RecordStore,
        bus: Optional[EventBus] = None,
        filters: Optional[FilterContext] = None,
        engine: Optional[TalentKPIEngine] = None,
        period: Optional[Period] = None,
    ):
        super().__init__(store, bus, filters)
        self.engine = engine or TalentKPIEngine()
        self._period = period

    @property
    def period(self) -> Optional[Period]:
        return self._period

    @period.setter
    def period(self, value: Optional[Period]) -> None:
        self._period = _check_period(value)
        self.refresh()

    def compute(self, snapshot: CollectionSnapshot, scope: FilterScope) -> TalentDashboardResult:
        return self.engine.build(snapshot, scope, self._period)


class ContentChecklistView(DashboardView[ChecklistProgress]):
    """
    Progress of the content checklist for one day.

    Only that day's items are requested from the store; changing the day
    reopens the subscription scope.
    """

    name = "checklist"
    entity_types = (EntityType.CONTENT_TARGET,)

    def __init__(
        self,
        store: RecordStore,
        bus: Optional[EventBus] = None,
        day: Optional[date] = None,
    ):
        super().__init__(store, bus)
        self._day = coerce_date(day) or datetime.now(ZoneInfo(get_settings().analytics.timezone)).date()

    @property
    def day(self) -> date:
        return self._day

    def set_day(self, day: Any) -> Optional[ChecklistProgress]:
        new_day = coerce_date(day)
        if new_day is None:
            raise ValueError("day is required")
        if new_day == self._day:
            return self._result
        self._day = new_day
        if self.manager.is_open:
            return self.mount(self.manager.tenant_id)
        return self._result

    def equality_filters(self) -> Mapping[EntityType, Mapping[str, Any]]:
        return {EntityType.CONTENT_TARGET: {"targetDate": self._day.isoformat()}}

    def compute(self, snapshot: CollectionSnapshot, scope: FilterScope) -> ChecklistProgress:
        targets: Tuple[ContentTarget, ...] = snapshot.scoped(EntityType.CONTENT_TARGET)[0]
        return checklist_progress(snapshot.tenant_id, targets, self._day)


class AttendanceDashboardView(DashboardView[AttendanceDashboardResult]):
    """
    Employee attendance counts and the monthly days-off figure.

    The date and employee filters narrow the counts; the days-off month
    follows the engine clock unless ``period`` is set.
    """

    name = "attendance"
    entity_types = EMPLOYEE_ENTITIES
    group_field = "employee_id"

    def __init__(
        self,
        store: RecordStore,
        bus: Optional[EventBus] = None,
        filters: Optional[FilterContext] = None,
        engine: Optional[AttendanceEngine] = None,
        period: Optional[Period] = None,
    ):
        super().__init__(store, bus, filters)
        self.engine = engine or AttendanceEngine()
        self._period = period

    @property
    def period(self) -> Optional[Period]:
        return self._period

    @period.setter
    def period(self, value: Optional[Period]) -> None:
        self._period = _check_period(value)
        self.refresh()

    def compute(self, snapshot: CollectionSnapshot, scope: FilterScope) -> AttendanceDashboardResult:
        return self.engine.build(snapshot, scope, self._period)
