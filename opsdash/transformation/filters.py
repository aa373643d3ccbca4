"""
Filter Context

Holds the user's current scope (date interval plus an optional shop or talent
restriction) and decides which records take part in aggregation. The same
``matches`` predicate is used by every engine, so a record is either in scope
everywhere or nowhere.
"""

from dataclasses import dataclass, replace
from datetime import date, datetime, time
from typing import Any, Callable, List, Optional, Union

import structlog

logger = structlog.get_logger(__name__)

DateLike = Union[date, datetime, str, None]
FilterListener = Callable[["FilterScope"], None]

_UNSET: Any = object()


def coerce_date(value: DateLike) -> Optional[date]:
    """Normalize a date bound; blank strings clear the bound."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    return date.fromisoformat(text)


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


@dataclass(frozen=True)
class FilterScope:
    """Immutable filter scope captured at recompute time"""
    date_start: Optional[date] = None
    date_end: Optional[date] = None
    group_id: Optional[str] = None
    group_field: str = "shop_id"

    @property
    def is_active(self) -> bool:
        return any(v is not None for v in (self.date_start, self.date_end, self.group_id))

    def matches(self, record: Any) -> bool:
        """
        Decide whether a record is inside the scope.

        A record without a date fails any set date bound. The end bound is
        inclusive up to the last instant of ``date_end``.
        """
        if self.date_start is not None or self.date_end is not None:
            when = getattr(record, "date", None)
            if when is None:
                return False
            if isinstance(when, datetime):
                tz = when.tzinfo
            else:
                when = datetime.combine(when, time.min)
                tz = None
            if self.date_start is not None and when < datetime.combine(self.date_start, time.min, tzinfo=tz):
                return False
            if self.date_end is not None and when > datetime.combine(self.date_end, time.max, tzinfo=tz):
                return False

        if self.group_id is not None and getattr(record, self.group_field, None) != self.group_id:
            return False

        return True


class FilterContext:
    """
    Mutable scope object exposed to the presentation layer.

    Every change goes through ``update`` so listeners observe exactly one
    notification per user action, including ``reset``.

    Example:
        context = FilterContext(group_field="shop_id")
        context.update(date_start="2024-02-01", group_id="shop-1")
        context.reset()
    """

    def __init__(
        self,
        group_field: str = "shop_id",
        date_start: DateLike = None,
        date_end: DateLike = None,
        group_id: Optional[str] = None,
    ):
        self._scope = FilterScope(
            date_start=coerce_date(date_start),
            date_end=coerce_date(date_end),
            group_id=_blank_to_none(group_id),
            group_field=group_field,
        )
        self._listeners: List[FilterListener] = []

    @property
    def scope(self) -> FilterScope:
        return self._scope

    @property
    def date_start(self) -> Optional[date]:
        return self._scope.date_start

    @date_start.setter
    def date_start(self, value: DateLike) -> None:
        self.update(date_start=value)

    @property
    def date_end(self) -> Optional[date]:
        return self._scope.date_end

    @date_end.setter
    def date_end(self, value: DateLike) -> None:
        self.update(date_end=value)

    @property
    def group_id(self) -> Optional[str]:
        return self._scope.group_id

    @group_id.setter
    def group_id(self, value: Optional[str]) -> None:
        self.update(group_id=value)

    @property
    def group_field(self) -> str:
        return self._scope.group_field

    @property
    def is_active(self) -> bool:
        return self._scope.is_active

    def matches(self, record: Any) -> bool:
        return self._scope.matches(record)

    def add_listener(self, listener: FilterListener) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it"""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def update(
        self,
        date_start: DateLike = _UNSET,
        date_end: DateLike = _UNSET,
        group_id: Optional[str] = _UNSET,
    ) -> bool:
        """
        Change one or more bounds at once.

        Returns:
            True if the scope changed (listeners were notified)
        """
        changes = {}
        if date_start is not _UNSET:
            changes["date_start"] = coerce_date(date_start)
        if date_end is not _UNSET:
            changes["date_end"] = coerce_date(date_end)
        if group_id is not _UNSET:
            changes["group_id"] = _blank_to_none(group_id)

        return self._apply(replace(self._scope, **changes))

    def reset(self) -> bool:
        """Clear every bound in a single step"""
        return self._apply(FilterScope(group_field=self._scope.group_field))

    def _apply(self, scope: FilterScope) -> bool:
        if scope == self._scope:
            return False

        if scope.date_start and scope.date_end and scope.date_start > scope.date_end:
            logger.warning(
                "Filter start is after end; scope will match nothing",
                date_start=str(scope.date_start),
                date_end=str(scope.date_end),
            )

        self._scope = scope
        logger.debug(
            "Filter scope changed",
            date_start=str(scope.date_start) if scope.date_start else None,
            date_end=str(scope.date_end) if scope.date_end else None,
            group_id=scope.group_id,
        )
        for listener in list(self._listeners):
            listener(scope)
        return True
