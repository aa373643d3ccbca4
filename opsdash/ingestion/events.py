"""
In-process event bus used to decouple collection updates from recomputation.

The subscription manager publishes; dashboard views subscribe. Handlers run
synchronously in publish order, and a failing handler never prevents the
remaining handlers from running.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import RLock
from typing import Callable, Dict, List, Tuple, Type

import structlog

from opsdash.models.records import EntityType

logger = structlog.get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DashboardEvent:
    tenant_id: str
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex, compare=False)
    occurred_at: datetime = field(default_factory=_utc_now, compare=False)


@dataclass(frozen=True)
class ScopeChanged(DashboardEvent):
    """A subscription scope was opened for ``tenant_id``"""
    entity_types: Tuple[EntityType, ...] = ()


@dataclass(frozen=True)
class CollectionChanged(DashboardEvent):
    """A collection was replaced, either by a delivery or by an error"""
    entity_type: EntityType = EntityType.SHOP
    record_count: int = 0
    failed: bool = False


EventHandler = Callable[[DashboardEvent], None]


class EventBus:
    def __init__(self) -> None:
        self._lock = RLock()
        self._handlers: Dict[Type[DashboardEvent], List[EventHandler]] = {}

    def subscribe(self, event_type: Type[DashboardEvent], handler: EventHandler) -> Callable[[], None]:
        """Register ``handler`` for exactly ``event_type``; returns an unsubscribe function"""
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(event_type, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unsubscribe

    def publish(self, event: DashboardEvent) -> None:
        with self._lock:
            handlers = list(self._handlers.get(type(event), []))
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Event handler failed",
                    event_type=type(event).__name__,
                    tenant_id=event.tenant_id,
                )

    def handler_count(self, event_type: Type[DashboardEvent]) -> int:
        with self._lock:
            return len(self._handlers.get(event_type, []))
