"""
Subscription Manager

Keeps one live query per (entity type, tenant) open against the record store
and mirrors each result set into an in-memory collection:

- every delivery replaces its collection in full
- a tenant switch closes every query of the previous scope before the new
  scope opens, and deliveries that arrive for a closed scope are dropped
- a failing query empties its collection and flags it as failed
- documents that do not parse are skipped and counted

Consumers never see the live collections; they take a ``CollectionSnapshot``
and react to ``CollectionChanged`` events on the bus.
"""

from functools import partial
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

import structlog
from prometheus_client import Counter, Gauge
from pydantic import ValidationError

from opsdash.models.records import ENTITY_MODELS, TENANT_FIELD, EntityType, Record
from opsdash.models.snapshot import CollectionSnapshot
from .events import CollectionChanged, EventBus, ScopeChanged
from .store import Document, RecordStore, StoreError, Subscription

logger = structlog.get_logger(__name__)


# =============================================================================
# METRICS
# =============================================================================

SNAPSHOTS_RECEIVED = Counter(
    "opsdash_snapshots_received_total",
    "Result sets delivered by the record store",
    ["entity_type", "status"],
)

DOCUMENTS_REJECTED = Counter(
    "opsdash_documents_rejected_total",
    "Documents skipped while applying a result set",
    ["entity_type", "reason"],
)

COLLECTION_SIZE = Gauge(
    "opsdash_collection_size",
    "Records held in the in-memory collection",
    ["entity_type"],
)

ACTIVE_SUBSCRIPTIONS = Gauge(
    "opsdash_active_subscriptions",
    "Live record store queries",
)


EqualityFilters = Mapping[EntityType, Mapping[str, Any]]


class SubscriptionManager:
    """
    Owner of the in-memory collections for the currently open tenant scope.

    Example:
        manager = SubscriptionManager(store, bus)
        manager.open("tenant-1", BUSINESS_ENTITIES)
        snapshot = manager.snapshot()
        manager.close()
    """

    def __init__(self, store: RecordStore, bus: Optional[EventBus] = None):
        self.store = store
        self.bus = bus or EventBus()

        self._tenant_id: Optional[str] = None
        self._entity_types: Tuple[EntityType, ...] = ()
        self._generation = 0
        self._subscriptions: Dict[EntityType, Subscription] = {}
        self._collections: Dict[EntityType, Tuple[Record, ...]] = {}
        self._failed: Set[EntityType] = set()
        self._pending: Set[EntityType] = set()

    @property
    def tenant_id(self) -> Optional[str]:
        return self._tenant_id

    @property
    def entity_types(self) -> Tuple[EntityType, ...]:
        return self._entity_types

    @property
    def is_open(self) -> bool:
        return self._tenant_id is not None

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    def open(
        self,
        tenant_id: str,
        entity_types: Iterable[EntityType],
        filters: Optional[EqualityFilters] = None,
    ) -> None:
        """
        Open a scope, closing any previous one first.

        Args:
            tenant_id: Tenant whose records the scope may contain
            entity_types: Collections the active view needs; duplicates collapse
            filters: Optional extra equality filters per entity type
        """
        tenant_id = (tenant_id or "").strip()
        if not tenant_id:
            raise ValueError("tenant_id must be a non-empty string")

        types: List[EntityType] = []
        for entity_type in entity_types:
            entity_type = EntityType(entity_type)
            if entity_type not in types:
                types.append(entity_type)

        self.close()

        self._generation += 1
        generation = self._generation
        self._tenant_id = tenant_id
        self._entity_types = tuple(types)
        self._collections = {et: () for et in types}
        self._pending = set(types)
        self._failed = set()

        structlog.contextvars.bind_contextvars(tenant_id=tenant_id)
        logger.info(
            "Opening subscription scope",
            entity_types=[et.value for et in types],
            generation=generation,
        )
        self.bus.publish(ScopeChanged(tenant_id=tenant_id, entity_types=self._entity_types))

        filters = filters or {}
        for entity_type in types:
            try:
                subscription = self.store.subscribe(
                    entity_type,
                    tenant_id,
                    on_snapshot=partial(self._on_snapshot, generation, entity_type),
                    on_error=partial(self._on_error, generation, entity_type),
                    filters=filters.get(entity_type),
                )
            except StoreError as e:
                # refused up front: same outcome as a query that fails later
                self._on_error(generation, entity_type, e)
                if generation != self._generation:
                    return
                continue
            if generation != self._generation:
                # a handler switched scope during the initial delivery
                subscription.close()
                return
            self._subscriptions[entity_type] = subscription
            ACTIVE_SUBSCRIPTIONS.inc()

    def close(self) -> None:
        """Close every query of the current scope and drop its collections"""
        if self._tenant_id is None and not self._subscriptions:
            return

        previous = self._tenant_id
        for subscription in self._subscriptions.values():
            subscription.close()
            ACTIVE_SUBSCRIPTIONS.dec()

        self._generation += 1
        self._subscriptions = {}
        self._collections = {}
        self._failed = set()
        self._pending = set()
        self._entity_types = ()
        self._tenant_id = None

        logger.info("Closed subscription scope", previous_tenant_id=previous)
        structlog.contextvars.unbind_contextvars("tenant_id")

    def snapshot(self) -> CollectionSnapshot:
        """Immutable copy of the current collections"""
        if self._tenant_id is None:
            raise RuntimeError("No subscription scope is open")
        return CollectionSnapshot.of(
            self._tenant_id,
            self._collections,
            failed=self._failed,
            pending=self._pending,
        )

    def collection(self, entity_type: EntityType) -> Tuple[Record, ...]:
        return self._collections.get(EntityType(entity_type), ())

    # =========================================================================
    # STORE CALLBACKS
    # =========================================================================

    def _on_snapshot(self, generation: int, entity_type: EntityType, documents: List[Document]) -> None:
        if generation != self._generation:
            logger.debug("Dropped delivery for a closed scope", entity_type=entity_type.value)
            SNAPSHOTS_RECEIVED.labels(entity_type=entity_type.value, status="stale").inc()
            return

        records = self._parse(entity_type, documents)
        self._collections[entity_type] = records
        self._failed.discard(entity_type)
        self._pending.discard(entity_type)

        SNAPSHOTS_RECEIVED.labels(entity_type=entity_type.value, status="success").inc()
        COLLECTION_SIZE.labels(entity_type=entity_type.value).set(len(records))
        logger.debug(
            "Collection replaced",
            entity_type=entity_type.value,
            record_count=len(records),
        )

        self.bus.publish(
            CollectionChanged(
                tenant_id=self._tenant_id,
                entity_type=entity_type,
                record_count=len(records),
            )
        )

    def _on_error(self, generation: int, entity_type: EntityType, error: Exception) -> None:
        if generation != self._generation:
            SNAPSHOTS_RECEIVED.labels(entity_type=entity_type.value, status="stale").inc()
            return

        logger.error(
            "Subscription failed; collection treated as empty",
            entity_type=entity_type.value,
            error=str(error),
            error_type=type(error).__name__,
        )
        self._collections[entity_type] = ()
        self._failed.add(entity_type)
        self._pending.discard(entity_type)

        SNAPSHOTS_RECEIVED.labels(entity_type=entity_type.value, status="error").inc()
        COLLECTION_SIZE.labels(entity_type=entity_type.value).set(0)

        self.bus.publish(
            CollectionChanged(
                tenant_id=self._tenant_id,
                entity_type=entity_type,
                record_count=0,
                failed=True,
            )
        )

    def _parse(self, entity_type: EntityType, documents: List[Document]) -> Tuple[Record, ...]:
        """Validate documents into records, skipping foreign and invalid ones"""
        model = ENTITY_MODELS[entity_type]
        records = []
        for document in documents:
            if document.get(TENANT_FIELD) != self._tenant_id:
                DOCUMENTS_REJECTED.labels(entity_type=entity_type.value, reason="foreign_tenant").inc()
                logger.warning(
                    "Skipped document owned by another tenant",
                    entity_type=entity_type.value,
                    document_id=document.get("id"),
                )
                continue
            try:
                records.append(model.model_validate(document))
            except ValidationError as e:
                DOCUMENTS_REJECTED.labels(entity_type=entity_type.value, reason="invalid").inc()
                logger.warning(
                    "Skipped invalid document",
                    entity_type=entity_type.value,
                    document_id=document.get("id"),
                    errors=e.errors(include_url=False),
                )
        return tuple(records)
