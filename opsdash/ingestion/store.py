"""
Tenant-Scoped Record Store

The record store is an external collaborator: it owns the documents and pushes
the full, tenant-filtered result set of a query to the subscriber on open and
after every mutation affecting that query. The core never writes through it.

``InMemoryRecordStore`` is the reference implementation used by the demo,
the dataset script and the tests.
"""

import copy
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

import structlog

from opsdash.models.records import TENANT_FIELD, EntityType

logger = structlog.get_logger(__name__)

Document = Dict[str, Any]
SnapshotCallback = Callable[[List[Document]], None]
ErrorCallback = Callable[[Exception], None]


class StoreError(Exception):
    """Raised (or delivered to ``on_error``) when a query cannot be served"""


class Subscription(ABC):
    """Handle for one live query"""

    @abstractmethod
    def close(self) -> None:
        """
        Stop deliveries for this query.

        Closing twice is a no-op.
        """
        pass

    @property
    @abstractmethod
    def closed(self) -> bool:
        pass


class RecordStore(ABC):
    """Abstract live-query interface"""

    @abstractmethod
    def subscribe(
        self,
        entity_type: EntityType,
        tenant_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> Subscription:
        """
        Open a live query for one entity type of one tenant.

        Args:
            entity_type: Collection to watch
            tenant_id: Value every delivered document has under ``profileId``
            on_snapshot: Receives the complete result set, never a diff
            on_error: Receives the failure when the query breaks
            filters: Extra equality filters on wire field names

        Returns:
            Subscription handle
        """
        pass


class _MemorySubscription(Subscription):
    def __init__(
        self,
        store: "InMemoryRecordStore",
        entity_type: EntityType,
        tenant_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
        filters: Mapping[str, Any],
    ):
        self._store = store
        self.entity_type = entity_type
        self.tenant_id = tenant_id
        self.filters = dict(filters)
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._store._detach(self)

    def accepts(self, document: Mapping[str, Any]) -> bool:
        if document.get(TENANT_FIELD) != self.tenant_id:
            return False
        return all(document.get(key) == value for key, value in self.filters.items())

    def deliver(self, documents: List[Document]) -> None:
        if not self._closed:
            self._on_snapshot(documents)

    def fail(self, error: Exception) -> None:
        if not self._closed:
            self._on_error(error)


class InMemoryRecordStore(RecordStore):
    """
    Dictionary-backed record store with synchronous deliveries.

    Documents keep insertion order, so deliveries are in a stable order that
    tests can rely on. Every delivery is a deep copy; subscribers can never
    mutate the stored documents.

    Example:
        store = InMemoryRecordStore()
        store.put(EntityType.SHOP, {"id": "s1", "profileId": "t1", "name": "Main"})
        sub = store.subscribe(EntityType.SHOP, "t1", print, print)
        sub.close()
    """

    def __init__(self):
        self._documents: Dict[EntityType, Dict[str, Document]] = {et: {} for et in EntityType}
        self._subscriptions: List[_MemorySubscription] = []

    # =========================================================================
    # QUERIES
    # =========================================================================

    def subscribe(
        self,
        entity_type: EntityType,
        tenant_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> Subscription:
        entity_type = EntityType(entity_type)
        subscription = _MemorySubscription(
            self, entity_type, tenant_id, on_snapshot, on_error, filters or {}
        )
        self._subscriptions.append(subscription)
        logger.debug(
            "Subscription opened",
            entity_type=entity_type.value,
            tenant_id=tenant_id,
            filters=subscription.filters or None,
        )
        subscription.deliver(self._result_set(subscription))
        return subscription

    def documents(self, entity_type: EntityType, tenant_id: Optional[str] = None) -> List[Document]:
        """Copy of the stored documents, optionally for one tenant"""
        docs = self._documents[EntityType(entity_type)].values()
        return [
            copy.deepcopy(doc) for doc in docs
            if tenant_id is None or doc.get(TENANT_FIELD) == tenant_id
        ]

    @property
    def active_subscriptions(self) -> int:
        return len(self._subscriptions)

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def put(self, entity_type: EntityType, document: Mapping[str, Any]) -> str:
        """Insert or replace a document by ``id`` and notify affected queries"""
        entity_type = EntityType(entity_type)
        doc_id = document.get("id")
        if not doc_id:
            raise ValueError("Document must carry a non-empty 'id'")

        previous = self._documents[entity_type].get(doc_id)
        self._documents[entity_type][doc_id] = copy.deepcopy(dict(document))
        self._notify(entity_type, [previous, document])
        return doc_id

    def put_many(self, entity_type: EntityType, documents: Iterable[Mapping[str, Any]]) -> int:
        """Bulk insert with a single notification per affected query"""
        entity_type = EntityType(entity_type)
        touched: List[Optional[Mapping[str, Any]]] = []
        for document in documents:
            doc_id = document.get("id")
            if not doc_id:
                raise ValueError("Document must carry a non-empty 'id'")
            touched.append(self._documents[entity_type].get(doc_id))
            self._documents[entity_type][doc_id] = copy.deepcopy(dict(document))
            touched.append(document)
        self._notify(entity_type, touched)
        return len(touched) // 2

    def delete(self, entity_type: EntityType, doc_id: str) -> bool:
        """Remove a document; dependents are left in place"""
        entity_type = EntityType(entity_type)
        previous = self._documents[entity_type].pop(doc_id, None)
        if previous is None:
            return False
        self._notify(entity_type, [previous])
        return True

    def fail(self, entity_type: EntityType, tenant_id: Optional[str] = None, error: Optional[Exception] = None) -> int:
        """
        Push an error to the open queries on ``entity_type``.

        Returns:
            Number of subscriptions that received the error
        """
        entity_type = EntityType(entity_type)
        error = error or StoreError(f"{entity_type.value} query failed")
        targets = [
            s for s in list(self._subscriptions)
            if s.entity_type == entity_type and (tenant_id is None or s.tenant_id == tenant_id)
        ]
        for subscription in targets:
            subscription.fail(error)
        return len(targets)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _result_set(self, subscription: _MemorySubscription) -> List[Document]:
        return [
            copy.deepcopy(doc)
            for doc in self._documents[subscription.entity_type].values()
            if subscription.accepts(doc)
        ]

    def _notify(self, entity_type: EntityType, touched: Iterable[Optional[Mapping[str, Any]]]) -> None:
        tenants = {doc.get(TENANT_FIELD) for doc in touched if doc is not None}
        for subscription in list(self._subscriptions):
            if subscription.entity_type == entity_type and subscription.tenant_id in tenants:
                subscription.deliver(self._result_set(subscription))

    def _detach(self, subscription: _MemorySubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            logger.debug(
                "Subscription closed",
                entity_type=subscription.entity_type.value,
                tenant_id=subscription.tenant_id,
            )
