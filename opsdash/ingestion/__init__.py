"""
Record Store Ingestion Module
"""
from .events import CollectionChanged, DashboardEvent, EventBus, ScopeChanged
from .store import InMemoryRecordStore, RecordStore, StoreError, Subscription
from .subscription_manager import SubscriptionManager

__all__ = [
    "CollectionChanged",
    "DashboardEvent",
    "EventBus",
    "ScopeChanged",
    "InMemoryRecordStore",
    "RecordStore",
    "StoreError",
    "Subscription",
    "SubscriptionManager",
]
