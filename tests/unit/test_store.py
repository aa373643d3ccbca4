"""
Unit Tests - In-Memory Record Store
"""
import pytest

from opsdash.ingestion.store import InMemoryRecordStore, StoreError
from opsdash.models.records import EntityType

from conftest import TENANT_A, TENANT_B, make_doc


class Recorder:
    def __init__(self):
        self.snapshots = []
        self.errors = []

    def on_snapshot(self, documents):
        self.snapshots.append(documents)

    def on_error(self, error):
        self.errors.append(error)


class TestInMemoryRecordStore:
    """Tests for InMemoryRecordStore"""

    def test_delivers_on_open(self, store):
        """Test the current result set arrives immediately"""
        store.put(EntityType.SHOP, make_doc(TENANT_A, "S1", name="Satu"))
        recorder = Recorder()

        store.subscribe(EntityType.SHOP, TENANT_A, recorder.on_snapshot, recorder.on_error)

        assert [[d["id"] for d in s] for s in recorder.snapshots] == [["S1"]]

    def test_scopes_by_tenant(self, store):
        """Test a query only ever sees its own tenant's documents"""
        store.put(EntityType.SHOP, make_doc(TENANT_A, "S1"))
        store.put(EntityType.SHOP, make_doc(TENANT_B, "SB"))
        recorder = Recorder()

        store.subscribe(EntityType.SHOP, TENANT_B, recorder.on_snapshot, recorder.on_error)
        store.put(EntityType.SHOP, make_doc(TENANT_A, "S2"))

        assert len(recorder.snapshots) == 1
        assert [d["id"] for d in recorder.snapshots[0]] == ["SB"]

    def test_redelivers_full_set_on_mutation(self, store):
        """Test every mutation delivers the complete result set, never a diff"""
        recorder = Recorder()
        store.subscribe(EntityType.SHOP, TENANT_A, recorder.on_snapshot, recorder.on_error)

        store.put(EntityType.SHOP, make_doc(TENANT_A, "S1"))
        store.put(EntityType.SHOP, make_doc(TENANT_A, "S2"))
        store.delete(EntityType.SHOP, "S1")

        assert [[d["id"] for d in s] for s in recorder.snapshots] == [[], ["S1"], ["S1", "S2"], ["S2"]]

    def test_put_many_notifies_once(self, store):
        """Test a bulk write is a single delivery"""
        recorder = Recorder()
        store.subscribe(EntityType.SHOP, TENANT_A, recorder.on_snapshot, recorder.on_error)

        count = store.put_many(EntityType.SHOP, [make_doc(TENANT_A, f"S{i}") for i in range(3)])

        assert count == 3
        assert len(recorder.snapshots) == 2

    def test_equality_filters(self, store):
        """Test extra equality filters apply to wire field names"""
        store.put(EntityType.CONTENT_TARGET, make_doc(TENANT_A, "1", targetDate="2024-03-15"))
        store.put(EntityType.CONTENT_TARGET, make_doc(TENANT_A, "2", targetDate="2024-03-14"))
        recorder = Recorder()

        store.subscribe(
            EntityType.CONTENT_TARGET,
            TENANT_A,
            recorder.on_snapshot,
            recorder.on_error,
            filters={"targetDate": "2024-03-15"},
        )

        assert [d["id"] for d in recorder.snapshots[0]] == ["1"]

    def test_deliveries_are_copies(self, store):
        """Test subscribers cannot mutate stored documents"""
        store.put(EntityType.TALENT, make_doc(TENANT_A, "X", accountHandles=["@x"]))
        recorder = Recorder()
        store.subscribe(EntityType.TALENT, TENANT_A, recorder.on_snapshot, recorder.on_error)

        recorder.snapshots[0][0]["accountHandles"].append("@hacked")

        assert store.documents(EntityType.TALENT)[0]["accountHandles"] == ["@x"]

    def test_close_stops_deliveries(self, store):
        """Test a closed subscription receives nothing more"""
        recorder = Recorder()
        subscription = store.subscribe(EntityType.SHOP, TENANT_A, recorder.on_snapshot, recorder.on_error)

        subscription.close()
        subscription.close()
        store.put(EntityType.SHOP, make_doc(TENANT_A, "S1"))

        assert subscription.closed
        assert len(recorder.snapshots) == 1
        assert store.active_subscriptions == 0

    def test_fail_reaches_matching_subscriptions(self, store):
        """Test injected errors go to the tenant's open queries only"""
        a, b = Recorder(), Recorder()
        store.subscribe(EntityType.SALE, TENANT_A, a.on_snapshot, a.on_error)
        store.subscribe(EntityType.SALE, TENANT_B, b.on_snapshot, b.on_error)

        delivered = store.fail(EntityType.SALE, TENANT_A)

        assert delivered == 1
        assert isinstance(a.errors[0], StoreError)
        assert b.errors == []

    def test_put_requires_id(self, store):
        """Test documents without an id are rejected"""
        with pytest.raises(ValueError):
            store.put(EntityType.SHOP, {"profileId": TENANT_A})

    def test_delete_missing_is_noop(self, store):
        """Test deleting an unknown id reports False"""
        assert store.delete(EntityType.SHOP, "missing") is False

    def test_delete_does_not_cascade(self, store):
        """Test deleting a shop leaves its products in place"""
        store.put(EntityType.SHOP, make_doc(TENANT_A, "S1"))
        store.put(EntityType.PRODUCT, make_doc(TENANT_A, "P1", shopId="S1"))

        store.delete(EntityType.SHOP, "S1")

        assert [d["id"] for d in store.documents(EntityType.PRODUCT, TENANT_A)] == ["P1"]


def test_store_starts_empty():
    """Test a new store has no documents or subscriptions"""
    store = InMemoryRecordStore()

    assert all(store.documents(et) == [] for et in EntityType)
    assert store.active_subscriptions == 0
