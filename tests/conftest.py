"""
Test Suite Configuration
"""
from datetime import datetime
from typing import Callable, Dict, Iterable, List
from zoneinfo import ZoneInfo

import pytest

from opsdash.config import Settings
from opsdash.ingestion.events import EventBus
from opsdash.ingestion.store import InMemoryRecordStore
from opsdash.models.records import ENTITY_MODELS, EntityType
from opsdash.models.snapshot import CollectionSnapshot

TENANT_A = "tenant-a"
TENANT_B = "tenant-b"

Documents = Dict[EntityType, List[dict]]


def make_doc(tenant_id: str, doc_id: str, **fields) -> dict:
    """Wire-shaped document owned by ``tenant_id``"""
    return {"id": doc_id, "profileId": tenant_id, **fields}


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        debug=True,
    )


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """Clock frozen at 15 March 2024, Jakarta time"""
    return lambda: datetime(2024, 3, 15, 10, 0, tzinfo=ZoneInfo("Asia/Jakarta"))


@pytest.fixture
def build_snapshot() -> Callable[..., CollectionSnapshot]:
    """Parse wire documents into a snapshot, the way the subscription manager does"""
    def _build(
        tenant_id: str,
        documents: Documents,
        failed: Iterable[EntityType] = (),
        pending: Iterable[EntityType] = (),
    ) -> CollectionSnapshot:
        collections = {
            entity_type: [ENTITY_MODELS[entity_type].model_validate(doc) for doc in docs]
            for entity_type, docs in documents.items()
        }
        return CollectionSnapshot.of(tenant_id, collections, failed=failed, pending=pending)

    return _build


@pytest.fixture
def load_documents() -> Callable[[InMemoryRecordStore, Documents], None]:
    def _load(store: InMemoryRecordStore, documents: Documents) -> None:
        for entity_type, docs in documents.items():
            store.put_many(entity_type, docs)

    return _load


@pytest.fixture
def revenue_scenario() -> Documents:
    """One shop, one product, two sales a month apart"""
    return {
        EntityType.SHOP: [make_doc(TENANT_A, "S1", name="Toko Satu")],
        EntityType.PRODUCT: [make_doc(TENANT_A, "P1", shopId="S1", name="Serum", unitPrice=10000)],
        EntityType.SALE: [
            make_doc(TENANT_A, "sale-1", shopId="S1", productId="P1", quantity=2, revenue=20000, date="2024-01-05"),
            make_doc(TENANT_A, "sale-2", shopId="S1", productId="P1", quantity=1, revenue=10000, date="2024-02-01"),
        ],
        EntityType.CONTENT: [],
    }


@pytest.fixture
def business_documents() -> Documents:
    """
    Two tenants' business collections.

    Tenant A: S1 (P1, P2), S2 (P3), S3 without products.
    Tenant B: SB (PB) with a single large sale.
    """
    return {
        EntityType.SHOP: [
            make_doc(TENANT_A, "S1", name="Toko Satu"),
            make_doc(TENANT_A, "S2", name="Toko Dua"),
            make_doc(TENANT_A, "S3", name="Toko Kosong"),
            make_doc(TENANT_B, "SB", name="Other Tenant Shop"),
        ],
        EntityType.PRODUCT: [
            make_doc(TENANT_A, "P1", shopId="S1", name="Serum", unitPrice=10000),
            make_doc(TENANT_A, "P2", shopId="S1", name="Sunscreen", unitPrice=5000),
            make_doc(TENANT_A, "P3", shopId="S2", name="Hijab", unitPrice=40000),
            make_doc(TENANT_B, "PB", shopId="SB", name="Other Product", unitPrice=1),
        ],
        EntityType.SALE: [
            make_doc(TENANT_A, "sale-1", shopId="S1", productId="P1", quantity=2, revenue=20000, date="2024-01-05"),
            make_doc(TENANT_A, "sale-2", shopId="S1", productId="P1", quantity=1, revenue=10000, date="2024-02-01"),
            make_doc(TENANT_A, "sale-3", shopId="S1", productId="P2", quantity=3, revenue=15000, date="2024-02-10T08:00:00"),
            make_doc(TENANT_A, "sale-4", shopId="S2", productId="P3", quantity=1, revenue=40000, date="2024-02-15T23:30:00"),
            make_doc(TENANT_B, "sale-b", shopId="SB", productId="PB", quantity=9, revenue=99999, date="2024-02-01"),
        ],
        EntityType.CONTENT: [
            make_doc(TENANT_A, "c-1", shopId="S1", productId="P1", url="https://t.co/1", date="2024-02-03"),
            make_doc(TENANT_A, "c-2", shopId="S2", productId="P3", url="https://t.co/2", date="2024-01-20"),
            make_doc(TENANT_A, "c-3", shopId="S1", productId="P2", url="https://t.co/3", date="2024-02-10"),
            make_doc(TENANT_B, "c-b", shopId="SB", productId="PB", url="https://t.co/b", date="2024-02-10"),
        ],
    }


@pytest.fixture
def talent_documents() -> Documents:
    """
    Tenant A roster for March 2024.

    X has a target of 20 and 25 posts, Y has no target and 5 posts,
    Z is inactive with a target of 5 and no posts.
    """
    return {
        EntityType.TALENT: [
            make_doc(TENANT_A, "X", name="Ayu", accountHandles=["@ayu", ""], status="ACTIVE"),
            make_doc(TENANT_A, "Y", name="Budi", accountHandles=["@budi"], status="AKTIF"),
            make_doc(TENANT_A, "Z", name="Citra", accountHandles=["@citra"], status="INACTIVE"),
        ],
        EntityType.KPI_TARGET: [
            make_doc(TENANT_A, "k-1", talentId="X", month=3, year=2024, targetCount=20),
            make_doc(TENANT_A, "k-2", talentId="X", month=2, year=2024, targetCount=10),
            make_doc(TENANT_A, "k-3", talentId="Z", month="Maret", year=2024, targetCount=5),
        ],
        EntityType.TALENT_POSTING: [
            make_doc(TENANT_A, "tp-1", talentId="X", accountHandle="@ayu", productName="Serum",
                     postCount=10, links=[f"https://t.co/x{i}" for i in range(10)], date="2024-03-02T10:00:00"),
            make_doc(TENANT_A, "tp-2", talentId="X", accountHandle="@ayu", productName="Serum",
                     postCount=15, links=[f"https://t.co/y{i}" for i in range(15)], date="2024-03-20T10:00:00"),
            make_doc(TENANT_A, "tp-3", talentId="X", accountHandle="@ayu", productName="Hijab",
                     postCount=4, links=[f"https://t.co/z{i}" for i in range(4)], date="2024-02-28T10:00:00"),
            make_doc(TENANT_A, "tp-4", talentId="Y", accountHandle="@budi", productName="Hijab",
                     postCount=5, links=[f"https://t.co/w{i}" for i in range(5)], date="2024-03-05T10:00:00"),
        ],
        EntityType.DAILY_TARGET: [
            make_doc(TENANT_A, "dt-1", talentId="X", productName="Serum", contentCount=8, status="DONE", date="2024-03-02"),
            make_doc(TENANT_A, "dt-2", talentId="Y", productName="Hijab", contentCount=4, status="DONE", date="2024-03-05"),
            make_doc(TENANT_A, "dt-3", talentId="X", productName="Hijab", contentCount=4, status="DONE", date="2024-02-28"),
        ],
    }


@pytest.fixture
def attendance_documents() -> Documents:
    """
    Tenant A staff for March 2024 (five Sundays, two holidays).

    E1 is active with marks on both edges of the month, E2 has resigned,
    E3 has no marks. One mark points at an unknown employee and one record
    belongs to tenant B.
    """
    return {
        EntityType.EMPLOYEE: [
            make_doc(TENANT_A, "E1", name="Dewi", position="Admin Toko", joinDate="2023-01-09", status="AKTIF"),
            make_doc(TENANT_A, "E2", name="Eko", position="Packing", joinDate="2022-06-01", status="RESIGN"),
            make_doc(TENANT_A, "E3", name="Fajar", position="Host Live", joinDate="", status="ACTIVE"),
        ],
        EntityType.ATTENDANCE: [
            make_doc(TENANT_A, "a-1", employeeId="E1", status="HADIR", date="2024-03-01T08:05:00"),
            make_doc(TENANT_A, "a-2", employeeId="E1", status="SAKIT", note="Demam", date="2024-03-04"),
            make_doc(TENANT_A, "a-3", employeeId="E1", status="hadir", date="2024-03-31T23:30:00"),
            make_doc(TENANT_A, "a-4", employeeId="E1", status="IZIN", date="2024-04-01T00:00:00"),
            make_doc(TENANT_A, "a-5", employeeId="E2", status="ALPA", date="2024-03-05"),
            make_doc(TENANT_A, "a-6", employeeId="E2", status="LEMBUR", date="2024-03-06"),
            make_doc(TENANT_A, "a-7", employeeId="E1", status="HADIR"),
            make_doc(TENANT_A, "a-8", employeeId="GHOST", status="HADIR", date="2024-03-07"),
            make_doc(TENANT_A, "a-9", employeeId="E2", status="HADIR", date="2024-02-29T17:00:00"),
            make_doc(TENANT_B, "a-b", employeeId="E1", status="HADIR", date="2024-03-02"),
        ],
        EntityType.HOLIDAY: [
            make_doc(TENANT_A, "h-1", note="Nyepi", date="2024-03-11"),
            make_doc(TENANT_A, "h-2", note="Wafat Isa Almasih", date="2024-03-29"),
            make_doc(TENANT_A, "h-3", note="Isra Miraj", date="2024-02-08"),
        ],
    }
