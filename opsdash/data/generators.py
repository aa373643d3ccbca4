"""
Synthetic Data Generator

Generates realistic documents for one tenant, in the wire shape the record
store delivers (camelCase fields, tenant under ``profileId``, ISO dates).
Includes:
- Shops and their product catalog
- Sales and content postings spread over a date window
- Daily content checklist items
- Talent roster with sparse monthly KPI targets, postings and daily targets
- Employees with daily attendance marks and company holidays

Generation is deterministic for a given seed and reference date.
"""

from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional

import numpy as np
import structlog
from faker import Faker

from opsdash.config import get_settings
from opsdash.ingestion.store import InMemoryRecordStore
from opsdash.models.records import TENANT_FIELD, EntityType

logger = structlog.get_logger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

PRODUCT_LINES = [
    "Serum Wajah", "Sunscreen", "Lip Tint", "Hijab Voal", "Kemeja Linen",
    "Tas Selempang", "Sepatu Sneakers", "Kopi Bubuk", "Madu Hutan", "Botol Minum",
]

PLATFORMS = ["tiktok.com", "instagram.com", "shopee.co.id"]

CHECKLIST_TITLES = [
    "Upload video review", "Live session", "Story promo", "Unboxing",
    "Tutorial pemakaian", "Repost testimoni",
]

POSITIONS = ["Admin Toko", "Host Live", "Packing", "Customer Service", "Content Creator", "Gudang"]

OFFICES = ["Kantor Pusat", "Gudang Bekasi", "Studio Live"]

# Wire labels with their relative frequency
ATTENDANCE_MIX = {"HADIR": 0.85, "IZIN": 0.06, "SAKIT": 0.05, "ALPA": 0.04}

HOLIDAY_NOTES = ["Libur Nasional", "Cuti Bersama", "Libur Perusahaan"]

Document = Dict[str, Any]


class TenantDataGenerator:
    """
    Generate one tenant's documents.

    Example:
        generator = TenantDataGenerator("tenant-1", seed=7, reference_date=date(2024, 3, 15))
        documents = generator.generate()
        generator.load_into(store, documents)
    """

    def __init__(
        self,
        tenant_id: str,
        seed: Optional[int] = None,
        reference_date: Optional[date] = None,
        locale: str = "id_ID",
    ):
        self.tenant_id = tenant_id
        self.seed = get_settings().data.seed if seed is None else seed
        self.reference_date = reference_date or date.today()

        self.fake = Faker(locale)
        self.fake.seed_instance(self.seed)
        self.rng = np.random.default_rng(self.seed)

    def generate(
        self,
        n_shops: int = 3,
        products_per_shop: int = 4,
        n_sales: int = 200,
        n_contents: int = 60,
        n_talents: int = 5,
        n_postings: int = 120,
        n_employees: int = 6,
        days: int = 60,
    ) -> Dict[EntityType, List[Document]]:
        """Generate a complete, referentially consistent dataset"""
        shops = self.shops(n_shops)
        products = self.products(shops, products_per_shop)
        talents = self.talents(n_talents)
        product_names = [p["name"] for p in products] or PRODUCT_LINES
        employees = self.employees(n_employees)

        documents = {
            EntityType.SHOP: shops,
            EntityType.PRODUCT: products,
            EntityType.SALE: self.sales(products, n_sales, days),
            EntityType.CONTENT: self.contents(products, n_contents, days),
            EntityType.CONTENT_TARGET: self.content_targets(days=7),
            EntityType.TALENT: talents,
            EntityType.KPI_TARGET: self.kpi_targets(talents),
            EntityType.TALENT_POSTING: self.postings(talents, product_names, n_postings, days),
            EntityType.DAILY_TARGET: self.daily_targets(talents, product_names, days=14),
            EntityType.EMPLOYEE: employees,
            EntityType.ATTENDANCE: self.attendance(employees, days=30),
            EntityType.HOLIDAY: self.holidays(),
        }
        logger.info(
            "Generated tenant dataset",
            tenant_id=self.tenant_id,
            counts={et.value: len(docs) for et, docs in documents.items()},
        )
        return documents

    def load_into(
        self,
        store: InMemoryRecordStore,
        documents: Optional[Dict[EntityType, List[Document]]] = None,
    ) -> Dict[EntityType, int]:
        """Write documents into a store, generating them if not given"""
        documents = documents if documents is not None else self.generate()
        return {
            entity_type: store.put_many(entity_type, docs)
            for entity_type, docs in documents.items()
        }

    # =========================================================================
    # BUSINESS MODE
    # =========================================================================

    def shops(self, n: int) -> List[Document]:
        return [
            self._doc(name=f"{self.fake.company()} Store")
            for _ in range(n)
        ]

    def products(self, shops: List[Document], per_shop: int) -> List[Document]:
        products = []
        for shop in shops:
            lines = self.rng.choice(PRODUCT_LINES, size=min(per_shop, len(PRODUCT_LINES)), replace=False)
            for line in lines:
                products.append(self._doc(
                    shopId=shop["id"],
                    name=f"{line} {self.fake.color_name()}",
                    # whole thousands of rupiah
                    unitPrice=float(self.rng.integers(15, 350) * 1000),
                ))
        return products

    def sales(self, products: List[Document], n: int, days: int) -> List[Document]:
        if not products:
            return []
        # a few best sellers take most of the volume
        weights = self.rng.pareto(1.5, len(products)) + 1
        weights = weights / weights.sum()
        picks = self.rng.choice(len(products), size=n, p=weights)
        quantities = self.rng.integers(1, 6, size=n)

        sales = []
        for idx, quantity in zip(picks, quantities):
            product = products[int(idx)]
            sales.append(self._doc(
                shopId=product["shopId"],
                productId=product["id"],
                quantity=int(quantity),
                revenue=float(int(quantity) * product["unitPrice"]),
                date=self._timestamp(days),
            ))
        return sales

    def contents(self, products: List[Document], n: int, days: int) -> List[Document]:
        if not products:
            return []
        picks = self.rng.integers(0, len(products), size=n)
        return [
            self._doc(
                shopId=products[int(idx)]["shopId"],
                productId=products[int(idx)]["id"],
                url=f"https://{self.rng.choice(PLATFORMS)}/@{self.fake.user_name()}/video/{self.fake.random_number(digits=12)}",
                date=self._timestamp(days),
            )
            for idx in picks
        ]

    def content_targets(self, days: int = 7, per_day: int = 4) -> List[Document]:
        targets = []
        for offset in range(days):
            day = self.reference_date - timedelta(days=offset)
            for _ in range(per_day):
                targets.append(self._doc(
                    title=str(self.rng.choice(CHECKLIST_TITLES)),
                    isDone=bool(self.rng.random() < (0.5 if offset == 0 else 0.85)),
                    targetDate=day.isoformat(),
                ))
        return targets

    # =========================================================================
    # TALENT MODE
    # =========================================================================

    def talents(self, n: int) -> List[Document]:
        talents = []
        for _ in range(n):
            handles = [f"@{self.fake.user_name()}" for _ in range(int(self.rng.integers(1, 4)))]
            talents.append(self._doc(
                name=self.fake.name(),
                accountHandles=handles,
                status="ACTIVE" if self.rng.random() < 0.85 else "INACTIVE",
            ))
        return talents

    def kpi_targets(self, talents: List[Document], months: int = 2, coverage: float = 0.8) -> List[Document]:
        """Sparse targets: some talents have no row for some months"""
        targets = []
        year, month = self.reference_date.year, self.reference_date.month
        periods = []
        for _ in range(months):
            periods.append((year, month))
            year, month = (year, month - 1) if month > 1 else (year - 1, 12)

        for talent in talents:
            for year, month in periods:
                if self.rng.random() >= coverage:
                    continue
                targets.append(self._doc(
                    talentId=talent["id"],
                    month=month,
                    year=year,
                    targetCount=int(self.rng.integers(4, 16) * 5),
                ))
        return targets

    def postings(
        self,
        talents: List[Document],
        product_names: List[str],
        n: int,
        days: int,
    ) -> List[Document]:
        if not talents:
            return []
        postings = []
        for idx in self.rng.integers(0, len(talents), size=n):
            talent = talents[int(idx)]
            handle = str(self.rng.choice(talent["accountHandles"]))
            post_count = int(self.rng.integers(1, 4))
            postings.append(self._doc(
                talentId=talent["id"],
                accountHandle=handle,
                productName=str(self.rng.choice(product_names)),
                postCount=post_count,
                links=[
                    f"https://{self.rng.choice(PLATFORMS)}/{handle}/{self.fake.random_number(digits=10)}"
                    for _ in range(post_count)
                ],
                date=self._timestamp(days),
            ))
        return postings

    def daily_targets(self, talents: List[Document], product_names: List[str], days: int = 14) -> List[Document]:
        targets = []
        for offset in range(days):
            day = self.reference_date - timedelta(days=offset)
            for talent in talents:
                if self.rng.random() < 0.3:
                    continue
                targets.append(self._doc(
                    talentId=talent["id"],
                    productName=str(self.rng.choice(product_names)),
                    contentCount=int(self.rng.integers(1, 5)),
                    status="DONE" if offset > 0 and self.rng.random() < 0.7 else "PENDING",
                    date=datetime.combine(day, time(9)).isoformat(),
                ))
        return targets

    # =========================================================================
    # EMPLOYEE MODE
    # =========================================================================

    def employees(self, n: int) -> List[Document]:
        employees = []
        for _ in range(n):
            joined = self.reference_date - timedelta(days=int(self.rng.integers(30, 900)))
            employees.append(self._doc(
                name=self.fake.name(),
                phone=self.fake.phone_number(),
                position=str(self.rng.choice(POSITIONS)),
                officeLocation=str(self.rng.choice(OFFICES)),
                joinDate=joined.isoformat(),
                status="AKTIF" if self.rng.random() < 0.9 else "RESIGN",
            ))
        return employees

    def attendance(self, employees: List[Document], days: int = 30) -> List[Document]:
        """At most one mark per active employee per working day"""
        labels = list(ATTENDANCE_MIX)
        weights = np.array(list(ATTENDANCE_MIX.values()))
        marks = []
        active = [e for e in employees if e["status"] == "AKTIF"]
        for offset in range(days):
            day = self.reference_date - timedelta(days=offset)
            if day.weekday() == 6:
                continue
            for employee in active:
                if self.rng.random() < 0.1:
                    continue
                label = str(self.rng.choice(labels, p=weights / weights.sum()))
                marks.append(self._doc(
                    employeeId=employee["id"],
                    status=label,
                    note="" if label == "HADIR" else self.fake.sentence(nb_words=4),
                    date=datetime.combine(day, time(8, int(self.rng.integers(0, 60)))).isoformat(),
                ))
        return marks

    def holidays(self, months: int = 2) -> List[Document]:
        """One or two holidays in the reference month and each month before it"""
        holidays = []
        year, month = self.reference_date.year, self.reference_date.month
        for _ in range(months):
            days = sorted({int(d) for d in self.rng.integers(1, 29, size=int(self.rng.integers(1, 3)))})
            for day in days:
                holidays.append(self._doc(
                    note=str(self.rng.choice(HOLIDAY_NOTES)),
                    date=date(year, month, day).isoformat(),
                ))
            year, month = (year, month - 1) if month > 1 else (year - 1, 12)
        return holidays

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _doc(self, **fields: Any) -> Document:
        return {"id": self.fake.uuid4(), TENANT_FIELD: self.tenant_id, **fields}

    def _timestamp(self, days: int) -> str:
        """Wall-clock timestamp within the last ``days`` days, reference day included"""
        start = datetime.combine(self.reference_date, time.min)
        offset = timedelta(
            days=-int(self.rng.integers(0, max(days, 1))),
            hours=int(self.rng.integers(8, 22)),
            minutes=int(self.rng.integers(0, 60)),
        )
        return (start + offset).isoformat()


def seed_store(
    tenant_ids: List[str],
    seed: Optional[int] = None,
    reference_date: Optional[date] = None,
    store: Optional[InMemoryRecordStore] = None,
) -> InMemoryRecordStore:
    """Fill a store with an independent dataset per tenant"""
    store = store or InMemoryRecordStore()
    base_seed = get_settings().data.seed if seed is None else seed
    for offset, tenant_id in enumerate(tenant_ids):
        TenantDataGenerator(tenant_id, seed=base_seed + offset, reference_date=reference_date).load_into(store)
    return store
