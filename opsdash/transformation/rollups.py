"""
Business Rollup Engine

Joins the shop, product, sale and content collections of one tenant and
produces the nested revenue rollup shown on the business dashboard:

    global totals
      -> per-shop totals (sorted by revenue)
           -> per-product totals (sorted by revenue)

Shop totals are summed from the nested product rows themselves, never from a
second pass over the sales, so a shop's revenue is exactly the sum of its
products' revenue and the global revenue is exactly the sum of the shops'.

Ties in revenue keep the order of the input collection.
"""

from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence

import polars as pl
import structlog

from opsdash.models.records import ContentTarget, EntityType, Shop
from opsdash.models.results import (
    AggregationResult,
    ChecklistProgress,
    DataCompleteness,
    GlobalTotals,
    ProductRollup,
    ShopRollup,
)
from opsdash.models.snapshot import CollectionSnapshot
from .filters import FilterScope

logger = structlog.get_logger(__name__)


SHOP_SCHEMA = {"position": pl.Int64, "shop_id": pl.Utf8, "name": pl.Utf8}
PRODUCT_SCHEMA = {"position": pl.Int64, "product_id": pl.Utf8, "shop_id": pl.Utf8, "name": pl.Utf8}
SALE_SCHEMA = {"shop_id": pl.Utf8, "product_id": pl.Utf8, "quantity": pl.Int64, "revenue": pl.Float64}
CONTENT_SCHEMA = {"shop_id": pl.Utf8, "product_id": pl.Utf8}

PRODUCT_KEY = ["shop_id", "product_id"]
BY_REVENUE = {"by": ["revenue", "position"], "descending": [True, False]}


def _frame(rows: Sequence[tuple], schema: Dict[str, pl.DataType]) -> pl.DataFrame:
    """Build a typed frame from row tuples; empty input keeps the schema"""
    columns = {name: [row[i] for row in rows] for i, name in enumerate(schema)}
    return pl.DataFrame(columns, schema=schema)


def half_up(value: float) -> int:
    """Round half away from zero for non-negative values (Math.round semantics)"""
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


class BusinessRollupEngine:
    """
    Pure rollup of a tenant snapshot under a filter scope.

    The engine keeps no state between calls; running it twice over the same
    snapshot and scope yields equal results.

    Example:
        engine = BusinessRollupEngine()
        result = engine.aggregate(snapshot, FilterScope(date_start=date(2024, 2, 1)))
        result.global_totals.revenue
    """

    def aggregate(
        self,
        snapshot: CollectionSnapshot,
        scope: Optional[FilterScope] = None,
    ) -> AggregationResult:
        scope = scope or FilterScope(group_field="shop_id")

        shops, foreign_shops = snapshot.scoped(EntityType.SHOP)
        products, foreign_products = snapshot.scoped(EntityType.PRODUCT)
        sales, foreign_sales = snapshot.scoped(EntityType.SALE)
        contents, foreign_contents = snapshot.scoped(EntityType.CONTENT)
        foreign = foreign_shops + foreign_products + foreign_sales + foreign_contents
        if foreign:
            logger.warning(
                "Dropped records owned by another tenant",
                tenant_id=snapshot.tenant_id,
                count=foreign,
            )

        # Step 1: working shop set
        working_shops = self._working_shops(shops, scope)

        # Step 2: scope the event-like records
        scoped_sales = [s for s in sales if scope.matches(s)]
        scoped_contents = [c for c in contents if scope.matches(c)]

        shop_frame = _frame(
            [(i, shop.id, shop.name) for i, shop in enumerate(working_shops)],
            SHOP_SCHEMA,
        )
        working_ids = {shop.id for shop in working_shops}
        product_frame = _frame(
            [(i, p.id, p.shop_id, p.name) for i, p in enumerate(products) if p.shop_id in working_ids],
            PRODUCT_SCHEMA,
        )
        sale_frame = _frame(
            [(s.shop_id, s.product_id, s.quantity, float(s.revenue)) for s in scoped_sales],
            SALE_SCHEMA,
        )
        content_frame = _frame(
            [(c.shop_id, c.product_id) for c in scoped_contents],
            CONTENT_SCHEMA,
        )

        # Step 3: per-product reductions
        product_rollups = self._rollup_products(product_frame, sale_frame, content_frame)

        # Step 4: nest products under shops, already in revenue order
        products_by_shop: Dict[str, List[ProductRollup]] = defaultdict(list)
        for row in product_rollups.iter_rows(named=True):
            products_by_shop[row["shop_id"]].append(
                ProductRollup(
                    product_id=row["product_id"],
                    name=row["name"] or "",
                    units_sold=int(row["units_sold"]),
                    revenue=float(row["revenue"]),
                    content_count=int(row["content_count"]),
                )
            )

        # Step 5: shop totals are the sums of their own product rows
        shop_rollups = []
        for row in self._shop_counts(shop_frame, product_rollups, content_frame).iter_rows(named=True):
            shop_products = tuple(products_by_shop.get(row["shop_id"], ()))
            shop_rollups.append(
                ShopRollup(
                    shop_id=row["shop_id"],
                    name=row["name"] or "",
                    product_count=int(row["product_count"]),
                    units_sold=sum(p.units_sold for p in shop_products),
                    revenue=sum(p.revenue for p in shop_products),
                    content_count=int(row["content_count"]),
                    products=shop_products,
                )
            )
        # sorted() is stable, so revenue ties keep the input order
        shop_rollups = tuple(sorted(shop_rollups, key=lambda shop: shop.revenue, reverse=True))

        # Step 6: global totals
        scoped_product_count = sum(
            1 for p in products if scope.group_id is None or p.shop_id == scope.group_id
        )
        global_totals = GlobalTotals(
            shop_count=len(working_shops),
            product_count=scoped_product_count,
            units_sold=sum(shop.units_sold for shop in shop_rollups),
            revenue=sum(shop.revenue for shop in shop_rollups),
            content_count=len(scoped_contents),
        )

        completeness = DataCompleteness(
            failed_collections=snapshot.failed_names(),
            pending_collections=snapshot.pending_names(),
            unresolved_references={
                EntityType.SALE.value: sale_frame.join(product_frame, on=PRODUCT_KEY, how="anti").height,
                EntityType.CONTENT.value: content_frame.join(product_frame, on=PRODUCT_KEY, how="anti").height,
            },
            foreign_tenant_records=foreign,
        )
        if not completeness.is_complete:
            logger.debug(
                "Rollup computed over incomplete data",
                tenant_id=snapshot.tenant_id,
                failed=completeness.failed_collections,
                pending=completeness.pending_collections,
                unresolved=completeness.unresolved_references,
            )

        return AggregationResult(
            tenant_id=snapshot.tenant_id,
            shop_rollups=shop_rollups,
            global_totals=global_totals,
            completeness=completeness,
        )

    def _working_shops(self, shops: Sequence[Shop], scope: FilterScope) -> List[Shop]:
        if scope.group_id is None:
            return list(shops)
        return [shop for shop in shops if shop.id == scope.group_id]

    def _rollup_products(
        self,
        product_frame: pl.DataFrame,
        sale_frame: pl.DataFrame,
        content_frame: pl.DataFrame,
    ) -> pl.DataFrame:
        """One row per working product with its unit, revenue and content totals"""
        sales_by_product = sale_frame.group_by(PRODUCT_KEY).agg(
            pl.col("quantity").sum().alias("units_sold"),
            pl.col("revenue").sum().alias("revenue"),
        )
        content_by_product = content_frame.group_by(PRODUCT_KEY).agg(
            pl.len().cast(pl.Int64).alias("content_count"),
        )

        return (
            product_frame
            .join(sales_by_product, on=PRODUCT_KEY, how="left")
            .join(content_by_product, on=PRODUCT_KEY, how="left")
            .with_columns(
                pl.col("units_sold").fill_null(0),
                pl.col("revenue").fill_null(0.0),
                pl.col("content_count").fill_null(0),
            )
            .sort(**BY_REVENUE)
        )

    def _shop_counts(
        self,
        shop_frame: pl.DataFrame,
        product_rollups: pl.DataFrame,
        content_frame: pl.DataFrame,
    ) -> pl.DataFrame:
        """Working shops in input order with their product and content counts"""
        product_counts = product_rollups.group_by("shop_id").agg(
            pl.len().cast(pl.Int64).alias("product_count"),
        )
        content_by_shop = content_frame.group_by("shop_id").agg(
            pl.len().cast(pl.Int64).alias("content_count"),
        )

        return (
            shop_frame
            .join(product_counts, on="shop_id", how="left")
            .join(content_by_shop, on="shop_id", how="left")
            .with_columns(
                pl.col("product_count").fill_null(0),
                pl.col("content_count").fill_null(0),
            )
            .sort("position")
        )


def build_business_rollups(
    snapshot: CollectionSnapshot,
    scope: Optional[FilterScope] = None,
) -> AggregationResult:
    """Convenience wrapper around ``BusinessRollupEngine.aggregate``"""
    return BusinessRollupEngine().aggregate(snapshot, scope)


def checklist_progress(
    tenant_id: str,
    targets: Iterable[ContentTarget],
    day: date,
) -> ChecklistProgress:
    """
    Summarize the content checklist for one day.

    Items owned by another tenant or planned for another day are ignored.
    """
    todays = [t for t in targets if t.tenant_id == tenant_id and t.target_date == day]
    done = sum(1 for t in todays if t.is_done)
    total = len(todays)
    return ChecklistProgress(
        tenant_id=tenant_id,
        day=day,
        total=total,
        done=done,
        pending=total - done,
        percent=half_up(done / total * 100) if total else 0,
    )
