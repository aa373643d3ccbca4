"""
Record Integrity Validation

Rule-based checks over a tenant snapshot, run on polars frames built from the
parsed records. The dashboards stay fail-open whatever these checks report;
the report exists so operators can see *why* a number looks wrong.

Checks:
- Tenant ownership of every record
- Referential integrity (sale/content -> product, product -> shop, posting -> talent,
  attendance -> employee)
- Uniqueness of monthly KPI targets
- Non-negative amounts and counts
- Talent posting consistency (post count vs. links)
- Attendance marks that would never be counted (undated, unknown status)
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import polars as pl
import structlog

from opsdash.models.records import AttendanceStatus, EntityType, Record
from opsdash.models.snapshot import CollectionSnapshot

logger = structlog.get_logger(__name__)


class ValidationSeverity(str, Enum):
    """Severity levels for validation failures"""
    ERROR = "error"  # Record contradicts the data model
    WARNING = "warning"  # Tolerated inconsistency, usually transient
    INFO = "info"


class ValidationStatus(str, Enum):
    """Overall validation status"""
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass
class ValidationCheck:
    """Single validation check result"""
    name: str
    entity_type: EntityType
    passed: bool
    severity: ValidationSeverity
    message: str
    details: Optional[Dict[str, Any]] = None
    failed_rows: int = 0
    total_rows: int = 0


@dataclass
class ValidationResult:
    """Complete validation suite result"""
    tenant_id: str
    status: ValidationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_count: int
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        """Percentage of passed checks"""
        if self.total_checks == 0:
            return 100.0
        return (self.passed_checks / self.total_checks) * 100

    def check(self, name: str) -> Optional[ValidationCheck]:
        return next((c for c in self.checks if c.name == name), None)

    @property
    def failures(self) -> List[ValidationCheck]:
        return [c for c in self.checks if not c.passed]


# =============================================================================
# SNAPSHOT FRAMES
# =============================================================================

FrameSpec = Tuple[Dict[str, pl.DataType], Callable[[Any], tuple]]

FRAME_SPECS: Dict[EntityType, FrameSpec] = {
    EntityType.SHOP: (
        {"id": pl.Utf8, "tenant_id": pl.Utf8, "name": pl.Utf8},
        lambda r: (r.id, r.tenant_id, r.name),
    ),
    EntityType.PRODUCT: (
        {"id": pl.Utf8, "tenant_id": pl.Utf8, "shop_id": pl.Utf8, "unit_price": pl.Float64},
        lambda r: (r.id, r.tenant_id, r.shop_id, float(r.unit_price)),
    ),
    EntityType.SALE: (
        {"id": pl.Utf8, "tenant_id": pl.Utf8, "shop_id": pl.Utf8, "product_id": pl.Utf8,
         "quantity": pl.Int64, "revenue": pl.Float64},
        lambda r: (r.id, r.tenant_id, r.shop_id, r.product_id, r.quantity, float(r.revenue)),
    ),
    EntityType.CONTENT: (
        {"id": pl.Utf8, "tenant_id": pl.Utf8, "shop_id": pl.Utf8, "product_id": pl.Utf8},
        lambda r: (r.id, r.tenant_id, r.shop_id, r.product_id),
    ),
    EntityType.CONTENT_TARGET: (
        {"id": pl.Utf8, "tenant_id": pl.Utf8, "target_date": pl.Date},
        lambda r: (r.id, r.tenant_id, r.target_date),
    ),
    EntityType.TALENT: (
        {"id": pl.Utf8, "tenant_id": pl.Utf8, "handle_count": pl.Int64},
        lambda r: (r.id, r.tenant_id, len(r.account_handles)),
    ),
    EntityType.KPI_TARGET: (
        {"id": pl.Utf8, "tenant_id": pl.Utf8, "talent_id": pl.Utf8, "year": pl.Int64,
         "month": pl.Int64, "target_count": pl.Int64},
        lambda r: (r.id, r.tenant_id, r.talent_id, r.year, r.month, r.target_count),
    ),
    EntityType.TALENT_POSTING: (
        {"id": pl.Utf8, "tenant_id": pl.Utf8, "talent_id": pl.Utf8, "post_count": pl.Int64,
         "link_count": pl.Int64},
        lambda r: (r.id, r.tenant_id, r.talent_id, r.post_count, len(r.links)),
    ),
    EntityType.DAILY_TARGET: (
        {"id": pl.Utf8, "tenant_id": pl.Utf8, "talent_id": pl.Utf8, "content_count": pl.Int64},
        lambda r: (r.id, r.tenant_id, r.talent_id, r.content_count),
    ),
    EntityType.EMPLOYEE: (
        {"id": pl.Utf8, "tenant_id": pl.Utf8, "status": pl.Utf8},
        lambda r: (r.id, r.tenant_id, r.status.value),
    ),
    EntityType.ATTENDANCE: (
        {"id": pl.Utf8, "tenant_id": pl.Utf8, "employee_id": pl.Utf8, "day": pl.Date, "status": pl.Utf8},
        lambda r: (r.id, r.tenant_id, r.employee_id, r.date.date() if r.date else None, r.status),
    ),
    EntityType.HOLIDAY: (
        {"id": pl.Utf8, "tenant_id": pl.Utf8, "day": pl.Date},
        lambda r: (r.id, r.tenant_id, r.date.date() if r.date else None),
    ),
}


def records_frame(entity_type: EntityType, records: Sequence[Record]) -> pl.DataFrame:
    """Typed frame for one collection; columns follow ``FRAME_SPECS``"""
    schema, row = FRAME_SPECS[entity_type]
    rows = [row(r) for r in records]
    return pl.DataFrame(
        {name: [values[i] for values in rows] for i, name in enumerate(schema)},
        schema=schema,
    )


def snapshot_frames(snapshot: CollectionSnapshot) -> Dict[EntityType, pl.DataFrame]:
    """Frames for the collections present in the snapshot, foreign records included"""
    return {
        entity_type: records_frame(entity_type, records)
        for entity_type, records in snapshot.collections.items()
    }


Frames = Dict[EntityType, pl.DataFrame]
CheckFunc = Callable[[Frames, str], Optional[ValidationCheck]]


class IntegrityValidator:
    """
    Snapshot validator with a chainable check suite.

    A check whose collection is not part of the snapshot is skipped, so the
    same suite works for business and talent scopes.

    Example:
        validator = IntegrityValidator()
        validator.add_range_check(EntityType.SALE, "revenue", min_value=0)
        result = validator.validate(snapshot)
    """

    def __init__(self, strict_mode: bool = False):
        self.strict_mode = strict_mode  # Fail on any warning
        self._checks: List[CheckFunc] = []

    def reset(self) -> None:
        self._checks = []

    def extend(self, other: "IntegrityValidator") -> "IntegrityValidator":
        """Append another suite's checks to this one"""
        self._checks.extend(other._checks)
        return self

    def add_tenant_check(self, entity_type: EntityType) -> "IntegrityValidator":
        """Every record must belong to the snapshot's tenant"""
        def check(frames: Frames, tenant_id: str) -> Optional[ValidationCheck]:
            df = frames.get(entity_type)
            if df is None:
                return None
            foreign = df.filter(pl.col("tenant_id") != tenant_id).height
            return ValidationCheck(
                name=f"tenant_{entity_type.value}",
                entity_type=entity_type,
                passed=foreign == 0,
                severity=ValidationSeverity.ERROR,
                message=f"{foreign} {entity_type.value} records belong to another tenant" if foreign else "All records belong to the tenant",
                details={"foreign_count": foreign},
                failed_rows=foreign,
                total_rows=df.height,
            )

        self._checks.append(check)
        return self

    def add_unique_check(
        self,
        entity_type: EntityType,
        columns: Sequence[str],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "IntegrityValidator":
        """Add check for uniqueness of a column combination"""
        columns = list(columns)
        name = f"unique_{entity_type.value}_{'_'.join(columns)}"

        def check(frames: Frames, tenant_id: str) -> Optional[ValidationCheck]:
            df = frames.get(entity_type)
            if df is None:
                return None
            df = df.filter(pl.col("tenant_id") == tenant_id)
            duplicates = df.height - df.select(columns).unique().height
            return ValidationCheck(
                name=name,
                entity_type=entity_type,
                passed=duplicates == 0,
                severity=severity,
                message=f"{duplicates} duplicate rows on {columns}" if duplicates else "Rows are unique",
                details={"duplicate_count": duplicates},
                failed_rows=duplicates,
                total_rows=df.height,
            )

        self._checks.append(check)
        return self

    def add_range_check(
        self,
        entity_type: EntityType,
        column: str,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "IntegrityValidator":
        """Add check for values within specified range"""
        def check(frames: Frames, tenant_id: str) -> Optional[ValidationCheck]:
            df = frames.get(entity_type)
            if df is None:
                return None
            df = df.filter(pl.col("tenant_id") == tenant_id)

            conditions = []
            if min_value is not None:
                conditions.append(pl.col(column) < min_value)
            if max_value is not None:
                conditions.append(pl.col(column) > max_value)

            out_of_range = 0
            if conditions:
                combined = conditions[0]
                for cond in conditions[1:]:
                    combined = combined | cond
                out_of_range = df.filter(combined).height

            return ValidationCheck(
                name=f"range_{entity_type.value}_{column}",
                entity_type=entity_type,
                passed=out_of_range == 0,
                severity=severity,
                message=f"{out_of_range} values of '{column}' outside [{min_value}, {max_value}]" if out_of_range else "All values in range",
                details={"min": min_value, "max": max_value, "out_of_range_count": out_of_range},
                failed_rows=out_of_range,
                total_rows=df.height,
            )

        self._checks.append(check)
        return self

    def add_referential_integrity_check(
        self,
        entity_type: EntityType,
        columns: Sequence[str],
        reference_type: EntityType,
        reference_columns: Sequence[str],
        severity: ValidationSeverity = ValidationSeverity.WARNING,
    ) -> "IntegrityValidator":
        """
        Add check that every row resolves to a row of ``reference_type``.

        Null keys count as unresolved.
        """
        columns = list(columns)
        reference_columns = list(reference_columns)

        def check(frames: Frames, tenant_id: str) -> Optional[ValidationCheck]:
            df = frames.get(entity_type)
            ref = frames.get(reference_type)
            if df is None or ref is None:
                return None
            df = df.filter(pl.col("tenant_id") == tenant_id)
            keys = (
                ref.filter(pl.col("tenant_id") == tenant_id)
                .select(reference_columns)
                .rename(dict(zip(reference_columns, columns)))
                .unique()
            )
            orphans = df.join(keys, on=columns, how="anti").height
            return ValidationCheck(
                name=f"ref_{entity_type.value}_{reference_type.value}",
                entity_type=entity_type,
                passed=orphans == 0,
                severity=severity,
                message=f"{orphans} {entity_type.value} records reference a missing {reference_type.value}" if orphans else "Referential integrity maintained",
                details={"orphan_count": orphans},
                failed_rows=orphans,
                total_rows=df.height,
            )

        self._checks.append(check)
        return self

    def add_custom_check(
        self,
        entity_type: EntityType,
        name: str,
        expr: pl.Expr,
        message_on_fail: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "IntegrityValidator":
        """Add a row-level check; rows where ``expr`` is false fail"""
        def check(frames: Frames, tenant_id: str) -> Optional[ValidationCheck]:
            df = frames.get(entity_type)
            if df is None:
                return None
            df = df.filter(pl.col("tenant_id") == tenant_id)
            failing = df.filter(~expr).height
            return ValidationCheck(
                name=name,
                entity_type=entity_type,
                passed=failing == 0,
                severity=severity,
                message=f"{failing} rows: {message_on_fail}" if failing else "Check passed",
                failed_rows=failing,
                total_rows=df.height,
            )

        self._checks.append(check)
        return self

    def validate(self, snapshot: CollectionSnapshot) -> ValidationResult:
        """
        Run all checks against a snapshot.

        Args:
            snapshot: Collections to validate

        Returns:
            ValidationResult with every check that applied
        """
        started_at = datetime.now(timezone.utc)
        frames = snapshot_frames(snapshot)
        results = []

        for check_func in self._checks:
            result = check_func(frames, snapshot.tenant_id)
            if result is None:
                continue
            results.append(result)
            if not result.passed:
                logger.warning(
                    "Integrity check failed",
                    check=result.name,
                    message=result.message,
                    severity=result.severity.value,
                    tenant_id=snapshot.tenant_id,
                )

        passed_checks = sum(1 for r in results if r.passed)
        failed_checks = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.ERROR)
        warning_count = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.WARNING)

        if failed_checks > 0:
            status = ValidationStatus.FAILED
        elif warning_count > 0 and self.strict_mode:
            status = ValidationStatus.FAILED
        elif warning_count > 0:
            status = ValidationStatus.PARTIAL
        else:
            status = ValidationStatus.PASSED

        logger.info(
            "Integrity validation complete",
            status=status.value,
            passed=passed_checks,
            failed=failed_checks,
            warnings=warning_count,
            tenant_id=snapshot.tenant_id,
        )

        return ValidationResult(
            tenant_id=snapshot.tenant_id,
            status=status,
            total_checks=len(results),
            passed_checks=passed_checks,
            failed_checks=failed_checks,
            warning_count=warning_count,
            checks=results,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )


def create_business_validator(strict_mode: bool = False) -> IntegrityValidator:
    """Validator for shop, product, sale and content collections"""
    validator = IntegrityValidator(strict_mode=strict_mode)
    for entity_type in (EntityType.SHOP, EntityType.PRODUCT, EntityType.SALE, EntityType.CONTENT):
        validator.add_tenant_check(entity_type)
    return (
        validator
        .add_unique_check(EntityType.PRODUCT, ["id"])
        .add_range_check(EntityType.PRODUCT, "unit_price", min_value=0)
        .add_range_check(EntityType.SALE, "quantity", min_value=0)
        .add_range_check(EntityType.SALE, "revenue", min_value=0)
        .add_referential_integrity_check(EntityType.PRODUCT, ["shop_id"], EntityType.SHOP, ["id"])
        .add_referential_integrity_check(
            EntityType.SALE, ["shop_id", "product_id"], EntityType.PRODUCT, ["shop_id", "id"]
        )
        .add_referential_integrity_check(
            EntityType.CONTENT, ["shop_id", "product_id"], EntityType.PRODUCT, ["shop_id", "id"]
        )
    )


def create_talent_validator(strict_mode: bool = False) -> IntegrityValidator:
    """Validator for talent roster, KPI target, posting and daily target collections"""
    validator = IntegrityValidator(strict_mode=strict_mode)
    for entity_type in (
        EntityType.TALENT,
        EntityType.KPI_TARGET,
        EntityType.TALENT_POSTING,
        EntityType.DAILY_TARGET,
    ):
        validator.add_tenant_check(entity_type)
    return (
        validator
        .add_custom_check(
            EntityType.TALENT,
            "talent_has_handles",
            pl.col("handle_count") >= 1,
            "talent has no account handle",
        )
        .add_unique_check(EntityType.KPI_TARGET, ["talent_id", "year", "month"])
        .add_range_check(EntityType.KPI_TARGET, "target_count", min_value=0)
        .add_referential_integrity_check(EntityType.KPI_TARGET, ["talent_id"], EntityType.TALENT, ["id"])
        .add_range_check(EntityType.TALENT_POSTING, "post_count", min_value=1)
        .add_custom_check(
            EntityType.TALENT_POSTING,
            "posting_links_match_count",
            pl.col("link_count") == pl.col("post_count"),
            "number of links differs from post count",
            severity=ValidationSeverity.WARNING,
        )
        .add_referential_integrity_check(EntityType.TALENT_POSTING, ["talent_id"], EntityType.TALENT, ["id"])
        .add_range_check(EntityType.DAILY_TARGET, "content_count", min_value=0)
    )


def create_attendance_validator(strict_mode: bool = False) -> IntegrityValidator:
    """Validator for employee, attendance and holiday collections"""
    validator = IntegrityValidator(strict_mode=strict_mode)
    for entity_type in (EntityType.EMPLOYEE, EntityType.ATTENDANCE, EntityType.HOLIDAY):
        validator.add_tenant_check(entity_type)
    return (
        validator
        .add_custom_check(
            EntityType.ATTENDANCE,
            "attendance_is_dated",
            pl.col("day").is_not_null(),
            "attendance without a date is never counted",
            severity=ValidationSeverity.WARNING,
        )
        .add_custom_check(
            EntityType.ATTENDANCE,
            "attendance_status_known",
            pl.col("status").is_in([status.value for status in AttendanceStatus]),
            "unrecognised attendance status is never counted",
            severity=ValidationSeverity.WARNING,
        )
        .add_unique_check(EntityType.ATTENDANCE, ["employee_id", "day"], severity=ValidationSeverity.WARNING)
        .add_referential_integrity_check(EntityType.ATTENDANCE, ["employee_id"], EntityType.EMPLOYEE, ["id"])
        .add_custom_check(
            EntityType.HOLIDAY,
            "holiday_is_dated",
            pl.col("day").is_not_null(),
            "holiday without a date",
            severity=ValidationSeverity.WARNING,
        )
    )


def validate_snapshot(snapshot: CollectionSnapshot, strict_mode: bool = False) -> ValidationResult:
    """Run every suite; checks for collections outside the snapshot are skipped"""
    validator = (
        IntegrityValidator(strict_mode=strict_mode)
        .extend(create_business_validator())
        .extend(create_talent_validator())
        .extend(create_attendance_validator())
    )
    return validator.validate(snapshot)
