"""
Tenant-Scoped Record Models

Typed views over the documents delivered by the record store. Every record
carries the owning tenant under the wire name ``profileId``; all other wire
names are the camelCase form of the attribute names.

Parsing is lenient where the dashboard has always been lenient: missing
numeric fields become 0 and blank account handles are dropped. Anything that
cannot be coerced raises ``ValidationError`` and the caller decides what to do
with the document.
"""

from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


TENANT_FIELD = "profileId"


class EntityType(str, Enum):
    """Entity collections a view can subscribe to"""
    SHOP = "shop"
    PRODUCT = "product"
    SALE = "sale"
    CONTENT = "content"
    CONTENT_TARGET = "content_target"
    TALENT = "talent"
    KPI_TARGET = "kpi_target"
    TALENT_POSTING = "talent_posting"
    DAILY_TARGET = "daily_target"
    EMPLOYEE = "employee"
    ATTENDANCE = "attendance"
    HOLIDAY = "holiday"


class TalentStatus(str, Enum):
    """Roster status of a talent"""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class EmployeeStatus(str, Enum):
    """Employment status of a staff member"""
    ACTIVE = "ACTIVE"
    RESIGNED = "RESIGNED"


class AttendanceStatus(str, Enum):
    """Attendance marks counted by the attendance rollup"""
    PRESENT = "PRESENT"
    SICK = "SICK"
    ABSENT = "ABSENT"
    LEAVE = "LEAVE"


# Indonesian attendance labels written by the attendance form
ATTENDANCE_LABELS: Dict[str, str] = {
    "HADIR": AttendanceStatus.PRESENT.value,
    "SAKIT": AttendanceStatus.SICK.value,
    "ALPA": AttendanceStatus.ABSENT.value,
    "IZIN": AttendanceStatus.LEAVE.value,
}


# Month names as stored by older clients, lower-cased
MONTH_NAMES: Dict[str, int] = {
    **{name: i for i, name in enumerate(
        ["january", "february", "march", "april", "may", "june", "july",
         "august", "september", "october", "november", "december"], start=1)},
    **{name: i for i, name in enumerate(
        ["januari", "februari", "maret", "april", "mei", "juni", "juli",
         "agustus", "september", "oktober", "november", "desember"], start=1)},
}


def _zero_if_missing(value: Any) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0
    return value


class Record(BaseModel):
    """Base class for every tenant-owned document"""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )

    id: str
    tenant_id: str = Field(alias=TENANT_FIELD)


class DatedRecord(Record):
    """Record whose ``date`` drives ordering and date-range filtering"""

    date: Optional[datetime] = None

    @field_validator("date", mode="before")
    @classmethod
    def coerce_date(cls, v: Any) -> Any:
        """Accept plain dates as midnight and blanks as missing"""
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        if isinstance(v, str) and len(v.strip()) == 10:
            v = date.fromisoformat(v.strip())
        if isinstance(v, date) and not isinstance(v, datetime):
            return datetime.combine(v, time.min)
        return v


class Tenant(BaseModel):
    """Isolated data partition (a business or workspace profile)"""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    id: str
    display_name: str = ""


# =============================================================================
# BUSINESS MODE
# =============================================================================

class Shop(Record):
    name: str = ""


class Product(Record):
    shop_id: Optional[str] = None
    name: str = ""
    unit_price: float = 0.0

    zero_price = field_validator("unit_price", mode="before")(_zero_if_missing)


class Sale(DatedRecord):
    shop_id: Optional[str] = None
    product_id: Optional[str] = None
    quantity: int = 0
    revenue: float = 0.0

    zero_numbers = field_validator("quantity", "revenue", mode="before")(_zero_if_missing)


class ContentPosting(DatedRecord):
    shop_id: Optional[str] = None
    product_id: Optional[str] = None
    url: str = ""


class ContentTarget(Record):
    """Daily content checklist item"""
    title: str = ""
    is_done: bool = False
    target_date: Optional[date] = None


# =============================================================================
# TALENT MODE
# =============================================================================

class Talent(Record):
    name: str = ""
    account_handles: Tuple[str, ...] = ()
    status: TalentStatus = TalentStatus.ACTIVE

    @field_validator("account_handles", mode="before")
    @classmethod
    def drop_blank_handles(cls, v: Any) -> Any:
        """Blank handles are form leftovers, not accounts"""
        if v is None:
            return ()
        if isinstance(v, str):
            v = [v]
        return tuple(h.strip() for h in v if isinstance(h, str) and h.strip())

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> Any:
        """Map the legacy Indonesian status labels"""
        if isinstance(v, str):
            v = v.strip().upper()
            return {"AKTIF": "ACTIVE", "NONAKTIF": "INACTIVE"}.get(v, v)
        return v


class KPITarget(Record):
    talent_id: str
    month: int = Field(ge=1, le=12)
    year: int
    target_count: int = 0

    zero_target = field_validator("target_count", mode="before")(_zero_if_missing)

    @field_validator("month", mode="before")
    @classmethod
    def parse_month(cls, v: Any) -> Any:
        """Accept 1-12, numeric strings, or English/Indonesian month names"""
        if isinstance(v, str):
            text = v.strip().lower()
            if text.isdigit():
                return int(text)
            if text in MONTH_NAMES:
                return MONTH_NAMES[text]
        return v


class TalentPosting(DatedRecord):
    talent_id: Optional[str] = None
    account_handle: str = ""
    product_name: str = ""
    post_count: int = 0
    links: Tuple[str, ...] = ()

    zero_posts = field_validator("post_count", mode="before")(_zero_if_missing)


class DailyTarget(DatedRecord):
    """Planned content for one talent on one day"""
    talent_id: Optional[str] = None
    product_name: str = ""
    content_count: int = 0
    status: str = ""

    zero_content = field_validator("content_count", mode="before")(_zero_if_missing)


# =============================================================================
# EMPLOYEE MODE
# =============================================================================

class Employee(Record):
    name: str = ""
    phone: str = ""
    position: str = ""
    office_location: str = ""
    join_date: Optional[date] = None
    status: EmployeeStatus = EmployeeStatus.ACTIVE

    @field_validator("join_date", mode="before")
    @classmethod
    def blank_join_date(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().upper()
            return {"AKTIF": "ACTIVE", "RESIGN": "RESIGNED"}.get(v, v)
        return v


class Attendance(DatedRecord):
    """
    One attendance mark for one employee on one day.

    ``status`` keeps unrecognised labels as written; only the four
    ``AttendanceStatus`` marks are counted.
    """
    employee_id: Optional[str] = None
    status: str = ""
    note: str = ""

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> Any:
        if v is None:
            return ""
        if isinstance(v, str):
            v = v.strip().upper()
            return ATTENDANCE_LABELS.get(v, v)
        return v


class Holiday(DatedRecord):
    """Company holiday on top of the weekly Sunday"""
    note: str = ""


ENTITY_MODELS: Dict[EntityType, Type[Record]] = {
    EntityType.SHOP: Shop,
    EntityType.PRODUCT: Product,
    EntityType.SALE: Sale,
    EntityType.CONTENT: ContentPosting,
    EntityType.CONTENT_TARGET: ContentTarget,
    EntityType.TALENT: Talent,
    EntityType.KPI_TARGET: KPITarget,
    EntityType.TALENT_POSTING: TalentPosting,
    EntityType.DAILY_TARGET: DailyTarget,
    EntityType.EMPLOYEE: Employee,
    EntityType.ATTENDANCE: Attendance,
    EntityType.HOLIDAY: Holiday,
}

BUSINESS_ENTITIES: Tuple[EntityType, ...] = (
    EntityType.SHOP,
    EntityType.PRODUCT,
    EntityType.SALE,
    EntityType.CONTENT,
)

TALENT_ENTITIES: Tuple[EntityType, ...] = (
    EntityType.TALENT,
    EntityType.KPI_TARGET,
    EntityType.TALENT_POSTING,
    EntityType.DAILY_TARGET,
)

EMPLOYEE_ENTITIES: Tuple[EntityType, ...] = (
    EntityType.EMPLOYEE,
    EntityType.ATTENDANCE,
    EntityType.HOLIDAY,
)
