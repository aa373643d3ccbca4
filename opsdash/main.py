"""
Operations Dashboard Demo

Seeds an in-memory record store with synthetic tenants, mounts the business,
talent, checklist and attendance views for one tenant and prints their view
models as JSON.

Usage:
    opsdash-demo
    opsdash-demo --tenant tenant-b --shop <shop id> --start 2024-02-01
    opsdash-demo --period 2024-01 --integrity
    opsdash-demo --employee <employee id> --start 2024-03-01 --end 2024-03-31
"""

import argparse
import json
import sys
from datetime import date
from typing import List, Optional

import structlog

from opsdash.config import get_settings
from opsdash.config.logging import configure_logging
from opsdash.data.generators import seed_store
from opsdash.ingestion.events import EventBus
from opsdash.quality.validators import ValidationResult
from opsdash.serving.views import (
    AttendanceDashboardView,
    BusinessDashboardView,
    ContentChecklistView,
    TalentDashboardView,
)

logger = structlog.get_logger(__name__)


def parse_period(value: str):
    """Parse ``YYYY-MM`` into a (year, month) tuple"""
    try:
        year, month = (int(part) for part in value.split("-", 1))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM, got {value!r}")
    if not 1 <= month <= 12:
        raise argparse.ArgumentTypeError(f"month out of range in {value!r}")
    return year, month


def report_json(report: ValidationResult) -> dict:
    return {
        "status": report.status.value,
        "checks": [
            {
                "name": check.name,
                "passed": check.passed,
                "severity": check.severity.value,
                "message": check.message,
            }
            for check in report.checks
        ],
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Shop, talent and attendance operations dashboard demo")
    parser.add_argument("--tenants", nargs="+", default=["tenant-a", "tenant-b"], help="Tenants to seed")
    parser.add_argument("--tenant", help="Tenant to display (defaults to the first seeded tenant)")
    parser.add_argument("--seed", type=int, default=None, help="Generator seed")
    parser.add_argument("--reference-date", type=date.fromisoformat, default=None, help="Last day of generated data")
    parser.add_argument("--start", help="Filter start date (YYYY-MM-DD)")
    parser.add_argument("--end", help="Filter end date (YYYY-MM-DD)")
    parser.add_argument("--shop", help="Restrict the business view to one shop id")
    parser.add_argument("--talent", help="Restrict the talent overview to one talent id")
    parser.add_argument("--employee", help="Restrict the attendance counts to one employee id")
    parser.add_argument("--period", type=parse_period, default=None, help="KPI and days-off month (YYYY-MM)")
    parser.add_argument("--integrity", action="store_true", help="Include the integrity report")
    parser.add_argument("--log-level", default="WARNING", help="Log level; logs share stdout with the JSON output")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    settings = get_settings()

    tenant_id = args.tenant or args.tenants[0]
    reference_date = args.reference_date or date.today()
    store = seed_store(args.tenants, seed=args.seed, reference_date=reference_date)

    bus = EventBus()
    business = BusinessDashboardView(store, bus)
    talent = TalentDashboardView(store, bus, period=args.period)
    checklist = ContentChecklistView(store, bus, day=reference_date)
    attendance = AttendanceDashboardView(store, bus, period=args.period)

    business.filters.update(date_start=args.start, date_end=args.end, group_id=args.shop)
    talent.filters.update(date_start=args.start, date_end=args.end, group_id=args.talent)
    attendance.filters.update(date_start=args.start, date_end=args.end, group_id=args.employee)

    try:
        output = {
            "app": settings.app_name,
            "version": settings.version,
            "tenantId": tenant_id,
            "business": business.mount(tenant_id).model_dump(mode="json", by_alias=True),
            "talent": talent.mount(tenant_id).model_dump(mode="json", by_alias=True),
            "checklist": checklist.mount(tenant_id).model_dump(mode="json", by_alias=True),
            "attendance": attendance.mount(tenant_id).model_dump(mode="json", by_alias=True),
        }
        if args.integrity:
            output["integrity"] = {
                "business": report_json(business.integrity_report()),
                "talent": report_json(talent.integrity_report()),
                "attendance": report_json(attendance.integrity_report()),
            }
    finally:
        for view in (business, talent, checklist, attendance):
            view.unmount()

    json.dump(output, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")
    logger.info("Demo complete", tenant_id=tenant_id)
    return 0


if __name__ == "__main__":
    sys.exit(main())
