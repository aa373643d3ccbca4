"""
Tenant Dataset Generator
Writes one NDJSON file per entity type, in the record store's wire shape,
for every requested tenant.

Usage:
    python scripts/generate_dataset.py tenant-a tenant-b --seed 7
"""

import argparse
import sys
from collections import defaultdict
from datetime import date
from pathlib import Path
from typing import Dict, List

import polars as pl

sys.path.insert(0, str(Path(__file__).parent.parent))

from opsdash.config import get_settings  # noqa: E402
from opsdash.data.generators import TenantDataGenerator  # noqa: E402
from opsdash.models.records import EntityType  # noqa: E402


def generate(tenants: List[str], seed: int, reference_date: date, output_dir: Path) -> Dict[EntityType, int]:
    output_dir.mkdir(parents=True, exist_ok=True)

    rows: Dict[EntityType, list] = defaultdict(list)
    for offset, tenant_id in enumerate(tenants):
        print(f"📊 Generating tenant {tenant_id}...")
        documents = TenantDataGenerator(tenant_id, seed=seed + offset, reference_date=reference_date).generate()
        for entity_type, docs in documents.items():
            rows[entity_type].extend(docs)

    counts = {}
    for entity_type, docs in rows.items():
        path = output_dir / f"{entity_type.value}.ndjson"
        pl.DataFrame(docs).write_ndjson(path)
        counts[entity_type] = len(docs)
        print(f"   ✅ {path.name}: {len(docs):,} rows")
    return counts


def main():
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Generate synthetic tenant datasets")
    parser.add_argument("tenants", nargs="*", default=["tenant-a", "tenant-b"])
    parser.add_argument("--seed", type=int, default=settings.data.seed)
    parser.add_argument("--reference-date", type=date.fromisoformat, default=date.today())
    parser.add_argument("--output", type=Path, default=Path(settings.data.output_path))
    args = parser.parse_args()

    print("=" * 60)
    print("🛍️  Shop & Talent Dataset Generator")
    print("=" * 60 + "\n")

    counts = generate(args.tenants, args.seed, args.reference_date, args.output)

    print("\n" + "=" * 60)
    print("✅ Dataset Generation Complete!")
    print("=" * 60)
    print(f"\n📁 Output: {args.output}")
    print(f"📊 Total: {sum(counts.values()):,} rows")


if __name__ == "__main__":
    main()
