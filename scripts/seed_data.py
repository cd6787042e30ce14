#!/usr/bin/env python3
"""Seed the hotel ledger with the demo dataset.

This script:
1. Builds the demo roster, income, expenses, attendance and payroll,
   dated relative to today (or --date)
2. Writes them to the local snapshot (LEDGER_DATA_DIR)
3. Optionally pushes every record to the remote store (--push)

Usage:
    python scripts/seed_data.py
    python scripts/seed_data.py --date 2024-03-01 --force --push
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from hotel_ledger.config import configure_logging, get_settings
from hotel_ledger.demo import seed_demo_data
from hotel_ledger.remote import RemoteStoreClient
from hotel_ledger.store import LocalSnapshotStorage, RecordStore
from hotel_ledger.sync import SyncAdapter, SyncRequest


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed the hotel ledger demo data")
    parser.add_argument("--date", default=None, help="Anchor day as YYYY-MM-DD")
    parser.add_argument("--force", action="store_true", help="Overwrite an existing snapshot")
    parser.add_argument("--push", action="store_true", help="Also upsert every record remotely")
    return parser.parse_args()


async def push_all(store: RecordStore) -> int:
    """Upsert every record; returns the number of failed calls."""
    collections = (
        store.staff,
        store.income,
        store.expenses,
        store.attendance,
        store.salary_transactions,
    )
    requests = [
        SyncRequest.upsert(type(record).TABLE, record)
        for records in collections
        for record in records
    ]
    async with RemoteStoreClient() as client:
        report = await SyncAdapter(client).sync_many(requests)

    for request in report.succeeded:
        print(f"  ✓ {request.table}: {request.record_id}")
    for request in report.failed:
        print(f"  ✗ {request.table}: {request.record_id}")
    return len(report.failed)


async def main() -> int:
    args = parse_args()
    configure_logging()
    settings = get_settings()
    storage = LocalSnapshotStorage(settings.snapshot_path)

    print("=" * 60)
    print("Hotel Ledger Demo Seed")
    print("=" * 60)

    if storage.exists() and not args.force:
        print(f"  ℹ Snapshot already exists: {storage.path}")
        print("  Use --force to overwrite it.")
        return 1

    store = seed_demo_data(RecordStore(), args.date)
    storage.save(store)
    print(f"  ✓ Wrote snapshot: {storage.path}")
    print(
        f"    {len(store.staff)} staff, {len(store.income)} income, "
        f"{len(store.expenses)} expenses, {len(store.attendance)} attendance, "
        f"{len(store.salary_transactions)} salary transactions"
    )

    if args.push:
        print("\n" + "-" * 60)
        print(f"Pushing to {settings.remote_store_url}")
        print("-" * 60)
        failed = await push_all(store)
        if failed:
            print(f"\n  ⚠ {failed} records were not pushed")
            return 1

    print("\nSEEDING COMPLETE!")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
