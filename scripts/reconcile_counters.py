#!/usr/bin/env python3
"""
Recompute follower, tweet, like, reply, retweet and member counters
from the underlying rows and fix any that drifted.
"""
import asyncio
import sys
from pathlib import Path

current_dir = Path(__file__).parent
root_dir = current_dir.parent
sys.path.insert(0, str(root_dir))


async def reconcile(dry_run: bool = False) -> None:
    from xclone.db.session import AsyncSessionLocal, close_db
    from xclone.services.counter_service import reconcile_counters

    async with AsyncSessionLocal() as db:
        report = await reconcile_counters(db)
        if dry_run:
            await db.rollback()
        else:
            await db.commit()
    await close_db()

    label = "would be fixed" if dry_run else "fixed"
    for counter, fixed in report.items():
        print(f"  {counter:<16} {fixed} rows {label}")
    print(f"✅ Reconciliation finished, {sum(report.values())} rows {label}")


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(description="Counter reconciliation")
    parser.add_argument("--dry-run", action="store_true", help="Report drift without writing")
    args = parser.parse_args()

    try:
        asyncio.run(reconcile(args.dry_run))
    except KeyboardInterrupt:
        print("\n⚠️  Operation cancelled by user")
        sys.exit(1)


if __name__ == "__main__":
    main()
