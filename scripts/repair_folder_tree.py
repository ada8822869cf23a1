#!/usr/bin/env python3
"""
Folder tree repair script.

Rebuilds the materialized path/level of every folder from its parent pointers
and recomputes the best-effort document counters from the document rows.
Safe to run repeatedly.

Usage:
    python scripts/repair_folder_tree.py [--user-id ID] [--skip-stats]
"""
import argparse
import asyncio
import os
import sys

from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

load_dotenv()

from docvault.core.database import AsyncSessionLocal, engine  # noqa: E402
from docvault.services.folder_tree import rebuild_paths, recalculate_folder_stats  # noqa: E402


async def repair(user_id=None, skip_stats=False):
    print("=" * 60)
    print("Repairing folder tree" + (f" for user {user_id}" if user_id else ""))
    print("=" * 60)

    async with AsyncSessionLocal() as db:
        rewritten = await rebuild_paths(db, user_id=user_id)
        print(f"✅ Rebuilt path and level for {rewritten} folders")

        if not skip_stats:
            changed = await recalculate_folder_stats(db, user_id=user_id)
            print(f"✅ Corrected document counters on {changed} folders")

    await engine.dispose()


def main():
    parser = argparse.ArgumentParser(description="Rebuild folder paths and counters")
    parser.add_argument("--user-id", type=int, default=None, help="Only repair this user's folders")
    parser.add_argument("--skip-stats", action="store_true", help="Do not recompute document counters")
    args = parser.parse_args()

    asyncio.run(repair(user_id=args.user_id, skip_stats=args.skip_stats))


if __name__ == "__main__":
    main()
