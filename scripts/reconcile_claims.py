"""
Find claims whose offer was never moved to ``requested`` and optionally fix them.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from foodshare.config import get_settings
from foodshare.db import InMemoryDbClient
from foodshare.dependencies import build_db_client
from foodshare.reconcile import reconcile

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Reconcile orphan food claims")
    parser.add_argument(
        "--fix",
        action="store_true",
        help="Mark offers of orphan claims as requested when still available",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    db = build_db_client(get_settings())
    if isinstance(db, InMemoryDbClient):
        logger.error("DATABASE_URL is not configured; nothing to reconcile")
        return 1
    try:
        report = reconcile(db, fix=args.fix)
    finally:
        db.close()

    logger.info(
        "Scanned %d claims, %d orphaned, %d fixed",
        report.scanned,
        len(report.orphans),
        report.fixed,
    )
    return 0 if args.fix or not report.orphans else 2


if __name__ == "__main__":
    raise SystemExit(main())
