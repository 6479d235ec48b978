#!/usr/bin/env python3
"""
Seed the plan catalog and give legacy users their default subscription.

Both steps are idempotent and safe to re-run.

Usage:
    # Seed FREE, PRO and ENTERPRISE plans, then back-fill subscriptions
    python seed_plans.py

    # Only seed plans
    python seed_plans.py --skip-backfill
"""

import argparse
import asyncio
import sys

import structlog

from plangate.database import AsyncSessionLocal, engine
from plangate.errors import PlanNotFoundError
from plangate.middleware.logging import setup_logging
from plangate.services.plan_catalog import PlanCatalog
from plangate.services.subscription_bootstrap import SubscriptionBootstrap

logger = structlog.get_logger(__name__)


async def run(skip_backfill: bool) -> int:
    """Seed plans and optionally back-fill; returns the process exit code."""
    async with AsyncSessionLocal() as db:
        created = await PlanCatalog(db).seed_default_plans()
        await db.commit()
        logger.info("seed_plans_completed", created=[p.name.value for p in created])

        if skip_backfill:
            return 0

        try:
            result = await SubscriptionBootstrap(db).backfill_missing_subscriptions()
        except PlanNotFoundError as e:
            logger.error("backfill_aborted", error=e.message)
            return 1
        await db.commit()

    await engine.dispose()

    print(f"Created: {result['created']}")
    print(f"Errors:  {result['errors']}")
    return 1 if result["errors"] else 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed plans and back-fill missing subscriptions")
    parser.add_argument(
        "--skip-backfill",
        action="store_true",
        help="Only seed the plan catalog",
    )
    args = parser.parse_args()

    setup_logging()
    sys.exit(asyncio.run(run(args.skip_backfill)))


if __name__ == "__main__":
    main()
