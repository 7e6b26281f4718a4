#!/usr/bin/env python3
"""
Show a sponsor's subscription status, per-level capacity usage and
credited commission totals.

Usage:
    python scripts/check_sponsor_capacity.py <member_id>
"""
import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from referral_network.database import create_engine, create_session_maker
from referral_network.repositories import (
    MemberRepository,
    NetworkCommissionRepository,
    SubscriptionRepository,
)
from referral_network.services.network.compensation import (
    DatabaseCompensationPlanProvider,
)
from referral_network.services.network.tree_builder import DownlineTreeBuilder
from referral_network.utils.exceptions import (
    ConfigurationError,
    GraphTraversalError,
)

# Configure logger for script
logger.remove()
logger.add(sys.stderr, level="INFO")


async def check(member_id: str) -> int:
    engine = create_engine(use_null_pool=True)
    session_maker = create_session_maker(engine)

    try:
        async with session_maker() as session:
            member = await MemberRepository(session).get_by_id(member_id)
            if not member:
                logger.error(f"Member {member_id} not found")
                return 1

            status = await SubscriptionRepository(session).get_status(
                member_id
            )
            logger.info(f"Member: {member.email or member.id}")
            logger.info(f"  Subscription: {status or 'none'}")
            logger.info(f"  Phase: {member.phase}")

            try:
                plan = await DatabaseCompensationPlanProvider(
                    session
                ).get_plan()
            except ConfigurationError as e:
                logger.error(f"Compensation plan unavailable: {e}")
                return 1

            try:
                downline = await DownlineTreeBuilder(
                    session
                ).fetch_leveled_downline(member_id, max_levels=plan.depth)
            except GraphTraversalError as e:
                logger.error(f"Downline traversal failed: {e}")
                return 1

            totals = await NetworkCommissionRepository(
                session
            ).get_totals_by_level(member_id)

            for level in range(1, plan.depth + 1):
                rule = plan.rule_for(level)
                active = len(downline.active_members(level))
                total = len(downline.members_at(level))
                if rule is None:
                    logger.info(f"  Level {level}: not configured")
                    continue

                cap = (
                    str(rule.max_members)
                    if rule.has_capacity_limit
                    else "unlimited"
                )
                line = (
                    f"  Level {level}: {active} active / {total} total, "
                    f"capacity {cap}, "
                    f"{rule.commission_amount_cents} {plan.currency} cents, "
                    f"credited {totals.get(level, 0)} cents"
                )
                if rule.has_capacity_limit and active >= rule.max_members:
                    logger.warning(line + " (FULL)")
                else:
                    logger.info(line)
    finally:
        await engine.dispose()

    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Show a sponsor's capacity usage per level"
    )
    parser.add_argument("member_id", help="Sponsor member ID")
    args = parser.parse_args()
    sys.exit(asyncio.run(check(args.member_id)))


if __name__ == "__main__":
    main()
