#!/usr/bin/env python3
"""
Audit the referral network for circular sponsor chains.

Usage:
    python scripts/audit_referral_cycles.py
    python scripts/audit_referral_cycles.py --member <member_id>

Exits with status 1 if corruption is found.
"""
import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from referral_network.database import create_engine, create_session_maker
from referral_network.services.network.cycle_detector import (
    CircularReferralDetector,
)
from referral_network.utils.exceptions import GraphTraversalError

# Configure logger for script
logger.remove()
logger.add(sys.stderr, level="INFO")


async def audit(member_id: str | None) -> int:
    engine = create_engine(use_null_pool=True)
    session_maker = create_session_maker(engine)
    corrupted = False

    try:
        async with session_maker() as session:
            detector = CircularReferralDetector(session)

            if member_id:
                result = await detector.validate_referral_chain(member_id)
                logger.info(
                    f"Chain of {member_id}: length={result.chain_length} "
                    f"valid={result.valid}"
                )
                for error in result.errors:
                    logger.error(f"  - {error}")
                corrupted = not result.valid

            try:
                cycles = await detector.find_all_cycles()
            except GraphTraversalError as e:
                logger.error(f"Cycle sweep failed: {e}")
                return 2

            if cycles:
                logger.error(f"Found {len(cycles)} members in circular chains:")
                for report in cycles:
                    logger.error(
                        f"  - {report.member_id}: "
                        f"cycle length {report.cycle_length}"
                    )
                corrupted = True
            else:
                logger.success("No circular referral chains found.")
    finally:
        await engine.dispose()

    return 1 if corrupted else 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Audit the referral network for circular sponsor chains"
    )
    parser.add_argument(
        "--member",
        dest="member_id",
        help="Also validate the upline of this member",
    )
    args = parser.parse_args()
    sys.exit(asyncio.run(audit(args.member_id)))


if __name__ == "__main__":
    main()
