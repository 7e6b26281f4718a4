"""
Downline tree builder.

Turns the flattened traversal rows of a member's downline into a leveled
view for dashboards and reports. Rows are untrusted: each one is validated
and malformed rows are dropped without failing the fetch.
"""

from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from referral_network.config.constants import (
    DEFAULT_DOWNLINE_LEVELS,
    LEGACY_TREE_LEVELS,
    MAX_CHAIN_DEPTH,
)
from referral_network.domain.network import LeveledDownline, TwoLevelDownline
from referral_network.repositories.member_repository import MemberRepository
from referral_network.utils.exceptions import GraphTraversalError
from referral_network.validators.downline import validate_downline_row


DownlineRowSource = Callable[[str, int], Awaitable[list[Mapping[str, Any]]]]


class DownlineTreeBuilder:
    """Builds leveled downline views."""

    def __init__(
        self,
        session: AsyncSession,
        row_source: DownlineRowSource | None = None,
    ) -> None:
        """
        Initialize tree builder.

        Args:
            session: Async database session
            row_source: Traversal query returning raw rows for
                (member_id, max_levels). Defaults to the recursive CTE of
                MemberRepository.
        """
        self.session = session
        self.member_repo = MemberRepository(session)
        self.row_source = row_source or self.member_repo.fetch_downline_rows

    async def fetch_leveled_downline(
        self, member_id: str, max_levels: int = DEFAULT_DOWNLINE_LEVELS
    ) -> LeveledDownline:
        """
        Fetch a member's downline bucketed by level.

        Args:
            member_id: Root of the downline
            max_levels: Deepest level to include (clamped to 1..50)

        Returns:
            LeveledDownline; max_level_reached is 0 for an empty downline

        Raises:
            GraphTraversalError: If the traversal query fails
        """
        max_levels = max(1, min(max_levels, MAX_CHAIN_DEPTH))

        try:
            rows = await self.row_source(member_id, max_levels)
        except SQLAlchemyError as e:
            logger.error(
                "Downline traversal failed",
                extra={"member_id": member_id, "error": str(e)},
            )
            raise GraphTraversalError(
                f"Downline traversal failed for member {member_id}"
            ) from e

        downline = LeveledDownline()
        dropped = 0

        for row in rows or []:
            is_valid, member, error = validate_downline_row(row)
            if not is_valid or member is None:
                dropped += 1
                logger.debug(
                    "Dropping malformed downline row",
                    extra={"member_id": member_id, "reason": error},
                )
                continue

            if member.level > max_levels:
                dropped += 1
                continue

            downline.levels.setdefault(member.level, []).append(member)
            downline.max_level_reached = max(
                downline.max_level_reached, member.level
            )

        logger.debug(
            "Leveled downline built",
            extra={
                "member_id": member_id,
                "max_levels": max_levels,
                "max_level_reached": downline.max_level_reached,
                "total_members": downline.total_members,
                "dropped_rows": dropped,
            },
        )

        return downline

    async def fetch_two_level_downline(
        self, member_id: str
    ) -> TwoLevelDownline:
        """
        Fetch direct and second-level referrals (legacy shape).

        Args:
            member_id: Root of the downline

        Returns:
            TwoLevelDownline with level1 and level2 lists
        """
        downline = await self.fetch_leveled_downline(
            member_id, max_levels=LEGACY_TREE_LEVELS
        )
        return TwoLevelDownline(
            level1=downline.members_at(1),
            level2=downline.members_at(2),
        )

    async def is_in_downline(
        self,
        member_id: str,
        candidate_id: str,
        max_levels: int = LEGACY_TREE_LEVELS,
    ) -> bool:
        """
        Check whether candidate_id belongs to member_id's downline.

        Used to authorize team messages, which reach the first two levels.

        Args:
            member_id: Root of the downline
            candidate_id: Member to look for
            max_levels: Depth searched

        Returns:
            True if candidate is within max_levels below member
        """
        downline = await self.fetch_leveled_downline(member_id, max_levels)
        return any(
            m.id == candidate_id
            for members in downline.levels.values()
            for m in members
        )
