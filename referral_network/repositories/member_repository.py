"""
Member repository.

Data access layer for the sponsor graph: point lookups, sponsor edge writes
and recursive downline/upline traversal.
"""

from typing import Any

from sqlalchemy import select, text, update
from sqlalchemy.ext.asyncio import AsyncSession

from referral_network.models.enums import SubscriptionStatus
from referral_network.models.member import Member
from referral_network.repositories.base import BaseRepository


# Flattens a downline into one row per descendant per level.
# Bounded by :max_levels so corrupted (cyclic) data cannot recurse forever.
DOWNLINE_ROWS_QUERY = """
    WITH RECURSIVE downline(id, level) AS (
        -- Base case: direct referrals
        SELECT m.id, 1 AS level
        FROM members m
        WHERE m.sponsor_id = :member_id

        UNION ALL

        -- Recursive case: referrals of the previous level
        SELECT m.id, d.level + 1 AS level
        FROM members m
        INNER JOIN downline d ON m.sponsor_id = d.id
        WHERE d.level < :max_levels
    )
    SELECT
        d.id AS descendant_id,
        m.email AS email,
        m.name AS name,
        s.status AS status,
        d.level AS level,
        m.phase AS phase,
        m.allow_team_messages AS allow_team_messages
    FROM downline d
    INNER JOIN members m ON m.id = d.id
    LEFT JOIN subscriptions s ON s.user_id = d.id
    ORDER BY d.level ASC, m.created_at ASC
"""

# Walks the sponsor edges upward; level 1 is the direct sponsor.
UPLINE_QUERY = """
    WITH RECURSIVE upline(id, sponsor_id, level) AS (
        SELECT m.id, m.sponsor_id, 0 AS level
        FROM members m
        WHERE m.id = :member_id

        UNION ALL

        SELECT m.id, m.sponsor_id, u.level + 1 AS level
        FROM members m
        INNER JOIN upline u ON m.id = u.sponsor_id
        WHERE u.level < :depth
    )
    SELECT id, level
    FROM upline
    WHERE level > 0
    ORDER BY level ASC
"""

# Active descendants at exactly :level below :ancestor_id.
ACTIVE_AT_LEVEL_QUERY = """
    WITH RECURSIVE downline(id, depth) AS (
        SELECT m.id, 1 AS depth
        FROM members m
        WHERE m.sponsor_id = :ancestor_id

        UNION ALL

        SELECT m.id, d.depth + 1 AS depth
        FROM members m
        INNER JOIN downline d ON m.sponsor_id = d.id
        WHERE d.depth < :level
    )
    SELECT COUNT(DISTINCT d.id)
    FROM downline d
    INNER JOIN subscriptions s ON s.user_id = d.id
    WHERE d.depth = :level
      AND s.status = :active_status
"""


class MemberRepository(BaseRepository[Member]):
    """Member repository with sponsor graph queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize member repository."""
        super().__init__(Member, session)

    async def get_sponsor_id(self, member_id: str) -> str | None:
        """
        Get the sponsor of a member.

        Args:
            member_id: Member ID

        Returns:
            Sponsor ID, or None for roots and unknown members
        """
        stmt = select(Member.sponsor_id).where(Member.id == member_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_referral_code(self, referral_code: str) -> Member | None:
        """
        Get member by referral code.

        Args:
            referral_code: Referral code

        Returns:
            Member or None if not found
        """
        return await self.get_by(referral_code=referral_code)

    async def set_sponsor(self, member_id: str, sponsor_id: str | None) -> bool:
        """
        Write the sponsor edge of a member.

        Args:
            member_id: Member ID
            sponsor_id: New sponsor ID (None detaches the member)

        Returns:
            True if a row was updated
        """
        stmt = (
            update(Member)
            .where(Member.id == member_id)
            .values(sponsor_id=sponsor_id)
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount > 0

    async def lock_member(self, member_id: str) -> str | None:
        """
        Lock a member row until the current transaction ends.

        Serializes capacity checks for the same ancestor. Backends without
        row locks (SQLite) ignore FOR UPDATE.

        Args:
            member_id: Member ID

        Returns:
            Member ID if the row exists
        """
        stmt = (
            select(Member.id)
            .where(Member.id == member_id)
            .with_for_update()
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_sponsor_edges(self) -> dict[str, str]:
        """
        Get every sponsor edge in the graph.

        Only IDs are loaded; used by integrity sweeps.

        Returns:
            Dict mapping member ID to sponsor ID
        """
        stmt = select(Member.id, Member.sponsor_id).where(
            Member.sponsor_id.is_not(None)
        )
        result = await self.session.execute(stmt)
        return {row.id: row.sponsor_id for row in result.all()}

    async def fetch_downline_rows(
        self, member_id: str, max_levels: int
    ) -> list[dict[str, Any]]:
        """
        Flatten a member's downline (PostgreSQL/SQLite recursive CTE).

        Args:
            member_id: Root of the downline
            max_levels: Deepest level to return

        Returns:
            One mapping per descendant with keys descendant_id, email, name,
            status, level, phase, allow_team_messages
        """
        result = await self.session.execute(
            text(DOWNLINE_ROWS_QUERY),
            {"member_id": member_id, "max_levels": max_levels},
        )
        return [dict(row) for row in result.mappings().all()]

    async def get_upline_ids(self, member_id: str, depth: int) -> list[str]:
        """
        Get the upline of a member in a single query.

        Args:
            member_id: Member ID
            depth: Number of levels to retrieve

        Returns:
            Sponsor IDs ordered from direct sponsor upward
        """
        result = await self.session.execute(
            text(UPLINE_QUERY), {"member_id": member_id, "depth": depth}
        )
        return [row.id for row in result.all()]

    async def count_active_members_at_level(
        self,
        ancestor_id: str,
        level: int,
        exclude_member_id: str | None = None,
    ) -> int:
        """
        Count active descendants at exactly `level` below an ancestor.

        Args:
            ancestor_id: Sponsor whose downline is counted
            level: Distance from the ancestor (1 = direct referrals)
            exclude_member_id: Member left out of the count

        Returns:
            Number of descendants at that level with an active subscription
        """
        query = ACTIVE_AT_LEVEL_QUERY
        params: dict[str, Any] = {
            "ancestor_id": ancestor_id,
            "level": level,
            "active_status": SubscriptionStatus.ACTIVE.value,
        }
        if exclude_member_id is not None:
            query += "  AND d.id <> :exclude_member_id\n"
            params["exclude_member_id"] = exclude_member_id

        result = await self.session.execute(text(query), params)
        return result.scalar() or 0
