"""
Network commission repository.

Data access layer for the append-only commission ledger.
"""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from referral_network.config.constants import COMMISSION_TYPE_SUBSCRIPTION
from referral_network.models.network_commission import NetworkCommission
from referral_network.repositories.base import BaseRepository


class NetworkCommissionRepository(BaseRepository[NetworkCommission]):
    """Ledger repository. Inserts and reads only."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize network commission repository."""
        super().__init__(NetworkCommission, session)

    async def has_recent_commission(
        self,
        member_id: str,
        since: datetime,
        commission_type: str = COMMISSION_TYPE_SUBSCRIPTION,
    ) -> bool:
        """
        Check whether a commission sourced from a member exists since a date.

        Args:
            member_id: Source member ID
            since: Lower bound for created_at
            commission_type: Commission type to match

        Returns:
            True if at least one matching commission exists
        """
        stmt = (
            select(NetworkCommission.id)
            .where(
                NetworkCommission.member_id == member_id,
                NetworkCommission.commission_type == commission_type,
                NetworkCommission.created_at >= since,
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def get_totals_by_level(self, user_id: str) -> dict[int, int]:
        """
        Get credited totals per level in a single query.

        Args:
            user_id: Beneficiary ID

        Returns:
            Dict mapping level to total amount in cents
        """
        stmt = (
            select(
                NetworkCommission.level,
                func.coalesce(
                    func.sum(NetworkCommission.amount_cents), 0
                ).label("total_cents"),
            )
            .where(NetworkCommission.user_id == user_id)
            .group_by(NetworkCommission.level)
        )
        result = await self.session.execute(stmt)
        return {row.level: int(row.total_cents) for row in result.all()}
