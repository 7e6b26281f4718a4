"""
Compensation level repository.

Data access layer for CompensationLevel model.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from referral_network.models.compensation_level import CompensationLevel
from referral_network.repositories.base import BaseRepository


class CompensationLevelRepository(BaseRepository[CompensationLevel]):
    """Compensation level repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize compensation level repository."""
        super().__init__(CompensationLevel, session)

    async def get_ordered_levels(
        self, active_only: bool = True
    ) -> list[CompensationLevel]:
        """
        Get level rules ordered by level.

        Args:
            active_only: If True, return only active levels

        Returns:
            List of rules ordered by level
        """
        stmt = select(CompensationLevel).order_by(CompensationLevel.level)

        if active_only:
            stmt = stmt.where(CompensationLevel.is_active == True)  # noqa: E712

        result = await self.session.execute(stmt)
        return list(result.scalars().all())
