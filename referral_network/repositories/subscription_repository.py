"""
Subscription repository.

Data access layer for Subscription model.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from referral_network.models.subscription import Subscription
from referral_network.repositories.base import BaseRepository


class SubscriptionRepository(BaseRepository[Subscription]):
    """Subscription repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize subscription repository."""
        super().__init__(Subscription, session)

    async def get_by_user(self, user_id: str) -> Subscription | None:
        """
        Get the subscription of a member.

        Args:
            user_id: Member ID

        Returns:
            Subscription or None if the member never subscribed
        """
        return await self.get_by(user_id=user_id)

    async def get_status(self, user_id: str) -> str | None:
        """
        Get current subscription status of a member.

        Args:
            user_id: Member ID

        Returns:
            Status value or None if the member has no subscription
        """
        stmt = select(Subscription.status).where(
            Subscription.user_id == user_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
