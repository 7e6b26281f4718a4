"""
Sponsor edge management.

Handles referral signup and administrative sponsor reassignment. Every new
edge passes the cycle detector before it is written.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from referral_network.config.constants import MAX_CHAIN_DEPTH
from referral_network.repositories.member_repository import MemberRepository
from referral_network.services.network.cycle_detector import (
    CircularReferralDetector,
)
from referral_network.utils.db_decorators import with_rollback_on_error
from referral_network.utils.exceptions import SponsorAssignmentError


class SponsorManager:
    """Manages sponsor edges of the referral forest."""

    def __init__(
        self,
        session: AsyncSession,
        detector: CircularReferralDetector | None = None,
    ) -> None:
        """Initialize sponsor manager."""
        self.session = session
        self.member_repo = MemberRepository(session)
        self.detector = detector or CircularReferralDetector(session)

    async def get_upline(
        self, member_id: str, depth: int = MAX_CHAIN_DEPTH
    ) -> list[str]:
        """
        Get the upline of a member (recursive CTE).

        Args:
            member_id: Member ID
            depth: Number of levels to retrieve (capped at 50)

        Returns:
            Sponsor IDs from direct sponsor upward
        """
        depth = max(0, min(depth, MAX_CHAIN_DEPTH))
        chain = await self.member_repo.get_upline_ids(member_id, depth)

        logger.debug(
            "Upline retrieved",
            extra={
                "member_id": member_id,
                "depth": depth,
                "chain_length": len(chain),
            },
        )
        return chain

    async def _check_assignment(
        self, member_id: str, sponsor_id: str, allow_override: bool
    ) -> bool:
        """
        Validate a proposed sponsor edge.

        Returns:
            False if the edge already exists (nothing to write)

        Raises:
            SponsorAssignmentError: If the edge is not allowed
        """
        if member_id == sponsor_id:
            raise SponsorAssignmentError("A member cannot sponsor themselves")

        # Reciprocal overrides (A->B, B->A) serialize on these two rows
        for locked_id in sorted((member_id, sponsor_id)):
            await self.member_repo.lock_member(locked_id)

        member = await self.member_repo.get_by_id(member_id)
        if not member:
            raise SponsorAssignmentError("Member not found")

        sponsor = await self.member_repo.get_by_id(sponsor_id)
        if not sponsor:
            raise SponsorAssignmentError("Sponsor not found")

        if member.sponsor_id == sponsor_id:
            return False

        if member.sponsor_id is not None and not allow_override:
            raise SponsorAssignmentError("Sponsor already assigned")

        if await self.detector.would_create_cycle(member_id, sponsor_id):
            raise SponsorAssignmentError(
                "Sponsor assignment would create a circular referral chain"
            )

        return True

    @with_rollback_on_error
    async def assign_sponsor(
        self,
        member_id: str,
        sponsor_id: str,
        allow_override: bool = False,
    ) -> tuple[bool, str | None]:
        """
        Set the sponsor of a member.

        The sponsor is normally set once at registration; allow_override is
        for administrative reassignment and is still cycle-checked. Both member
        rows are locked before the cycle check and released on rejection.
        Concurrent writes of unrelated edges that only close a loop together
        are not serialized; `find_all_cycles` reports them.

        Args:
            member_id: Member being placed
            sponsor_id: Proposed sponsor
            allow_override: Replace an existing sponsor

        Returns:
            Tuple of (success, error_message)
        """
        try:
            needs_write = await self._check_assignment(
                member_id, sponsor_id, allow_override
            )
        except SponsorAssignmentError as e:
            logger.warning(
                "Sponsor assignment rejected",
                extra={
                    "member_id": member_id,
                    "sponsor_id": sponsor_id,
                    "reason": str(e),
                },
            )
            await self.session.rollback()
            return False, str(e)

        if not needs_write:
            return True, None

        await self.member_repo.set_sponsor(member_id, sponsor_id)
        await self.session.commit()

        logger.info(
            "Sponsor assigned",
            extra={
                "member_id": member_id,
                "sponsor_id": sponsor_id,
                "override": allow_override,
            },
        )
        return True, None

    async def assign_by_referral_code(
        self, member_id: str, referral_code: str
    ) -> tuple[bool, str | None]:
        """
        Place a newly registered member under the owner of a referral code.

        Args:
            member_id: New member ID
            referral_code: Code used at signup

        Returns:
            Tuple of (success, error_message)
        """
        sponsor = await self.member_repo.get_by_referral_code(referral_code)
        if not sponsor:
            return False, "Referral code not found"

        return await self.assign_sponsor(member_id, sponsor.id)
