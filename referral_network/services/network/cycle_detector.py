"""
Circular referral detection.

Detects and prevents circular referrals in the sponsor forest.

Example of a circular referral:
    A sponsors B, B sponsors C, then C is set as the sponsor of A.

All traversal state lives in the call (no instance fields are mutated), so
one detector may serve concurrent checks.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from referral_network.config.constants import MAX_CHAIN_DEPTH
from referral_network.domain.network import ChainValidationResult, CycleReport
from referral_network.models.enums import AuditEventType, AuditSeverity
from referral_network.repositories.member_repository import MemberRepository
from referral_network.services.audit import (
    AuditSink,
    LoguruAuditSink,
    safe_record,
)
from referral_network.utils.exceptions import GraphTraversalError


SponsorLookup = Callable[[str], Awaitable[str | None]]


class WalkOutcome(StrEnum):
    """How an upline walk ended."""

    REACHED_ROOT = "reached_root"
    REACHED_TARGET = "reached_target"
    EXISTING_LOOP = "existing_loop"


@dataclass
class UplineWalk:
    """Per-call state and result of one upline walk."""

    outcome: WalkOutcome = WalkOutcome.REACHED_ROOT
    path: list[str] = field(default_factory=list)
    loop_start: str | None = None

    @property
    def found_cycle(self) -> bool:
        return self.outcome != WalkOutcome.REACHED_ROOT

    @property
    def cycle_length(self) -> int:
        """Number of members on the loop that ended the walk."""
        if self.outcome == WalkOutcome.REACHED_TARGET:
            return len(self.path)
        if self.outcome == WalkOutcome.EXISTING_LOOP and self.loop_start:
            return len(self.path) - self.path.index(self.loop_start)
        return 0


async def walk_upline(
    start_id: str, target_id: str, lookup: SponsorLookup
) -> UplineWalk:
    """
    Depth-first walk upward from start_id along sponsor edges.

    Uses an explicit stack instead of recursion; every store read is an
    await point. Stops when target_id is reached, when a sponsor already on
    the current path is met (pre-existing loop) or at a root.

    Args:
        start_id: First member to visit
        target_id: Member whose presence in the upline means a cycle
        lookup: Coroutine returning the sponsor of a member (None for roots)

    Returns:
        UplineWalk describing the outcome
    """
    walk = UplineWalk()
    visited: set[str] = set()
    recursion_stack: set[str] = set()
    stack: list[str] = [start_id]

    while stack:
        node = stack.pop()

        if node == target_id:
            walk.path.append(node)
            walk.outcome = WalkOutcome.REACHED_TARGET
            return walk

        visited.add(node)
        recursion_stack.add(node)
        walk.path.append(node)

        sponsor_id = await lookup(node)
        if sponsor_id is None:
            recursion_stack.discard(node)
            continue

        if sponsor_id in recursion_stack:
            logger.warning(
                "Existing loop found in sponsor chain",
                extra={"member_id": node, "sponsor_id": sponsor_id},
            )
            walk.outcome = WalkOutcome.EXISTING_LOOP
            walk.loop_start = sponsor_id
            return walk

        if sponsor_id not in visited:
            stack.append(sponsor_id)

    return walk


class CircularReferralDetector:
    """
    Cycle checks for the sponsor graph.

    Fails closed: if the graph cannot be read, a cycle is assumed.
    """

    def __init__(
        self,
        session: AsyncSession,
        audit_sink: AuditSink | None = None,
        max_depth: int = MAX_CHAIN_DEPTH,
    ) -> None:
        """
        Initialize detector.

        Args:
            session: Async database session
            audit_sink: Receiver for detected cycles
            max_depth: Bound for chain validation walks
        """
        self.session = session
        self.member_repo = MemberRepository(session)
        self.audit_sink = audit_sink or LoguruAuditSink()
        self.max_depth = max_depth

    async def _lookup_sponsor(self, member_id: str) -> str | None:
        try:
            return await self.member_repo.get_sponsor_id(member_id)
        except SQLAlchemyError as e:
            raise GraphTraversalError(
                f"Sponsor lookup failed for member {member_id}"
            ) from e

    async def would_create_cycle(
        self, new_member_id: str, referrer_id: str
    ) -> bool:
        """
        Check if sponsoring new_member_id by referrer_id would close a loop.

        True when new_member_id is already in referrer_id's upline (or is
        referrer_id itself), when the referrer's upline already contains a
        loop, or when the graph cannot be read.

        Args:
            new_member_id: Member being referred
            referrer_id: Proposed sponsor

        Returns:
            True if the relationship must be denied
        """
        metadata = {
            "new_member_id": new_member_id,
            "referrer_id": referrer_id,
        }

        try:
            walk = await walk_upline(
                referrer_id, new_member_id, self._lookup_sponsor
            )
        except GraphTraversalError as e:
            logger.error(
                "Cycle check failed, denying referral",
                extra={**metadata, "error": str(e)},
            )
            await safe_record(
                self.audit_sink,
                AuditEventType.CYCLE_CHECK_FAILED,
                AuditSeverity.ERROR,
                "Cycle check failed; relationship denied",
                metadata,
            )
            return True

        if walk.found_cycle:
            logger.warning(
                "Circular referral detected",
                extra={**metadata, "outcome": walk.outcome.value},
            )
            await safe_record(
                self.audit_sink,
                AuditEventType.CIRCULAR_REFERRAL_BLOCKED,
                AuditSeverity.HIGH,
                "Circular referral attempt detected",
                {**metadata, "chain": walk.path},
            )

        return walk.found_cycle

    async def validate_referral_chain(
        self, member_id: str
    ) -> ChainValidationResult:
        """
        Validate one member's upline for data integrity checks.

        Walks at most max_depth sponsor hops. chain_length is the number of
        hops walked.

        Args:
            member_id: Member to start from

        Returns:
            ChainValidationResult with errors for loops or truncation
        """
        errors: list[str] = []
        visited: set[str] = set()
        current: str | None = member_id
        depth = 0

        try:
            while current is not None and depth < self.max_depth:
                if current in visited:
                    errors.append(f"Cycle detected at member {current}")
                    break

                visited.add(current)
                current = await self._lookup_sponsor(current)
                if current is not None:
                    depth += 1
        except GraphTraversalError as e:
            logger.error(
                "Error validating referral chain",
                extra={"member_id": member_id, "error": str(e)},
            )
            return ChainValidationResult(
                valid=False,
                max_depth=self.max_depth,
                chain_length=depth,
                errors=["Error during validation"],
            )

        if not errors and current is not None and depth >= self.max_depth:
            errors.append("Maximum referral chain depth exceeded")

        if errors:
            await safe_record(
                self.audit_sink,
                AuditEventType.CORRUPTED_CHAIN,
                AuditSeverity.WARNING,
                "Referral chain validation failed",
                {"member_id": member_id, "errors": errors},
            )

        return ChainValidationResult(
            valid=not errors,
            max_depth=self.max_depth,
            chain_length=depth,
            errors=errors,
        )

    async def find_all_cycles(self) -> list[CycleReport]:
        """
        Find every member whose upline runs into a loop.

        WARNING: loads every sponsor edge; intended for periodic audits, not
        for request paths. Members proven to reach a root are remembered so
        each edge is followed a bounded number of times.

        Returns:
            List of CycleReport

        Raises:
            GraphTraversalError: If the sponsor edges cannot be loaded
        """
        try:
            edges = await self.member_repo.get_sponsor_edges()
        except SQLAlchemyError as e:
            logger.error(
                "Failed to load sponsor edges", extra={"error": str(e)}
            )
            raise GraphTraversalError("Sponsor edges could not be loaded") from e

        reaches_root: set[str] = set()

        async def lookup(node: str) -> str | None:
            if node in reaches_root:
                return None
            return edges.get(node)

        cycles: list[CycleReport] = []
        for member_id, sponsor_id in edges.items():
            if member_id in reaches_root:
                continue

            walk = await walk_upline(sponsor_id, member_id, lookup)
            if walk.found_cycle:
                cycles.append(
                    CycleReport(
                        member_id=member_id, cycle_length=walk.cycle_length
                    )
                )
            else:
                reaches_root.add(member_id)
                reaches_root.update(walk.path)

        if cycles:
            logger.warning(
                "Referral cycles found",
                extra={"count": len(cycles)},
            )
            await safe_record(
                self.audit_sink,
                AuditEventType.CORRUPTED_CHAIN,
                AuditSeverity.CRITICAL,
                "Referral network contains cycles",
                {"members": [c.member_id for c in cycles]},
            )

        logger.info(
            "Cycle sweep finished",
            extra={"members_checked": len(edges), "cycles": len(cycles)},
        )
        return cycles


async def would_create_circular_referral(
    session: AsyncSession, new_member_id: str, referrer_id: str
) -> bool:
    """
    Check if a referral would create a cycle.

    Args:
        session: Async database session
        new_member_id: Member being referred
        referrer_id: Proposed sponsor

    Returns:
        True if the relationship must be denied
    """
    detector = CircularReferralDetector(session)
    return await detector.would_create_cycle(new_member_id, referrer_id)
