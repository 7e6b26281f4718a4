"""
Subscription commission engine.

Credits network commissions up the upline when a member's subscription
becomes active.

Each level is an independent unit of work: a failed lookup or ledger write
for one ancestor is logged and skipped, and the walk continues upward.
Transactions are committed per level, so the session handed to the engine
must not carry uncommitted caller work.
"""

from collections.abc import Mapping
from typing import Any

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from referral_network.config.constants import (
    COMMISSION_TYPE_SUBSCRIPTION,
    MAX_CHAIN_DEPTH,
)
from referral_network.config.settings import settings
from referral_network.domain.network import (
    CommissionRecord,
    CommissionResult,
    SkippedLevel,
    SkipReason,
    SubscriptionRecord,
)
from referral_network.models.enums import (
    AuditEventType,
    AuditSeverity,
    SubscriptionStatus,
)
from referral_network.repositories.member_repository import MemberRepository
from referral_network.repositories.network_commission_repository import (
    NetworkCommissionRepository,
)
from referral_network.repositories.subscription_repository import (
    SubscriptionRepository,
)
from referral_network.services.audit import (
    AuditSink,
    LoguruAuditSink,
    safe_record,
)
from referral_network.services.network.compensation import (
    CompensationPlanProvider,
    CompensationRule,
    DatabaseCompensationPlanProvider,
)
from referral_network.utils.datetime_utils import days_ago, utc_now
from referral_network.utils.exceptions import (
    CommissionPersistenceError,
    EligibilityLookupError,
    is_already_recorded,
)


class SubscriptionCommissionService:
    """
    Calculates and records network commissions for subscription activations.

    Only ancestors with an active subscription and free capacity at the
    level are credited.
    """

    def __init__(
        self,
        session: AsyncSession,
        plan_provider: CompensationPlanProvider | None = None,
        audit_sink: AuditSink | None = None,
        max_depth: int | None = None,
    ) -> None:
        """
        Initialize commission service.

        Args:
            session: Async database session
            plan_provider: Source of the compensation plan
                (defaults to the compensation_levels table)
            audit_sink: Receiver for commission failures
            max_depth: Safety cap on the upline walk (settings default)
        """
        self.session = session
        self.member_repo = MemberRepository(session)
        self.subscription_repo = SubscriptionRepository(session)
        self.commission_repo = NetworkCommissionRepository(session)
        self.plan_provider = plan_provider or DatabaseCompensationPlanProvider(
            session
        )
        self.audit_sink = audit_sink or LoguruAuditSink()
        self.max_depth = min(
            max_depth or settings.max_chain_depth, MAX_CHAIN_DEPTH
        )

    async def process_subscription_commission(
        self,
        subscription: SubscriptionRecord,
        was_previously_active: bool = False,
    ) -> list[CommissionRecord]:
        """
        Process commissions for a subscription that became active.

        Args:
            subscription: Subscription state after the update
            was_previously_active: Whether it was already active before

        Returns:
            Commission records created for this activation

        Raises:
            ConfigurationError: If the compensation plan is unavailable
        """
        result = await self.process_activation(
            subscription, was_previously_active
        )
        return result.records

    async def process_activation(
        self,
        subscription: SubscriptionRecord,
        was_previously_active: bool = False,
    ) -> CommissionResult:
        """
        Process an activation and report credited and skipped levels.

        Args:
            subscription: Subscription state after the update
            was_previously_active: Whether it was already active before

        Returns:
            CommissionResult with records and skipped levels

        Raises:
            ConfigurationError: If the compensation plan is unavailable
        """
        # Renewals and webhook re-deliveries must not re-credit the upline
        if not subscription.is_active or was_previously_active:
            logger.debug(
                "Skipping commission processing",
                extra={
                    "user_id": subscription.user_id,
                    "status": subscription.status,
                    "was_previously_active": was_previously_active,
                },
            )
            return CommissionResult()

        plan = await self.plan_provider.get_plan()
        depth = min(plan.depth, self.max_depth)
        member_id = subscription.user_id

        logger.info(
            "Processing subscription commission",
            extra={
                "user_id": member_id,
                "subscription_id": subscription.id,
                "depth": depth,
            },
        )

        result = CommissionResult()
        seen = {member_id}
        current = member_id

        for level in range(1, depth + 1):
            ancestor_id = await self._next_ancestor(current, level)
            if ancestor_id is None:
                break

            if ancestor_id in seen:
                logger.warning(
                    "Loop in upline, stopping commission walk",
                    extra={
                        "user_id": member_id,
                        "ancestor_id": ancestor_id,
                        "level": level,
                    },
                )
                await safe_record(
                    self.audit_sink,
                    AuditEventType.CORRUPTED_CHAIN,
                    AuditSeverity.HIGH,
                    "Loop found in upline during commission walk",
                    {"user_id": member_id, "ancestor_id": ancestor_id},
                )
                break

            seen.add(ancestor_id)
            current = ancestor_id
            result.levels_walked = level

            rule = plan.rule_for(level)
            if rule is None or rule.commission_amount_cents <= 0:
                result.skipped.append(
                    SkippedLevel(level, ancestor_id, SkipReason.NOT_CONFIGURED)
                )
                continue

            outcome = await self._credit_level(
                subscription, ancestor_id, level, rule, plan.currency
            )
            if isinstance(outcome, CommissionRecord):
                result.records.append(outcome)
            else:
                result.skipped.append(outcome)

        logger.info(
            "Subscription commissions processed",
            extra={
                "user_id": member_id,
                "subscription_id": subscription.id,
                "levels_walked": result.levels_walked,
                "records": len(result.records),
                "skipped": [
                    f"{s.level}:{s.reason.value}" for s in result.skipped
                ],
                "total_cents": result.total_cents,
            },
        )

        return result

    async def _next_ancestor(self, member_id: str, level: int) -> str | None:
        """Sponsor of member_id; None at a root or if it cannot be read."""
        try:
            return await self.member_repo.get_sponsor_id(member_id)
        except SQLAlchemyError as e:
            # Nothing above this point can be reached
            logger.error(
                "Upline lookup failed, stopping commission walk",
                extra={"member_id": member_id, "level": level, "error": str(e)},
            )
            await self._rollback()
            return None

    async def _check_eligibility(
        self,
        ancestor_id: str,
        level: int,
        rule: CompensationRule,
        source_member_id: str,
    ) -> SkipReason | None:
        """
        Check whether an ancestor may be credited at a level.

        The capacity count covers currently active descendants at exactly
        this level, excluding the member being credited for.

        Returns:
            None if eligible, otherwise the skip reason

        Raises:
            EligibilityLookupError: If status or capacity cannot be read
        """
        try:
            status = await self.subscription_repo.get_status(ancestor_id)
            if status != SubscriptionStatus.ACTIVE:
                return SkipReason.INACTIVE

            if rule.has_capacity_limit:
                # Serializes concurrent credits to the same ancestor
                await self.member_repo.lock_member(ancestor_id)
                active_count = (
                    await self.member_repo.count_active_members_at_level(
                        ancestor_id,
                        level,
                        exclude_member_id=source_member_id,
                    )
                )
                logger.debug(
                    "Capacity check",
                    extra={
                        "ancestor_id": ancestor_id,
                        "level": level,
                        "active_members": active_count,
                        "max_members": rule.max_members,
                    },
                )
                if active_count >= rule.max_members:
                    return SkipReason.CAPACITY_REACHED
        except SQLAlchemyError as e:
            raise EligibilityLookupError(ancestor_id, level) from e

        return None

    async def _credit_level(
        self,
        subscription: SubscriptionRecord,
        ancestor_id: str,
        level: int,
        rule: CompensationRule,
        currency: str,
    ) -> CommissionRecord | SkippedLevel:
        """Evaluate and credit one ancestor; never raises store errors."""
        log_extra = {
            "ancestor_id": ancestor_id,
            "user_id": subscription.user_id,
            "level": level,
        }

        try:
            reason = await self._check_eligibility(
                ancestor_id, level, rule, subscription.user_id
            )
        except EligibilityLookupError as e:
            logger.warning(
                "Eligibility lookup failed, level skipped",
                extra={**log_extra, "error": str(e.__cause__ or e)},
            )
            await self._rollback()
            await safe_record(
                self.audit_sink,
                AuditEventType.COMMISSION_ELIGIBILITY_LOOKUP_FAILED,
                AuditSeverity.WARNING,
                "Commission eligibility lookup failed",
                log_extra,
            )
            return SkippedLevel(level, ancestor_id, SkipReason.LOOKUP_FAILED)

        if reason is not None:
            logger.info(
                "Ancestor not eligible for commission",
                extra={**log_extra, "reason": reason.value},
            )
            # Ends the read transaction and releases the row lock
            await self.session.commit()
            return SkippedLevel(level, ancestor_id, reason)

        try:
            return await self._insert_commission(
                subscription, ancestor_id, level, rule, currency
            )
        except CommissionPersistenceError as e:
            logger.error(
                "Commission persistence failed, level skipped",
                extra={**log_extra, "error": str(e.__cause__ or e)},
            )
            await safe_record(
                self.audit_sink,
                AuditEventType.COMMISSION_PERSISTENCE_FAILED,
                AuditSeverity.ERROR,
                "Failed to record network commission",
                {
                    **log_extra,
                    "subscription_id": subscription.id,
                    "amount_cents": rule.commission_amount_cents,
                },
            )
            return SkippedLevel(
                level, ancestor_id, SkipReason.PERSISTENCE_FAILED
            )
        except IntegrityError:
            logger.info(
                "Commission already recorded for this activation",
                extra={**log_extra, "activation_key": subscription.activation_key},
            )
            return SkippedLevel(level, ancestor_id, SkipReason.DUPLICATE)

    async def _insert_commission(
        self,
        subscription: SubscriptionRecord,
        ancestor_id: str,
        level: int,
        rule: CompensationRule,
        currency: str,
    ) -> CommissionRecord:
        """
        Write one ledger row and commit it.

        Raises:
            IntegrityError: If this activation was already credited
            CommissionPersistenceError: On any other store failure
        """
        activation_key = subscription.activation_key
        try:
            entry = await self.commission_repo.create(
                user_id=ancestor_id,
                member_id=subscription.user_id,
                level=level,
                amount_cents=rule.commission_amount_cents,
                currency=currency,
                commission_type=COMMISSION_TYPE_SUBSCRIPTION,
                subscription_id=subscription.id,
                activation_key=activation_key,
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self._rollback()
            # Unique violation only counts as a duplicate if the row is there
            if is_already_recorded(e) and await self._is_already_recorded(
                ancestor_id, subscription.user_id, activation_key
            ):
                raise
            raise CommissionPersistenceError(ancestor_id, level) from e

        record = CommissionRecord(
            beneficiary_user_id=ancestor_id,
            source_member_id=subscription.user_id,
            level=level,
            amount_cents=rule.commission_amount_cents,
            created_at=entry.created_at or utc_now(),
            currency=currency,
            id=entry.id,
        )

        logger.info(
            "Network commission recorded",
            extra={
                "commission_id": entry.id,
                "ancestor_id": ancestor_id,
                "user_id": subscription.user_id,
                "level": level,
                "amount_cents": rule.commission_amount_cents,
                "currency": currency,
            },
        )
        return record

    async def _is_already_recorded(
        self, ancestor_id: str, member_id: str, activation_key: str
    ) -> bool:
        try:
            return await self.commission_repo.exists(
                user_id=ancestor_id,
                member_id=member_id,
                activation_key=activation_key,
            )
        except SQLAlchemyError:
            await self._rollback()
            return False

    async def _rollback(self) -> None:
        try:
            await self.session.rollback()
        except SQLAlchemyError as e:
            logger.error("Rollback failed", extra={"error": str(e)})

    async def was_subscription_previously_active(self, user_id: str) -> bool:
        """
        Check if a subscription commission was recorded recently for a user.

        Args:
            user_id: Member whose subscription changed

        Returns:
            True if a commission sourced from this member exists within the
            configured window (False if it cannot be determined)
        """
        since = days_ago(settings.commission_recent_window_days)
        try:
            return await self.commission_repo.has_recent_commission(
                user_id, since
            )
        except SQLAlchemyError as e:
            logger.warning(
                "Could not check previous subscription activity",
                extra={"user_id": user_id, "error": str(e)},
            )
            await self._rollback()
            return False

    async def handle_subscription_update(
        self, subscription: SubscriptionRecord | Mapping[str, Any]
    ) -> list[CommissionRecord]:
        """
        Entry point for subscription lifecycle handlers.

        Determines was_previously_active from the ledger and processes the
        activation.

        Args:
            subscription: SubscriptionRecord or webhook-style mapping

        Returns:
            Commission records created
        """
        if not isinstance(subscription, SubscriptionRecord):
            subscription = SubscriptionRecord.from_mapping(subscription)

        if not subscription.is_active:
            return []

        was_active = await self.was_subscription_previously_active(
            subscription.user_id
        )
        return await self.process_subscription_commission(
            subscription, was_active
        )
