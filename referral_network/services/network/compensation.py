"""
Compensation plan.

Per-level capacity and commission amounts, loaded from the admin-configured
`compensation_levels` table or from a settings payload.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from referral_network.config.settings import settings
from referral_network.repositories.compensation_level_repository import (
    CompensationLevelRepository,
)
from referral_network.utils.exceptions import ConfigurationError


@dataclass(frozen=True)
class CompensationRule:
    """Capacity and commission amount for one level."""

    level: int
    max_members: int
    commission_amount_cents: int

    @property
    def has_capacity_limit(self) -> bool:
        """0 means the level is uncapped."""
        return self.max_members > 0


@dataclass(frozen=True)
class CompensationPlan:
    """Validated compensation plan."""

    rules: dict[int, CompensationRule] = field(default_factory=dict)
    currency: str = "USD"

    @property
    def depth(self) -> int:
        """Deepest configured level."""
        return max(self.rules) if self.rules else 0

    def rule_for(self, level: int) -> CompensationRule | None:
        """Rule for a level, None if not configured."""
        return self.rules.get(level)

    @classmethod
    def from_rules(
        cls, rules: Iterable[CompensationRule], currency: str
    ) -> "CompensationPlan":
        """
        Build plan from rules, validating invariants.

        Args:
            rules: Level rules
            currency: ISO currency code

        Returns:
            CompensationPlan

        Raises:
            ConfigurationError: If levels repeat, values are negative,
                or no level is configured
        """
        by_level: dict[int, CompensationRule] = {}
        for rule in rules:
            if isinstance(rule.level, bool) or not isinstance(rule.level, int):
                raise ConfigurationError(f"Invalid level: {rule.level!r}")
            if rule.level < 1:
                raise ConfigurationError(
                    f"Level must be positive: {rule.level}"
                )
            if rule.level in by_level:
                raise ConfigurationError(f"Duplicate level: {rule.level}")
            if rule.max_members < 0:
                raise ConfigurationError(
                    f"Negative max_members for level {rule.level}"
                )
            if rule.commission_amount_cents < 0:
                raise ConfigurationError(
                    f"Negative commission amount for level {rule.level}"
                )
            by_level[rule.level] = rule

        if not by_level:
            raise ConfigurationError("Compensation plan has no levels")

        if not currency or len(currency) != 3:
            raise ConfigurationError(f"Invalid currency: {currency!r}")

        return cls(rules=by_level, currency=currency.upper())

    @classmethod
    def from_settings_payload(
        cls,
        payload: Mapping[str, Any],
        amounts: Mapping[int, int],
    ) -> "CompensationPlan":
        """
        Build plan from an app-settings payload.

        Args:
            payload: {"maxMembersPerLevel": [{"level", "maxMembers"}],
                      "currency": "USD"}
            amounts: Commission amount in cents per level

        Returns:
            CompensationPlan

        Raises:
            ConfigurationError: If the payload is malformed
        """
        capacities = payload.get("maxMembersPerLevel")
        if not isinstance(capacities, list):
            raise ConfigurationError("maxMembersPerLevel must be a list")

        rules = []
        try:
            for entry in capacities:
                level = int(entry["level"])
                rules.append(
                    CompensationRule(
                        level=level,
                        max_members=int(entry.get("maxMembers", 0)),
                        commission_amount_cents=int(amounts.get(level, 0)),
                    )
                )

            # Amount-only levels are uncapped
            configured = {rule.level for rule in rules}
            for level, amount in amounts.items():
                if int(level) not in configured:
                    rules.append(
                        CompensationRule(
                            level=int(level),
                            max_members=0,
                            commission_amount_cents=int(amount),
                        )
                    )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ConfigurationError(
                f"Malformed compensation settings: {e}"
            ) from e

        return cls.from_rules(
            rules, str(payload.get("currency") or settings.commission_currency)
        )


class CompensationPlanProvider(Protocol):
    """Read-only source of the compensation plan."""

    async def get_plan(self) -> CompensationPlan:
        """Return current plan or raise ConfigurationError."""
        ...


class StaticCompensationPlanProvider:
    """Provider returning a fixed plan."""

    def __init__(self, plan: CompensationPlan) -> None:
        self.plan = plan

    async def get_plan(self) -> CompensationPlan:
        return self.plan


class DatabaseCompensationPlanProvider:
    """Provider reading active rows of `compensation_levels`."""

    def __init__(
        self, session: AsyncSession, currency: str | None = None
    ) -> None:
        """Initialize provider."""
        self.session = session
        self.currency = currency or settings.commission_currency
        self.level_repo = CompensationLevelRepository(session)

    async def get_plan(self) -> CompensationPlan:
        """
        Load plan from the database.

        Returns:
            CompensationPlan

        Raises:
            ConfigurationError: If the table cannot be read or is invalid
        """
        try:
            levels = await self.level_repo.get_ordered_levels(active_only=True)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to load compensation levels",
                extra={"error": str(e)},
            )
            raise ConfigurationError(
                "Compensation levels could not be loaded"
            ) from e

        plan = CompensationPlan.from_rules(
            (
                CompensationRule(
                    level=row.level,
                    max_members=row.max_members,
                    commission_amount_cents=row.commission_amount_cents,
                )
                for row in levels
            ),
            self.currency,
        )

        logger.debug(
            "Compensation plan loaded",
            extra={"depth": plan.depth, "currency": plan.currency},
        )
        return plan
