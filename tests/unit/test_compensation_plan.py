"""
Unit tests for compensation plan loading.

Tests cover:
- Settings payload parsing
- Plan invariants
- Database-backed provider
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from referral_network.services.network.compensation import (
    CompensationPlan,
    CompensationRule,
    DatabaseCompensationPlanProvider,
)
from referral_network.utils.exceptions import ConfigurationError


class TestSettingsPayload:
    """maxMembersPerLevel payloads."""

    def test_default_plan(self, compensation_plan):
        """Capacities 5/25/125 with amounts on the first two levels."""
        assert compensation_plan.depth == 3
        assert compensation_plan.currency == "USD"
        assert compensation_plan.rule_for(1) == CompensationRule(1, 5, 1500)
        assert compensation_plan.rule_for(2) == CompensationRule(2, 25, 1000)
        assert compensation_plan.rule_for(3).commission_amount_cents == 0
        assert compensation_plan.rule_for(4) is None

    def test_amount_only_level_is_uncapped(self):
        """Levels present only in amounts get no capacity limit."""
        plan = CompensationPlan.from_settings_payload(
            {"maxMembersPerLevel": [{"level": 1, "maxMembers": 5}]},
            {1: 1500, 2: 1000},
        )

        assert plan.rule_for(2).has_capacity_limit is False
        assert plan.rule_for(1).has_capacity_limit is True

    def test_currency_defaults_to_settings(self):
        plan = CompensationPlan.from_settings_payload(
            {"maxMembersPerLevel": [{"level": 1, "maxMembers": 5}]},
            {1: 100},
        )

        assert plan.currency == "USD"

    def test_missing_capacity_list(self):
        with pytest.raises(ConfigurationError):
            CompensationPlan.from_settings_payload({"currency": "USD"}, {})

    def test_malformed_entry(self):
        with pytest.raises(ConfigurationError):
            CompensationPlan.from_settings_payload(
                {"maxMembersPerLevel": [{"maxMembers": 5}]}, {}
            )

    @pytest.mark.parametrize(
        "amounts", [{1: 1500, 2: "abc"}, {1: 1500, "two": 1000}]
    )
    def test_malformed_amount_only_level(self, amounts):
        """Bad amounts outside the capacity list are configuration errors."""
        with pytest.raises(ConfigurationError):
            CompensationPlan.from_settings_payload(
                {
                    "maxMembersPerLevel": [{"level": 1, "maxMembers": 5}],
                    "currency": "USD",
                },
                amounts=amounts,
            )


class TestPlanInvariants:
    """from_rules validation."""

    def test_duplicate_level(self):
        with pytest.raises(ConfigurationError, match="Duplicate level"):
            CompensationPlan.from_rules(
                [CompensationRule(1, 5, 100), CompensationRule(1, 5, 200)],
                "USD",
            )

    def test_negative_amount(self):
        with pytest.raises(ConfigurationError):
            CompensationPlan.from_rules([CompensationRule(1, 5, -1)], "USD")

    def test_negative_capacity(self):
        with pytest.raises(ConfigurationError):
            CompensationPlan.from_rules([CompensationRule(1, -5, 100)], "USD")

    def test_level_zero(self):
        with pytest.raises(ConfigurationError):
            CompensationPlan.from_rules([CompensationRule(0, 5, 100)], "USD")

    def test_empty_plan(self):
        with pytest.raises(ConfigurationError, match="no levels"):
            CompensationPlan.from_rules([], "USD")

    def test_invalid_currency(self):
        with pytest.raises(ConfigurationError):
            CompensationPlan.from_rules([CompensationRule(1, 5, 100)], "US")

    def test_currency_upper_cased(self):
        plan = CompensationPlan.from_rules([CompensationRule(1, 5, 100)], "eur")
        assert plan.currency == "EUR"

    def test_gaps_are_allowed(self):
        """Depth is the deepest configured level."""
        plan = CompensationPlan.from_rules(
            [CompensationRule(1, 5, 100), CompensationRule(3, 0, 50)], "USD"
        )

        assert plan.depth == 3
        assert plan.rule_for(2) is None


class TestDatabaseProvider:
    """compensation_levels backed provider."""

    @pytest.mark.asyncio
    async def test_loads_active_levels(self, mock_session):
        provider = DatabaseCompensationPlanProvider(mock_session, currency="usd")
        provider.level_repo.get_ordered_levels = AsyncMock(
            return_value=[
                SimpleNamespace(
                    level=1, max_members=5, commission_amount_cents=1500
                ),
                SimpleNamespace(
                    level=2, max_members=25, commission_amount_cents=1000
                ),
            ]
        )

        plan = await provider.get_plan()

        assert plan.depth == 2
        assert plan.currency == "USD"
        provider.level_repo.get_ordered_levels.assert_awaited_once_with(
            active_only=True
        )

    @pytest.mark.asyncio
    async def test_empty_table_is_configuration_error(self, mock_session):
        provider = DatabaseCompensationPlanProvider(mock_session)
        provider.level_repo.get_ordered_levels = AsyncMock(return_value=[])

        with pytest.raises(ConfigurationError):
            await provider.get_plan()

    @pytest.mark.asyncio
    async def test_store_failure_is_configuration_error(self, mock_session):
        provider = DatabaseCompensationPlanProvider(mock_session)
        provider.level_repo.get_ordered_levels = AsyncMock(
            side_effect=OperationalError("SELECT", {}, Exception("down"))
        )

        with pytest.raises(ConfigurationError):
            await provider.get_plan()
