"""
Shared fixtures for unit tests.

This module provides common fixtures used across multiple test modules:
- Compensation plan matching the default three-level configuration
- Active subscription records
- In-memory sponsor graph wired into repository mocks
"""

import itertools
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from referral_network.domain.network import SubscriptionRecord
from referral_network.services.network.compensation import CompensationPlan
from referral_network.utils.datetime_utils import utc_now


@pytest.fixture
def compensation_plan():
    """
    Plan with capacities 5/25/125 and amounts for levels 1 and 2.

    Returns:
        CompensationPlan: Level 3 is configured without an amount
    """
    return CompensationPlan.from_settings_payload(
        {
            "maxMembersPerLevel": [
                {"level": 1, "maxMembers": 5},
                {"level": 2, "maxMembers": 25},
                {"level": 3, "maxMembers": 125},
            ],
            "currency": "USD",
        },
        {1: 1500, 2: 1000},
    )


@pytest.fixture
def active_subscription():
    """Active subscription of user1."""
    return SubscriptionRecord(
        id="sub_123",
        user_id="user1",
        status="active",
        gateway="stripe",
    )


class FakeNetwork:
    """
    Sponsor graph and subscription state backing repository mocks.

    Attributes:
        sponsors: member_id -> sponsor_id
        statuses: member_id -> subscription status
        active_counts: (ancestor_id, level) -> active members at that level
    """

    def __init__(self):
        self.sponsors: dict[str, str | None] = {}
        self.statuses: dict[str, str | None] = {}
        self.active_counts: dict[tuple[str, int], int] = {}
        self._ids = itertools.count(1)

        self.member_repo = MagicMock()
        self.member_repo.get_sponsor_id = AsyncMock(
            side_effect=lambda member_id: self.sponsors.get(member_id)
        )
        self.member_repo.lock_member = AsyncMock(
            side_effect=lambda member_id: member_id
        )
        self.member_repo.count_active_members_at_level = AsyncMock(
            side_effect=lambda ancestor_id, level, exclude_member_id=None: (
                self.active_counts.get((ancestor_id, level), 0)
            )
        )

        self.subscription_repo = MagicMock()
        self.subscription_repo.get_status = AsyncMock(
            side_effect=lambda user_id: self.statuses.get(user_id)
        )

        self.commission_repo = MagicMock()
        self.commission_repo.create = AsyncMock(side_effect=self._create)
        self.commission_repo.exists = AsyncMock(return_value=True)
        self.commission_repo.has_recent_commission = AsyncMock(
            return_value=False
        )

    def _create(self, **data):
        return SimpleNamespace(id=next(self._ids), created_at=utc_now(), **data)

    def chain(self, *member_ids: str, status: str = "active") -> None:
        """Link members so each one is sponsored by the next."""
        for member_id, sponsor_id in zip(member_ids, member_ids[1:]):
            self.sponsors[member_id] = sponsor_id
        for member_id in member_ids[1:]:
            self.statuses.setdefault(member_id, status)

    def wire(self, service) -> None:
        """Replace the repositories of a service with the fakes."""
        service.member_repo = self.member_repo
        service.subscription_repo = self.subscription_repo
        service.commission_repo = self.commission_repo


@pytest.fixture
def network():
    """Empty fake sponsor graph."""
    return FakeNetwork()
