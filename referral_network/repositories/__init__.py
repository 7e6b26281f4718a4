"""
Repositories package.

Data access layer for the referral network models.
"""

from referral_network.repositories.base import BaseRepository
from referral_network.repositories.compensation_level_repository import (
    CompensationLevelRepository,
)
from referral_network.repositories.member_repository import MemberRepository
from referral_network.repositories.network_commission_repository import (
    NetworkCommissionRepository,
)
from referral_network.repositories.subscription_repository import (
    SubscriptionRepository,
)

__all__ = [
    "BaseRepository",
    "CompensationLevelRepository",
    "MemberRepository",
    "NetworkCommissionRepository",
    "SubscriptionRepository",
]
