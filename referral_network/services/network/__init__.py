"""
Referral network services package.

Contains modular services for the sponsor graph:
- compensation: Per-level capacity and commission amounts
- cycle_detector: Circular referral detection and chain validation
- tree_builder: Leveled downline views
- sponsor_manager: Sponsor edge writes
- commission_engine: Subscription commissions up the upline
"""

from referral_network.services.network.commission_engine import (
    SubscriptionCommissionService,
)
from referral_network.services.network.compensation import (
    CompensationPlan,
    CompensationPlanProvider,
    CompensationRule,
    DatabaseCompensationPlanProvider,
    StaticCompensationPlanProvider,
)
from referral_network.services.network.cycle_detector import (
    CircularReferralDetector,
    would_create_circular_referral,
)
from referral_network.services.network.sponsor_manager import SponsorManager
from referral_network.services.network.tree_builder import DownlineTreeBuilder


__all__ = [
    # Configuration
    "CompensationPlan",
    "CompensationPlanProvider",
    "CompensationRule",
    "DatabaseCompensationPlanProvider",
    "StaticCompensationPlanProvider",
    # Graph integrity
    "CircularReferralDetector",
    "would_create_circular_referral",
    "SponsorManager",
    # Views
    "DownlineTreeBuilder",
    # Commissions
    "SubscriptionCommissionService",
]
