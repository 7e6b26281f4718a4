"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from referral_network.models.base import Base
from referral_network.models.compensation_level import CompensationLevel
from referral_network.models.enums import (
    AuditEventType,
    AuditSeverity,
    SubscriptionStatus,
)
from referral_network.models.member import Member
from referral_network.models.network_commission import NetworkCommission
from referral_network.models.subscription import Subscription

__all__ = [
    # Base
    "Base",
    # Enums
    "AuditEventType",
    "AuditSeverity",
    "SubscriptionStatus",
    # Network
    "Member",
    "Subscription",
    # Compensation
    "CompensationLevel",
    "NetworkCommission",
]
