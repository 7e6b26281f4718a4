"""
Domain value objects.

Immutable records exchanged between the network services, independent of
the storage layer.
"""

from referral_network.domain.network import (
    ChainValidationResult,
    CommissionRecord,
    CommissionResult,
    CycleReport,
    DownlineMember,
    LeveledDownline,
    SkippedLevel,
    SkipReason,
    SubscriptionRecord,
    TwoLevelDownline,
)

__all__ = [
    "ChainValidationResult",
    "CommissionRecord",
    "CommissionResult",
    "CycleReport",
    "DownlineMember",
    "LeveledDownline",
    "SkippedLevel",
    "SkipReason",
    "SubscriptionRecord",
    "TwoLevelDownline",
]
