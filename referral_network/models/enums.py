"""
Model enums.

String enums persisted as plain VARCHAR values.
"""

from enum import StrEnum


class SubscriptionStatus(StrEnum):
    """Subscription lifecycle status."""

    ACTIVE = "active"
    PAST_DUE = "past_due"
    UNPAID = "unpaid"
    CANCELED = "canceled"

    @classmethod
    def values(cls) -> frozenset[str]:
        """All persisted values."""
        return frozenset(item.value for item in cls)


class AuditSeverity(StrEnum):
    """Severity attached to audit events."""

    LOW = "low"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    HIGH = "high"
    CRITICAL = "critical"


class AuditEventType(StrEnum):
    """Audit events raised by the network core."""

    CIRCULAR_REFERRAL_BLOCKED = "circular_referral_blocked"
    CYCLE_CHECK_FAILED = "cycle_check_failed"
    CORRUPTED_CHAIN = "corrupted_chain"
    COMMISSION_PERSISTENCE_FAILED = "commission_persistence_failed"
    COMMISSION_ELIGIBILITY_LOOKUP_FAILED = "commission_eligibility_lookup_failed"
