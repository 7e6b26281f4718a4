"""
Exception handling utilities.

Defines the error taxonomy of the referral network core and the duplicate-row
exception category.
"""

from sqlalchemy.exc import IntegrityError


class ReferralNetworkError(Exception):
    """Base class for referral network errors."""

    pass


class GraphTraversalError(ReferralNetworkError):
    """
    Store failure while walking the sponsor graph.

    Cycle checks treat it as "cycle assumed" and deny the relationship.
    """

    pass


class ValidationError(ReferralNetworkError):
    """Malformed downline row. Dropped by the tree builder, never surfaced."""

    pass


class CommissionPersistenceError(ReferralNetworkError):
    """Ledger write failed for a single ancestor/level."""

    def __init__(
        self, beneficiary_id: str, level: int, message: str = ""
    ) -> None:
        self.beneficiary_id = beneficiary_id
        self.level = level
        super().__init__(
            message
            or f"Failed to record commission for {beneficiary_id} "
            f"at level {level}"
        )


class EligibilityLookupError(ReferralNetworkError):
    """Reading an ancestor's status or capacity failed."""

    def __init__(
        self, ancestor_id: str, level: int, message: str = ""
    ) -> None:
        self.ancestor_id = ancestor_id
        self.level = level
        super().__init__(
            message
            or f"Eligibility lookup failed for {ancestor_id} at level {level}"
        )


class ConfigurationError(ReferralNetworkError):
    """Compensation configuration is missing or invalid."""

    pass


class SponsorAssignmentError(ReferralNetworkError):
    """A sponsor edge was rejected."""

    pass


# Duplicate ledger insert - the activation was already credited
ALREADY_RECORDED = (
    IntegrityError,
)


def is_already_recorded(exc: Exception) -> bool:
    """
    Check if exception signals a duplicate ledger row.

    Args:
        exc: Exception to check

    Returns:
        True if the row already exists
    """
    return isinstance(exc, ALREADY_RECORDED)
