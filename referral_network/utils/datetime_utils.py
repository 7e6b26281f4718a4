"""
Datetime utilities.

Provides timezone-aware datetime functions.
"""

from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def days_ago(days: int) -> datetime:
    """
    Get UTC datetime the given number of days in the past.

    Args:
        days: Number of days to go back

    Returns:
        Timezone-aware datetime
    """
    return utc_now() - timedelta(days=days)
