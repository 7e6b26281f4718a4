"""
Downline row validation.

Rows come from an untyped traversal query. Each validator returns a tuple of
(is_valid, parsed_value, error_message).
"""

from collections.abc import Mapping
from typing import Any
from uuid import UUID

from referral_network.domain.network import DownlineMember
from referral_network.models.enums import SubscriptionStatus
from referral_network.utils.exceptions import ValidationError


def _first(row: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in row:
            return row[key]
    return None


def _parse_digits(value: str, name: str) -> int:
    text = value.strip()
    # isdigit() alone also accepts superscript digits
    if not (text.isascii() and text.isdigit()):
        raise ValidationError(f"Invalid {name}: {value!r}")
    try:
        return int(text)
    except ValueError as e:
        raise ValidationError(f"Invalid {name}: too many digits") from e


def parse_level(value: Any) -> int:
    """
    Parse a row level into a positive integer.

    Examples:
        >>> parse_level(2)
        2
        >>> parse_level("3")
        3

    Raises:
        ValidationError: If value is not a positive integer
    """
    # bool is an int subclass
    if isinstance(value, bool):
        raise ValidationError(f"Invalid level: {value!r}")

    if isinstance(value, int):
        level = value
    elif isinstance(value, float) and value.is_integer():
        level = int(value)
    elif isinstance(value, str):
        level = _parse_digits(value, "level")
    else:
        raise ValidationError(f"Invalid level: {value!r}")

    if level < 1:
        raise ValidationError(f"Level must be positive: {level}")
    return level


def parse_status(value: Any) -> str | None:
    """
    Parse subscription status (None allowed).

    Raises:
        ValidationError: If value is not a known status
    """
    if value is None:
        return None
    if isinstance(value, str) and value in SubscriptionStatus.values():
        return value
    raise ValidationError(f"Unknown subscription status: {value!r}")


def parse_member_id(value: Any) -> str:
    """
    Parse descendant identifier.

    Raises:
        ValidationError: If value is missing or empty
    """
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    raise ValidationError(f"Invalid descendant id: {value!r}")


def _parse_optional_text(value: Any, name: str) -> str | None:
    if value is None or isinstance(value, str):
        return value
    raise ValidationError(f"Invalid {name}: {value!r}")


def _parse_phase(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    if isinstance(value, str):
        return _parse_digits(value, "phase")
    raise ValidationError(f"Invalid phase: {value!r}")


def parse_downline_row(row: Any) -> DownlineMember:
    """
    Parse one traversal row into a DownlineMember.

    Accepts snake_case or camelCase keys.

    Raises:
        ValidationError: If the row is malformed
    """
    if not isinstance(row, Mapping):
        raise ValidationError("Row is not a mapping")

    raw_id = _first(row, "descendant_id", "descendantId")
    raw_level = _first(row, "level")
    if raw_id is None or raw_level is None:
        raise ValidationError("Row is missing descendant_id or level")

    allow_messages = _first(row, "allow_team_messages", "allowTeamMessages")

    return DownlineMember(
        id=parse_member_id(raw_id),
        level=parse_level(raw_level),
        email=_parse_optional_text(_first(row, "email"), "email"),
        name=_parse_optional_text(_first(row, "name"), "name"),
        status=parse_status(_first(row, "status")),
        phase=_parse_phase(_first(row, "phase")),
        allow_team_messages=bool(allow_messages),
    )


def validate_downline_row(
    row: Any,
) -> tuple[bool, DownlineMember | None, str | None]:
    """
    Validate one traversal row.

    Args:
        row: Raw row mapping

    Returns:
        Tuple of (is_valid, parsed_member, error_message)

    Examples:
        >>> validate_downline_row({"descendant_id": "m1", "level": 1})[0]
        True
        >>> validate_downline_row({"descendant_id": "m1", "level": 0})[0]
        False
    """
    try:
        return True, parse_downline_row(row), None
    except ValidationError as e:
        return False, None, str(e)
