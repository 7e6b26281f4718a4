"""Validators for untrusted network data."""

from referral_network.validators.downline import (
    parse_downline_row,
    validate_downline_row,
)

__all__ = ["parse_downline_row", "validate_downline_row"]
