"""
Referral network value objects.

Plain dataclasses passed between the network services and their callers.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from referral_network.models.enums import SubscriptionStatus

if TYPE_CHECKING:
    from referral_network.models.subscription import Subscription


def _pick(data: Mapping[str, Any], *keys: str) -> Any:
    """Return the first present key (webhooks mix snake and camel case)."""
    for key in keys:
        if key in data:
            return data[key]
    return None


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    raise ValueError(f"Invalid datetime value: {value!r}")


@dataclass(frozen=True)
class SubscriptionRecord:
    """Subscription state delivered by the subscription lifecycle handler."""

    id: str
    user_id: str
    status: str
    gateway: str | None = None
    current_period_end: datetime | None = None
    cancel_at_period_end: bool = False
    created_at: datetime | None = None
    default_payment_method_id: str | None = None

    @property
    def is_active(self) -> bool:
        """Check if subscription is active."""
        return self.status == SubscriptionStatus.ACTIVE

    @property
    def activation_key(self) -> str:
        """
        Identify the activation event for ledger idempotence.

        Re-deliveries of the same webhook share the billing period and
        therefore the key.
        """
        marker = self.current_period_end or self.created_at
        suffix = marker.isoformat() if marker else "initial"
        return f"{self.id}:{suffix}"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SubscriptionRecord":
        """
        Build from a webhook/row mapping.

        Args:
            data: Mapping with snake_case or camelCase keys

        Returns:
            SubscriptionRecord

        Raises:
            ValueError: If id, user_id or status are missing
        """
        sub_id = _pick(data, "id")
        user_id = _pick(data, "user_id", "userId")
        status = _pick(data, "status")
        if not sub_id or not user_id or not status:
            raise ValueError("Subscription requires id, user_id and status")

        return cls(
            id=str(sub_id),
            user_id=str(user_id),
            status=str(status),
            gateway=_pick(data, "gateway"),
            current_period_end=_parse_datetime(
                _pick(data, "current_period_end", "currentPeriodEnd")
            ),
            cancel_at_period_end=bool(
                _pick(data, "cancel_at_period_end", "cancelAtPeriodEnd")
            ),
            created_at=_parse_datetime(_pick(data, "created_at", "createdAt")),
            default_payment_method_id=_pick(
                data, "default_payment_method_id", "defaultPaymentMethodId"
            ),
        )

    @classmethod
    def from_model(cls, subscription: "Subscription") -> "SubscriptionRecord":
        """Build from a persisted Subscription."""
        return cls(
            id=subscription.id,
            user_id=subscription.user_id,
            status=subscription.status,
            gateway=subscription.gateway,
            current_period_end=subscription.current_period_end,
            cancel_at_period_end=subscription.cancel_at_period_end,
            created_at=subscription.created_at,
            default_payment_method_id=subscription.default_payment_method_id,
        )


@dataclass(frozen=True)
class DownlineMember:
    """One validated descendant in a leveled downline."""

    id: str
    level: int
    email: str | None = None
    name: str | None = None
    status: str | None = None
    phase: int = 0
    allow_team_messages: bool = False

    @property
    def is_active(self) -> bool:
        """Check if member has an active subscription."""
        return self.status == SubscriptionStatus.ACTIVE


@dataclass
class LeveledDownline:
    """Downline bucketed by level."""

    levels: dict[int, list[DownlineMember]] = field(default_factory=dict)
    max_level_reached: int = 0

    @property
    def total_members(self) -> int:
        """Number of descendants across all levels."""
        return sum(len(members) for members in self.levels.values())

    def members_at(self, level: int) -> list[DownlineMember]:
        """Members at a level (empty list if none)."""
        return self.levels.get(level, [])

    def level_counts(self) -> dict[int, int]:
        """Member count per level, ascending."""
        return {
            level: len(self.levels[level]) for level in sorted(self.levels)
        }

    def active_members(self, level: int) -> list[DownlineMember]:
        """Members at a level with an active subscription."""
        return [m for m in self.members_at(level) if m.is_active]


@dataclass
class TwoLevelDownline:
    """Legacy fixed-shape downline (direct and second level)."""

    level1: list[DownlineMember] = field(default_factory=list)
    level2: list[DownlineMember] = field(default_factory=list)


@dataclass(frozen=True)
class CommissionRecord:
    """Commission credited to one ancestor for one activation."""

    beneficiary_user_id: str
    source_member_id: str
    level: int
    amount_cents: int
    created_at: datetime
    currency: str = "USD"
    id: int | None = None


class SkipReason(StrEnum):
    """Why a level produced no commission."""

    NOT_CONFIGURED = "not_configured"
    INACTIVE = "inactive"
    CAPACITY_REACHED = "capacity_reached"
    LOOKUP_FAILED = "lookup_failed"
    DUPLICATE = "duplicate"
    PERSISTENCE_FAILED = "persistence_failed"


@dataclass(frozen=True)
class SkippedLevel:
    """A level evaluated without a credit."""

    level: int
    ancestor_id: str
    reason: SkipReason


@dataclass
class CommissionResult:
    """Outcome of processing one activation."""

    records: list[CommissionRecord] = field(default_factory=list)
    skipped: list[SkippedLevel] = field(default_factory=list)
    levels_walked: int = 0

    @property
    def total_cents(self) -> int:
        """Total credited amount."""
        return sum(r.amount_cents for r in self.records)


@dataclass(frozen=True)
class ChainValidationResult:
    """Result of validating a member's upline."""

    valid: bool
    max_depth: int
    chain_length: int
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class CycleReport:
    """A member whose upline runs into a loop."""

    member_id: str
    cycle_length: int
