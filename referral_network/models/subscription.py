"""
Subscription model.

Current subscription of a member; its status drives commission eligibility.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from referral_network.models.base import Base
from referral_network.models.enums import SubscriptionStatus

if TYPE_CHECKING:
    from referral_network.models.member import Member


class Subscription(Base):
    """Subscription entity (one per member)."""

    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("members.id", ondelete="CASCADE"),
        unique=True,
        index=True,
        nullable=False,
    )

    # active | past_due | unpaid | canceled
    status: Mapped[str] = mapped_column(
        String(20),
        default=SubscriptionStatus.UNPAID.value,
        index=True,
        nullable=False,
    )

    gateway: Mapped[str | None] = mapped_column(String(20), nullable=True)
    current_period_end: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancel_at_period_end: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    default_payment_method_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    member: Mapped["Member"] = relationship(
        "Member",
        back_populates="subscription",
    )

    @property
    def is_active(self) -> bool:
        """Check if subscription is active."""
        return self.status == SubscriptionStatus.ACTIVE

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Subscription(id={self.id}, user_id={self.user_id}, "
            f"status={self.status})>"
        )
