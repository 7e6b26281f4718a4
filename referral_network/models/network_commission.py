"""
NetworkCommission model.

Append-only ledger of commissions credited up the referral network.
"""

from datetime import UTC, datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from referral_network.config.constants import COMMISSION_TYPE_SUBSCRIPTION
from referral_network.models.base import Base


class NetworkCommission(Base):
    """
    NetworkCommission entity.

    One row per (beneficiary, source member, activation event). Rows are
    never updated or deleted by the network core.

    Attributes:
        id: Primary key
        user_id: Beneficiary (the upline sponsor being credited)
        member_id: Source member whose subscription activated
        level: Distance between beneficiary and source member
        amount_cents: Credited amount in minor units
        currency: ISO currency code
        commission_type: Origin of the commission
        subscription_id: Subscription that triggered the credit
        activation_key: Identifies the activation event
        created_at: When the commission was recorded
    """

    __tablename__ = "network_commissions"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "member_id",
            "activation_key",
            name="uq_network_commission_activation",
        ),
        CheckConstraint(
            "amount_cents >= 0",
            name="check_network_commission_amount_non_negative",
        ),
        CheckConstraint("level >= 1", name="check_network_commission_level"),
        Index(
            "idx_network_commissions_member_type_created",
            "member_id",
            "commission_type",
            "created_at",
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    member_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    level: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(
        String(3), default="USD", nullable=False
    )

    commission_type: Mapped[str] = mapped_column(
        String(50),
        default=COMMISSION_TYPE_SUBSCRIPTION,
        nullable=False,
    )
    subscription_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True
    )
    activation_key: Mapped[str] = mapped_column(
        String(128), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<NetworkCommission(id={self.id}, user_id={self.user_id}, "
            f"member_id={self.member_id}, level={self.level}, "
            f"amount_cents={self.amount_cents})>"
        )
