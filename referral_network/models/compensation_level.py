"""
Compensation level model.

Admin-configured compensation plan: one row per network level.
"""

from datetime import UTC, datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from referral_network.models.base import Base


class CompensationLevel(Base):
    """Capacity and commission amount for one network level."""

    __tablename__ = "compensation_levels"
    __table_args__ = (
        CheckConstraint("level >= 1", name="check_compensation_level_positive"),
        CheckConstraint(
            "max_members >= 0",
            name="check_compensation_max_members_non_negative",
        ),
        CheckConstraint(
            "commission_amount_cents >= 0",
            name="check_compensation_amount_non_negative",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # 1 = direct referrals, 2 = their referrals, ...
    level: Mapped[int] = mapped_column(
        Integer, unique=True, index=True, nullable=False
    )

    # 0 means the level has no capacity cap
    max_members: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )

    commission_amount_cents: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, index=True, nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<CompensationLevel(level={self.level}, "
            f"max_members={self.max_members}, "
            f"commission_amount_cents={self.commission_amount_cents})>"
        )
