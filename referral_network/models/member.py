"""
Member model.

A node of the referral forest. Each member has at most one sponsor.
"""

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from referral_network.models.base import Base

if TYPE_CHECKING:
    from referral_network.models.subscription import Subscription


def _new_member_id() -> str:
    return str(uuid.uuid4())


class Member(Base):
    """Member model - registered users placed in the referral forest."""

    __tablename__ = "members"
    __table_args__ = (
        CheckConstraint(
            "sponsor_id IS NULL OR sponsor_id <> id",
            name="check_member_not_own_sponsor",
        ),
        CheckConstraint("phase >= 0", name="check_member_phase_non_negative"),
    )

    # Primary key
    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=_new_member_id
    )

    # Profile
    email: Mapped[str | None] = mapped_column(
        String(255), nullable=True, index=True
    )
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    referral_code: Mapped[str | None] = mapped_column(
        String(20), nullable=True, unique=True, index=True
    )

    # Referral edge
    sponsor_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("members.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Compensation plan tier (assigned externally)
    phase: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    allow_team_messages: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    # Relationships
    sponsor: Mapped["Member | None"] = relationship(
        "Member",
        remote_side="Member.id",
        back_populates="direct_referrals",
    )
    direct_referrals: Mapped[list["Member"]] = relationship(
        "Member",
        back_populates="sponsor",
    )
    subscription: Mapped["Subscription | None"] = relationship(
        "Subscription",
        back_populates="member",
        uselist=False,
    )

    @property
    def is_root(self) -> bool:
        """Member without a sponsor."""
        return self.sponsor_id is None

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Member(id={self.id}, email={self.email}, "
            f"sponsor_id={self.sponsor_id})>"
        )
