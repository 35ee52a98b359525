"""Verification challenge model - outstanding one-time codes.

At most one row per account: the identifier is both the primary key and
the foreign key. Issuing a new code replaces the row.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from auth_service.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from auth_service.models.account import Account


class VerificationChallenge(Base, TimestampMixin):
    """One-time code awaiting verification.

    Attributes:
        identifier: Owning account identifier (PK and FK).
        code: Numeric one-time code.
        expires_at: Absolute expiry time.
        attempts: Verification attempts made against this code.
    """

    __tablename__ = "verification_challenges"
    __table_args__ = (
        CheckConstraint("attempts >= 0", name="ck_verification_challenges_attempts"),
        Index("idx_verification_challenges_expires_at", "expires_at"),
    )

    identifier: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("accounts.identifier", ondelete="CASCADE"),
        primary_key=True,
    )
    code: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        nullable=False,
    )
    attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default="0",
    )

    account: Mapped["Account"] = relationship(back_populates="challenge")
