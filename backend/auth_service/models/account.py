"""Account model - registered identities.

One row per normalized identifier. The identifier is the primary key,
so a conflicting insert is rejected by the database itself.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from auth_service.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from auth_service.models.verification_challenge import VerificationChallenge


class Account(Base, TimestampMixin):
    """Account with a bcrypt credential and a verification state.

    Attributes:
        identifier: Normalized email address (primary key).
        display_name: Optional display name.
        credential_hash: bcrypt hash of the password.
        state: "PENDING_VERIFICATION" or "VERIFIED".
        verified_at: When the account was verified. NULL while pending.
        created_at: Account creation timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
    """

    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint(
            "state IN ('PENDING_VERIFICATION', 'VERIFIED')",
            name="ck_accounts_state",
        ),
        CheckConstraint(
            "(state = 'VERIFIED') = (verified_at IS NOT NULL)",
            name="ck_accounts_verified_at",
        ),
    )

    identifier: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
    )
    display_name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    credential_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    state: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        server_default="PENDING_VERIFICATION",
    )
    verified_at: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )

    challenge: Mapped["VerificationChallenge | None"] = relationship(
        back_populates="account",
        passive_deletes=True,
    )
