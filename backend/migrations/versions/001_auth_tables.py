"""Create accounts and verification_challenges tables.

Revision ID: 001_auth_tables
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001_auth_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # Accounts keyed by normalized identifier
    op.create_table(
        "accounts",
        sa.Column("identifier", sa.String(255), primary_key=True),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("credential_hash", sa.String(255), nullable=False),
        sa.Column(
            "state",
            sa.String(32),
            nullable=False,
            server_default="PENDING_VERIFICATION",
        ),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "state IN ('PENDING_VERIFICATION', 'VERIFIED')",
            name="ck_accounts_state",
        ),
        sa.CheckConstraint(
            "(state = 'VERIFIED') = (verified_at IS NOT NULL)",
            name="ck_accounts_verified_at",
        ),
    )

    # One outstanding challenge per account, removed with the account
    op.create_table(
        "verification_challenges",
        sa.Column(
            "identifier",
            sa.String(255),
            sa.ForeignKey("accounts.identifier", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("code", sa.String(16), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "attempts >= 0", name="ck_verification_challenges_attempts"
        ),
    )
    op.create_index(
        "idx_verification_challenges_expires_at",
        "verification_challenges",
        ["expires_at"],
    )


def downgrade() -> None:
    op.drop_index(
        "idx_verification_challenges_expires_at",
        table_name="verification_challenges",
    )
    op.drop_table("verification_challenges")
    op.drop_table("accounts")
