"""redemption_codes

Revision ID: 5c1e2d3f4a6b
Revises:
Create Date: 2026-10-19 10:00:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "5c1e2d3f4a6b"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "confirmation_codes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("status", sa.String(8), nullable=False, server_default=sa.text("'UNUSED'")),
        sa.Column("customer_email", sa.Text(), nullable=True),
        sa.Column("payment_reference", sa.String(255), nullable=True),
        sa.Column("payment_session_id", sa.String(255), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "metadata",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=True,
        ),
        sa.Column("redeem_audit_ip", sa.Text(), nullable=True),
        sa.Column("redeem_audit_ua", sa.Text(), nullable=True),
        sa.CheckConstraint(
            "status IN ('UNUSED','USED','VOID')",
            name="ck_confirmation_codes_status",
        ),
        sa.CheckConstraint(
            "status = 'USED' OR used_at IS NULL",
            name="ck_confirmation_codes_used_at_only_when_used",
        ),
    )
    op.create_index("uq_confirmation_codes_code", "confirmation_codes", ["code"], unique=True)
    op.create_index(
        "uq_confirmation_codes_payment_reference",
        "confirmation_codes",
        ["payment_reference"],
        unique=True,
    )
    op.create_index(
        "idx_confirmation_codes_payment_session",
        "confirmation_codes",
        ["payment_session_id"],
    )

    op.create_table(
        "discount_codes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("payment_session_id", sa.String(255), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("status", sa.String(8), nullable=False, server_default=sa.text("'UNUSED'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("status IN ('UNUSED','USED')", name="ck_discount_codes_status"),
    )
    op.create_index("uq_discount_codes_code", "discount_codes", ["code"], unique=True)
    op.create_index(
        "uq_discount_codes_payment_session",
        "discount_codes",
        ["payment_session_id"],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("uq_discount_codes_payment_session", table_name="discount_codes")
    op.drop_index("uq_discount_codes_code", table_name="discount_codes")
    op.drop_table("discount_codes")

    op.drop_index("idx_confirmation_codes_payment_session", table_name="confirmation_codes")
    op.drop_index("uq_confirmation_codes_payment_reference", table_name="confirmation_codes")
    op.drop_index("uq_confirmation_codes_code", table_name="confirmation_codes")
    op.drop_table("confirmation_codes")
