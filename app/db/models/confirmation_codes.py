from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, DateTime, Index, String, Text, Uuid, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base

CODE_STATUSES = ("UNUSED", "USED", "VOID")


class ConfirmationCode(Base):
    __tablename__ = "confirmation_codes"
    __table_args__ = (
        CheckConstraint(
            "status IN ('UNUSED','USED','VOID')",
            name="ck_confirmation_codes_status",
        ),
        CheckConstraint(
            "status = 'USED' OR used_at IS NULL",
            name="ck_confirmation_codes_used_at_only_when_used",
        ),
        Index("uq_confirmation_codes_code", "code", unique=True),
        Index("uq_confirmation_codes_payment_reference", "payment_reference", unique=True),
        Index("idx_confirmation_codes_payment_session", "payment_session_id"),
    )

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True)
    code: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(8), nullable=False, server_default=text("'UNUSED'"))
    customer_email: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Idempotency key: one code per payment, enforced by the unique index above.
    payment_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_session_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    metadata_: Mapped[dict[str, object] | None] = mapped_column(
        "metadata",
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=True,
    )
    redeem_audit_ip: Mapped[str | None] = mapped_column(Text, nullable=True)
    redeem_audit_ua: Mapped[str | None] = mapped_column(Text, nullable=True)
