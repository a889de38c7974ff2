from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.confirmation_codes import ConfirmationCode


class ConfirmationCodesRepo:
    @staticmethod
    async def create(session: AsyncSession, *, code: ConfirmationCode) -> ConfirmationCode:
        session.add(code)
        await session.flush()
        return code

    @staticmethod
    async def get_by_id(session: AsyncSession, code_id: UUID) -> ConfirmationCode | None:
        return await session.get(ConfirmationCode, code_id)

    @staticmethod
    async def get_by_code(session: AsyncSession, code: str) -> ConfirmationCode | None:
        stmt = select(ConfirmationCode).where(ConfirmationCode.code == code)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_payment_reference(
        session: AsyncSession,
        payment_reference: str,
    ) -> ConfirmationCode | None:
        stmt = select(ConfirmationCode).where(ConfirmationCode.payment_reference == payment_reference)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def mark_used_if_unused(
        session: AsyncSession,
        *,
        code_id: UUID,
        now_utc: datetime,
        audit_ip: str | None,
        audit_ua: str | None,
    ) -> int:
        stmt = (
            update(ConfirmationCode)
            .where(
                ConfirmationCode.id == code_id,
                ConfirmationCode.status == "UNUSED",
                or_(
                    ConfirmationCode.expires_at.is_(None),
                    ConfirmationCode.expires_at > now_utc,
                ),
            )
            .values(
                status="USED",
                used_at=now_utc,
                redeem_audit_ip=audit_ip,
                redeem_audit_ua=audit_ua,
            )
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return int(result.rowcount or 0)

    @staticmethod
    async def void_unused_for_payment(session: AsyncSession, *, payment_reference: str) -> int:
        stmt = (
            update(ConfirmationCode)
            .where(
                ConfirmationCode.payment_reference == payment_reference,
                ConfirmationCode.status == "UNUSED",
            )
            .values(status="VOID")
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return int(result.rowcount or 0)
