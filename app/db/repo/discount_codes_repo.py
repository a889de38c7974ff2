from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.discount_codes import DiscountCode


class DiscountCodesRepo:
    @staticmethod
    async def create(session: AsyncSession, *, discount_code: DiscountCode) -> DiscountCode:
        session.add(discount_code)
        await session.flush()
        return discount_code

    @staticmethod
    async def get_by_code(session: AsyncSession, code: str) -> DiscountCode | None:
        stmt = select(DiscountCode).where(DiscountCode.code == code)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_payment_session(
        session: AsyncSession,
        payment_session_id: str,
    ) -> DiscountCode | None:
        stmt = select(DiscountCode).where(DiscountCode.payment_session_id == payment_session_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def mark_used_if_unused(session: AsyncSession, *, code_id: UUID, now_utc: datetime) -> int:
        stmt = (
            update(DiscountCode)
            .where(DiscountCode.id == code_id, DiscountCode.status == "UNUSED")
            .values(status="USED", used_at=now_utc)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return int(result.rowcount or 0)
