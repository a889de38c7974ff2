from __future__ import annotations

import re
from datetime import datetime, timezone
from uuid import uuid4

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.logging import mask_code
from app.db.models.discount_codes import DiscountCode
from app.db.repo.discount_codes_repo import DiscountCodesRepo
from app.db.session import SessionLocal
from app.redemption.errors import (
    CodeAlreadyConsumedOrVoidError,
    CodeNotFoundError,
    CodeSpaceExhaustedError,
    PaymentSessionInvalidError,
)
from app.redemption.types import StoredDiscountCode
from app.services.redemption_codes import DISCOUNT_CODE_LENGTH, generate_code

logger = structlog.get_logger(__name__)

DISCOUNT_CODE_PATTERN = re.compile(r"^[A-Za-z0-9]{10,12}$")
PAYMENT_SESSION_ID_MIN_LENGTH = 6


def normalize_discount_code(raw_code: str) -> str:
    return raw_code.strip().upper()


def _stored(row: DiscountCode, *, created: bool) -> StoredDiscountCode:
    return StoredDiscountCode(
        code=row.code,
        payment_session_id=row.payment_session_id,
        created=created,
        email=row.email,
    )


class DiscountService:
    @staticmethod
    async def store_code(
        *,
        payment_session_id: str,
        email: str | None = None,
        now_utc: datetime | None = None,
    ) -> StoredDiscountCode:
        session_id = payment_session_id.strip()
        if len(session_id) < PAYMENT_SESSION_ID_MIN_LENGTH:
            raise PaymentSessionInvalidError
        normalized_email = email.strip().lower() if email else None
        now_utc = now_utc or datetime.now(timezone.utc)

        async with SessionLocal() as session:
            existing = await DiscountCodesRepo.get_by_payment_session(session, session_id)
        if existing is not None:
            return _stored(existing, created=False)

        attempts = max(1, get_settings().code_create_max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                async with SessionLocal.begin() as session:
                    row = await DiscountCodesRepo.create(
                        session,
                        discount_code=DiscountCode(
                            id=uuid4(),
                            code=generate_code(DISCOUNT_CODE_LENGTH),
                            payment_session_id=session_id,
                            email=normalized_email,
                            status="UNUSED",
                            created_at=now_utc,
                        ),
                    )
                    stored = _stored(row, created=True)
            except IntegrityError:
                async with SessionLocal() as session:
                    winner = await DiscountCodesRepo.get_by_payment_session(session, session_id)
                if winner is not None:
                    return _stored(winner, created=False)
                logger.warning("discount_code_collision_retry", attempt=attempt)
                continue

            logger.info("discount_code_created", code=mask_code(stored.code))
            return stored

        raise CodeSpaceExhaustedError

    @staticmethod
    async def redeem_code(
        session: AsyncSession,
        *,
        raw_code: str,
        now_utc: datetime | None = None,
    ) -> DiscountCode:
        normalized = normalize_discount_code(raw_code)
        if not DISCOUNT_CODE_PATTERN.fullmatch(normalized):
            raise CodeNotFoundError

        row = await DiscountCodesRepo.get_by_code(session, normalized)
        if row is None:
            raise CodeNotFoundError
        if row.status != "UNUSED":
            raise CodeAlreadyConsumedOrVoidError

        updated = await DiscountCodesRepo.mark_used_if_unused(
            session,
            code_id=row.id,
            now_utc=now_utc or datetime.now(timezone.utc),
        )
        if updated != 1:
            raise CodeAlreadyConsumedOrVoidError

        logger.info("discount_code_redeemed", code=mask_code(row.code))
        return row
