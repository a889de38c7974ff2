from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from uuid import uuid4

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.logging import mask_code
from app.db.models.confirmation_codes import ConfirmationCode
from app.db.repo.confirmation_codes_repo import ConfirmationCodesRepo
from app.db.session import SessionLocal
from app.redemption.errors import (
    CodeAlreadyConsumedOrVoidError,
    CodeEmailMismatchError,
    CodeExpiredError,
    CodeNotFoundError,
    CodeSpaceExhaustedError,
)
from app.redemption.types import IssuedCode, RedeemResult
from app.services.download_tokens import mint_download_token, sanitize_holder_name
from app.services.email_delivery import send_confirmation_email
from app.services.redemption_codes import generate_code, sanitize_code

logger = structlog.get_logger(__name__)

CodeNotifier = Callable[[str, str], Awaitable[bool]]


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _issued_from_row(row: ConfirmationCode, *, created: bool) -> IssuedCode:
    return IssuedCode(
        code_id=row.id,
        code=row.code,
        status=row.status,
        customer_email=row.customer_email,
        payment_reference=row.payment_reference,
        created=created,
        expires_at=_as_utc(row.expires_at),
    )


class RedemptionService:
    @staticmethod
    async def _insert_unique(
        *,
        payment_reference: str | None,
        payment_session_id: str | None,
        email: str | None,
        metadata: dict[str, object] | None,
        now_utc: datetime,
    ) -> IssuedCode:
        settings = get_settings()
        attempts = max(1, settings.code_create_max_attempts)
        for attempt in range(1, attempts + 1):
            candidate = generate_code(settings.code_length)
            try:
                async with SessionLocal.begin() as session:
                    row = await ConfirmationCodesRepo.create(
                        session,
                        code=ConfirmationCode(
                            id=uuid4(),
                            code=candidate,
                            status="UNUSED",
                            customer_email=email,
                            payment_reference=payment_reference,
                            payment_session_id=payment_session_id,
                            metadata_=metadata,
                            created_at=now_utc,
                        ),
                    )
                    issued = _issued_from_row(row, created=True)
            except IntegrityError:
                if payment_reference is not None:
                    async with SessionLocal() as session:
                        existing = await ConfirmationCodesRepo.get_by_payment_reference(
                            session, payment_reference
                        )
                    if existing is not None:
                        logger.info(
                            "code_already_issued_for_payment",
                            code_id=str(existing.id),
                            payment_reference=payment_reference,
                        )
                        return _issued_from_row(existing, created=False)
                logger.warning("code_collision_retry", attempt=attempt)
                continue

            logger.info(
                "code_created",
                code_id=str(issued.code_id),
                code=mask_code(issued.code),
                payment_reference=payment_reference,
            )
            return issued

        logger.error("code_space_exhausted", attempts=attempts, payment_reference=payment_reference)
        raise CodeSpaceExhaustedError

    @staticmethod
    async def _dispatch(notifier: CodeNotifier, *, to_address: str, issued: IssuedCode) -> bool:
        try:
            delivered = await notifier(to_address, issued.code)
        except Exception:
            logger.exception("code_email_delivery_failed", code_id=str(issued.code_id))
            return False
        if not delivered:
            logger.warning("code_email_delivery_failed", code_id=str(issued.code_id))
        return delivered

    @staticmethod
    async def create_or_get_code(
        *,
        payment_reference: str,
        email: str | None = None,
        metadata: dict[str, object] | None = None,
        payment_session_id: str | None = None,
        now_utc: datetime | None = None,
        notifier: CodeNotifier | None = None,
    ) -> IssuedCode:
        """Issues the one code bound to a payment, or returns the one already issued.

        Each insert attempt runs in its own transaction so a unique violation
        never poisons the caller's session. A violation on the payment
        reference is the retried-delivery case and resolves to the stored
        row; any other violation is a code collision and regenerates.
        """
        if not payment_reference:
            raise ValueError("payment_reference is required")
        now_utc = now_utc or datetime.now(timezone.utc)

        issued = await RedemptionService._insert_unique(
            payment_reference=payment_reference,
            payment_session_id=payment_session_id,
            email=email,
            metadata=metadata,
            now_utc=now_utc,
        )

        if email:
            async with SessionLocal() as session:
                current = await ConfirmationCodesRepo.get_by_payment_reference(
                    session, payment_reference
                )
            if current is not None:
                await RedemptionService._dispatch(
                    notifier or send_confirmation_email,
                    to_address=email,
                    issued=_issued_from_row(current, created=issued.created),
                )
        return issued

    @staticmethod
    async def issue_unbound_code(
        *,
        payment_session_id: str,
        email: str | None = None,
        metadata: dict[str, object] | None = None,
        now_utc: datetime | None = None,
    ) -> IssuedCode:
        return await RedemptionService._insert_unique(
            payment_reference=None,
            payment_session_id=payment_session_id,
            email=email,
            metadata=metadata,
            now_utc=now_utc or datetime.now(timezone.utc),
        )

    @staticmethod
    async def void_codes_for_payment(
        session: AsyncSession,
        *,
        payment_reference: str,
    ) -> int:
        voided = await ConfirmationCodesRepo.void_unused_for_payment(
            session, payment_reference=payment_reference
        )
        logger.info("codes_voided_for_payment", payment_reference=payment_reference, voided=voided)
        return voided

    @staticmethod
    async def redeem(
        session: AsyncSession,
        *,
        raw_code: str,
        email: str | None = None,
        name: str | None = None,
        client_ip: str | None = None,
        user_agent: str | None = None,
        now_utc: datetime | None = None,
    ) -> RedeemResult:
        now_utc = now_utc or datetime.now(timezone.utc)
        settings = get_settings()

        normalized_code = sanitize_code(raw_code)
        if not normalized_code:
            raise CodeNotFoundError

        row = await ConfirmationCodesRepo.get_by_code(session, normalized_code)
        if row is None:
            raise CodeNotFoundError
        if row.status != "UNUSED":
            raise CodeAlreadyConsumedOrVoidError

        expires_at = _as_utc(row.expires_at)
        if expires_at is not None and expires_at <= now_utc:
            raise CodeExpiredError

        if email and row.customer_email and email.strip().lower() != row.customer_email.lower():
            raise CodeEmailMismatchError

        updated = await ConfirmationCodesRepo.mark_used_if_unused(
            session,
            code_id=row.id,
            now_utc=now_utc,
            audit_ip=client_ip,
            audit_ua=user_agent,
        )
        if updated != 1:
            await session.refresh(row)
            if row.status != "UNUSED":
                raise CodeAlreadyConsumedOrVoidError
            raise CodeExpiredError

        holder_name = sanitize_holder_name(name)
        token = mint_download_token(
            settings.download_token_ttl_seconds,
            holder_name,
            secret=settings.jwt_secret,
        )
        logger.info("code_redeemed", code_id=str(row.id), code=mask_code(row.code))
        return RedeemResult(code_id=row.id, token=token, holder_name=holder_name)
