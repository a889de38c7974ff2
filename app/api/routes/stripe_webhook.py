from __future__ import annotations

import structlog
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from app.core.config import ConfigurationError, get_settings
from app.db.session import SessionLocal
from app.redemption.service import RedemptionService
from app.redemption.types import PaymentCompleted, PaymentRefunded
from app.services.stripe_events import (
    StripeWebhookVerificationError,
    parse_payment_event,
    verify_stripe_event,
)

from .public_helpers import http_error

router = APIRouter(tags=["stripe"])
logger = structlog.get_logger(__name__)


async def _apply_payment_event(payment_event: PaymentCompleted | PaymentRefunded) -> None:
    if isinstance(payment_event, PaymentCompleted):
        await RedemptionService.create_or_get_code(
            payment_reference=payment_event.payment_reference,
            email=payment_event.email,
            metadata=payment_event.metadata,
            payment_session_id=payment_event.payment_session_id,
        )
        return

    async with SessionLocal.begin() as session:
        await RedemptionService.void_codes_for_payment(
            session,
            payment_reference=payment_event.payment_reference,
        )


@router.post("/webhooks/stripe")
async def stripe_webhook(request: Request) -> JSONResponse:
    settings = get_settings()
    payload = await request.body()
    try:
        event = verify_stripe_event(
            payload,
            request.headers.get("Stripe-Signature"),
            secret=settings.stripe_webhook_secret,
        )
    except ConfigurationError as exc:
        logger.error("stripe_webhook_not_configured")
        raise http_error(500, "E_NOT_CONFIGURED") from exc
    except StripeWebhookVerificationError as exc:
        raise http_error(400, "E_WEBHOOK_SIGNATURE_INVALID") from exc

    event_type = event.get("type")
    payment_event = parse_payment_event(event)
    if payment_event is None:
        logger.info("stripe_webhook_ignored", event_type=event_type, event_id=event.get("id"))
        return JSONResponse(content={"received": True})

    try:
        await _apply_payment_event(payment_event)
    except Exception:
        logger.exception("stripe_webhook_handler_failed", event_type=event_type, event_id=event.get("id"))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": {"code": "E_WEBHOOK_HANDLER_FAILED"}},
        )

    logger.info("stripe_webhook_processed", event_type=event_type, event_id=event.get("id"))
    return JSONResponse(content={"received": True})
