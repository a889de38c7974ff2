from __future__ import annotations

import asyncio
import json
from typing import Any

import stripe
import structlog

from app.core.config import ConfigurationError
from app.redemption.types import PaymentCompleted, PaymentRefunded

logger = structlog.get_logger(__name__)

CHECKOUT_COMPLETED_EVENT = "checkout.session.completed"
REFUND_EVENTS = frozenset({"charge.refunded", "charge.refund.updated"})
SIGNATURE_TOLERANCE_SECONDS = 300


class StripeWebhookVerificationError(Exception):
    pass


def verify_stripe_event(payload: bytes, signature: str | None, *, secret: str) -> dict[str, Any]:
    if not secret:
        raise ConfigurationError("STRIPE_WEBHOOK_SECRET is not set")
    if not signature:
        raise StripeWebhookVerificationError("missing signature")

    try:
        payload_text = payload.decode("utf-8")
        stripe.WebhookSignature.verify_header(
            payload_text, signature, secret, tolerance=SIGNATURE_TOLERANCE_SECONDS
        )
        event = json.loads(payload_text)
    except stripe.SignatureVerificationError as exc:
        logger.warning("stripe_webhook_invalid_signature")
        raise StripeWebhookVerificationError("invalid signature") from exc
    except ValueError as exc:
        logger.warning("stripe_webhook_invalid_payload")
        raise StripeWebhookVerificationError("invalid payload") from exc

    if not isinstance(event, dict):
        raise StripeWebhookVerificationError("invalid payload")
    return event


def _object_id(value: object) -> str | None:
    if isinstance(value, str) and value:
        return value
    if isinstance(value, dict):
        nested_id = value.get("id")
        if isinstance(nested_id, str) and nested_id:
            return nested_id
    return None


def parse_payment_event(event: dict[str, Any]) -> PaymentCompleted | PaymentRefunded | None:
    event_type = event.get("type")
    data_object = (event.get("data") or {}).get("object") or {}
    if not isinstance(data_object, dict):
        return None

    if event_type == CHECKOUT_COMPLETED_EVENT:
        payment_reference = _object_id(data_object.get("payment_intent"))
        if payment_reference is None:
            return None
        customer_details = data_object.get("customer_details") or {}
        email = customer_details.get("email") or data_object.get("customer_email") or None
        metadata = data_object.get("metadata") or None
        return PaymentCompleted(
            payment_reference=payment_reference,
            email=email,
            metadata=dict(metadata) if isinstance(metadata, dict) else None,
            payment_session_id=_object_id(data_object.get("id")),
        )

    if event_type in REFUND_EVENTS:
        payment_reference = _object_id(data_object.get("payment_intent"))
        if payment_reference is None:
            return None
        return PaymentRefunded(payment_reference=payment_reference)

    return None


async def create_checkout_session(
    *,
    api_key: str,
    price_id: str,
    base_url: str,
    email: str | None = None,
    metadata: dict[str, str] | None = None,
) -> str:
    if not api_key:
        raise ConfigurationError("STRIPE_SECRET_KEY is not set")
    app_base = base_url.rstrip("/")
    params: dict[str, Any] = {
        "mode": "payment",
        "success_url": f"{app_base}/success?session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{app_base}/cancel",
        "line_items": [{"price": price_id, "quantity": 1}],
    }
    if email:
        params["customer_email"] = email
    if metadata:
        params["metadata"] = metadata
    session = await asyncio.to_thread(stripe.checkout.Session.create, api_key=api_key, **params)
    logger.info("stripe_checkout_session_created", checkout_session_id=session.id)
    return session.url
