from __future__ import annotations

import secrets
import time

import structlog
from fastapi import APIRouter

from app.core.config import ConfigurationError, get_settings
from app.redemption.errors import CodeSpaceExhaustedError
from app.redemption.service import RedemptionService
from app.services.stripe_events import create_checkout_session

from .public_helpers import as_http_error, http_error
from .public_models import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    DemoCheckoutRequest,
    DemoCheckoutResponse,
)

router = APIRouter(tags=["checkout"])
logger = structlog.get_logger(__name__)


def _demo_session_id() -> str:
    return f"demo:{int(time.time() * 1000)}:{secrets.token_hex(3)}"


@router.post("/api/create-checkout-session", response_model=CheckoutSessionResponse)
async def create_checkout(payload: CheckoutSessionRequest) -> CheckoutSessionResponse:
    settings = get_settings()
    try:
        url = await create_checkout_session(
            api_key=settings.stripe_secret_key,
            price_id=payload.price_id,
            base_url=settings.app_base_url,
            email=payload.email,
            metadata=payload.metadata,
        )
    except ConfigurationError as exc:
        raise as_http_error(exc) from exc
    except Exception as exc:
        logger.exception("stripe_checkout_session_failed")
        raise http_error(502, "E_CHECKOUT_FAILED") from exc
    return CheckoutSessionResponse(url=url)


@router.post("/api/demo/checkout", response_model=DemoCheckoutResponse)
async def demo_checkout(payload: DemoCheckoutRequest) -> DemoCheckoutResponse:
    if get_settings().app_env == "prod":
        raise http_error(404, "E_NOT_FOUND")
    try:
        issued = await RedemptionService.issue_unbound_code(
            payment_session_id=_demo_session_id(),
            email=payload.email,
            metadata=payload.metadata,
        )
    except CodeSpaceExhaustedError as exc:
        raise as_http_error(exc) from exc
    return DemoCheckoutResponse(code=issued.code)
