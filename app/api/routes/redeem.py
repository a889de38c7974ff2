from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from app.core.config import ConfigurationError, get_settings
from app.db.session import SessionLocal
from app.redemption.errors import RedemptionError
from app.redemption.service import RedemptionService
from app.services.rate_limit import allow_request
from app.services.request_meta import extract_client_ip, extract_user_agent

from .public_helpers import as_http_error, get_redis, http_error
from .public_models import RedeemRequest, RedeemResponse

router = APIRouter(tags=["redeem"])

REDEEM_RATE_LIMIT_SCOPE = "redeem"
REDEEM_RATE_LIMIT_WINDOW_SECONDS = 60


@router.post("/api/redeem", response_model=RedeemResponse)
async def redeem_code(payload: RedeemRequest, request: Request) -> RedeemResponse:
    settings = get_settings()
    client_ip = extract_client_ip(request, trusted_proxies=settings.trusted_proxies)

    allowed = await allow_request(
        get_redis(request),
        scope=REDEEM_RATE_LIMIT_SCOPE,
        identifier=client_ip or "unknown",
        limit=settings.redeem_rate_limit_per_minute,
        window_seconds=REDEEM_RATE_LIMIT_WINDOW_SECONDS,
    )
    if not allowed:
        raise http_error(429, "E_RATE_LIMITED")

    try:
        async with SessionLocal.begin() as session:
            result = await RedemptionService.redeem(
                session,
                raw_code=payload.code,
                email=payload.email,
                name=payload.name,
                client_ip=client_ip,
                user_agent=extract_user_agent(request),
                now_utc=datetime.now(timezone.utc),
            )
    except (RedemptionError, ConfigurationError) as exc:
        raise as_http_error(exc) from exc

    return RedeemResponse(token=result.token)
