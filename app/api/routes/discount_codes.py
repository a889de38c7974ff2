from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import structlog
from fastapi import APIRouter
from fastapi.responses import FileResponse

from app.core.config import get_settings
from app.db.session import SessionLocal
from app.redemption.discount import DiscountService
from app.redemption.errors import RedemptionError

from .public_helpers import as_http_error, http_error, pkpass_file_response
from .public_models import (
    RedeemDiscountCodeRequest,
    StoreDiscountCodeRequest,
    StoreDiscountCodeResponse,
)

router = APIRouter(tags=["discount"])
logger = structlog.get_logger(__name__)

DISCOUNT_PASS_FILENAMES = ("discount_card.pkpass", "current.pkpass")


def resolve_discount_pass_path(assets_dir: str) -> Path | None:
    for filename in DISCOUNT_PASS_FILENAMES:
        candidate = Path(assets_dir) / filename
        if candidate.is_file():
            return candidate
    return None


@router.post("/api/store-code", response_model=StoreDiscountCodeResponse)
async def store_code(payload: StoreDiscountCodeRequest) -> StoreDiscountCodeResponse:
    try:
        stored = await DiscountService.store_code(
            payment_session_id=payload.payment_session_id,
            email=payload.email,
        )
    except RedemptionError as exc:
        raise as_http_error(exc) from exc
    return StoreDiscountCodeResponse(code=stored.code)


@router.post("/api/redeem-code")
async def redeem_discount_code(payload: RedeemDiscountCodeRequest) -> FileResponse:
    try:
        async with SessionLocal.begin() as session:
            await DiscountService.redeem_code(
                session,
                raw_code=payload.code,
                now_utc=datetime.now(timezone.utc),
            )
    except RedemptionError as exc:
        raise as_http_error(exc) from exc

    pass_path = resolve_discount_pass_path(get_settings().assets_dir)
    if pass_path is None:
        logger.error("discount_pass_file_missing")
        raise http_error(500, "E_PASS_FILE_MISSING")
    return pkpass_file_response(pass_path)
