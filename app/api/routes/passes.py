from __future__ import annotations

import asyncio
import time
from pathlib import Path

import structlog
from fastapi import APIRouter, Query
from fastapi.responses import Response

from app.core.config import ConfigurationError, get_settings
from app.redemption.errors import InvalidOrExpiredTokenError
from app.services.download_tokens import verify_download_token
from app.services.pass_builder import build_pass, ensure_cert_files

from .public_helpers import as_http_error, http_error, pkpass_bytes_response, pkpass_file_response

router = APIRouter(tags=["passes"])
logger = structlog.get_logger(__name__)

PREBUILT_PASS_FILENAME = "current.pkpass"
DEFAULT_DOWNLOAD_HOLDER = "Buyer"
DEFAULT_ADHOC_HOLDER = "Guest"


def _serial_number() -> str:
    return format(int(time.time() * 1000), "x")


def _build_pass_bytes(
    *,
    serial_number: str,
    holder_name: str,
    barcode_message: str | None = None,
    barcode_format: str | None = None,
) -> bytes:
    settings = get_settings()
    cert_paths = ensure_cert_files(settings)
    return build_pass(
        settings=settings,
        cert_paths=cert_paths,
        serial_number=serial_number,
        holder_name=holder_name,
        barcode_message=barcode_message,
        barcode_format=barcode_format,
    )


@router.get("/api/pass/download")
async def download_pass(token: str = Query(default="", max_length=4096)) -> Response:
    settings = get_settings()
    try:
        claims = verify_download_token(token, secret=settings.jwt_secret)
    except (InvalidOrExpiredTokenError, ConfigurationError) as exc:
        raise as_http_error(exc) from exc

    prebuilt = Path(settings.assets_dir) / PREBUILT_PASS_FILENAME
    if prebuilt.is_file():
        return pkpass_file_response(prebuilt)

    holder_name = claims.get("name")
    try:
        content = await asyncio.to_thread(
            _build_pass_bytes,
            serial_number=_serial_number(),
            holder_name=holder_name if isinstance(holder_name, str) and holder_name else DEFAULT_DOWNLOAD_HOLDER,
        )
    except Exception as exc:
        logger.exception("pass_download_build_failed", token_id=claims.get("jti"))
        raise http_error(500, "E_PASS_BUILD_FAILED") from exc
    return pkpass_bytes_response(content)


@router.get("/api/pass")
async def adhoc_pass(
    name: str = Query(default=DEFAULT_ADHOC_HOLDER, max_length=64),
    serial: str | None = Query(default=None, max_length=64),
    code: str | None = Query(default=None, max_length=256),
    barcode_format: str | None = Query(default=None, alias="barcodeFormat", max_length=64),
) -> Response:
    serial_number = serial or _serial_number()
    try:
        content = await asyncio.to_thread(
            _build_pass_bytes,
            serial_number=serial_number,
            holder_name=name,
            barcode_message=code,
            barcode_format=barcode_format,
        )
    except Exception as exc:
        logger.exception("adhoc_pass_build_failed", serial_number=serial_number)
        raise http_error(500, "E_PASS_BUILD_FAILED") from exc
    return pkpass_bytes_response(content, filename=f"pass-{serial_number}.pkpass")
