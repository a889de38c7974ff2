from __future__ import annotations

from pathlib import Path

from fastapi import HTTPException, Request
from fastapi.responses import FileResponse, Response
from redis.asyncio import Redis

from app.core.config import ConfigurationError
from app.redemption.errors import (
    CodeAlreadyConsumedOrVoidError,
    CodeEmailMismatchError,
    CodeExpiredError,
    CodeNotFoundError,
    CodeSpaceExhaustedError,
    InvalidOrExpiredTokenError,
    PaymentSessionInvalidError,
)
from app.services.pass_builder import PKPASS_CONTENT_TYPE

DOWNLOAD_FILENAME = "discount_card.pkpass"

_ERROR_STATUS: tuple[tuple[type[Exception], int, str], ...] = (
    (CodeNotFoundError, 404, "E_CODE_INVALID"),
    (CodeAlreadyConsumedOrVoidError, 409, "E_CODE_ALREADY_USED"),
    (CodeExpiredError, 410, "E_CODE_EXPIRED"),
    (CodeEmailMismatchError, 422, "E_CODE_EMAIL_MISMATCH"),
    (InvalidOrExpiredTokenError, 400, "E_TOKEN_INVALID"),
    (PaymentSessionInvalidError, 400, "E_PAYMENT_SESSION_INVALID"),
    (CodeSpaceExhaustedError, 500, "E_CODE_CREATE_FAILED"),
    (ConfigurationError, 500, "E_NOT_CONFIGURED"),
)


def http_error(status_code: int, code: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"code": code})


def as_http_error(exc: Exception) -> HTTPException:
    for error_type, status_code, code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return http_error(status_code, code)
    return http_error(500, "E_INTERNAL")


def get_redis(request: Request) -> Redis | None:
    return getattr(request.app.state, "redis", None)


def attachment_headers(filename: str) -> dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


def pkpass_bytes_response(content: bytes, *, filename: str = DOWNLOAD_FILENAME) -> Response:
    return Response(
        content=content,
        media_type=PKPASS_CONTENT_TYPE,
        headers=attachment_headers(filename),
    )


def pkpass_file_response(path: Path, *, filename: str = DOWNLOAD_FILENAME) -> FileResponse:
    return FileResponse(path, media_type=PKPASS_CONTENT_TYPE, headers=attachment_headers(filename))
