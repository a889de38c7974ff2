from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

import jwt
import structlog

from app.core.config import ConfigurationError
from app.redemption.errors import InvalidOrExpiredTokenError

logger = structlog.get_logger(__name__)

TOKEN_PURPOSE = "pass-download"
TOKEN_ALGORITHM = "HS256"
HOLDER_NAME_MAX_LENGTH = 64


def sanitize_holder_name(raw_name: object) -> str | None:
    if not isinstance(raw_name, str):
        return None
    trimmed = raw_name.strip()[:HOLDER_NAME_MAX_LENGTH].strip()
    return trimmed or None


def _require_secret(secret: str) -> str:
    if not secret:
        raise ConfigurationError("JWT_SECRET is not set")
    return secret


def mint_download_token(
    ttl_seconds: int,
    holder_name: str | None = None,
    *,
    secret: str,
    now: datetime | None = None,
) -> str:
    signing_key = _require_secret(secret)
    issued_at = now or datetime.now(timezone.utc)
    payload: dict[str, object] = {
        "typ": TOKEN_PURPOSE,
        "exp": int((issued_at + timedelta(seconds=ttl_seconds)).timestamp()),
        "jti": secrets.token_hex(16),
    }
    name = sanitize_holder_name(holder_name)
    if name is not None:
        payload["name"] = name
    return jwt.encode(payload, signing_key, algorithm=TOKEN_ALGORITHM)


def verify_download_token(token: str, *, secret: str) -> dict[str, object]:
    """Every rejection surfaces as InvalidOrExpiredTokenError; only the log knows why."""
    signing_key = _require_secret(secret)
    try:
        payload = jwt.decode(
            token,
            signing_key,
            algorithms=[TOKEN_ALGORITHM],
            options={"require": ["exp"]},
        )
    except jwt.ExpiredSignatureError:
        logger.info("download_token_rejected", reason="expired")
        raise InvalidOrExpiredTokenError from None
    except jwt.InvalidSignatureError:
        logger.info("download_token_rejected", reason="bad_signature")
        raise InvalidOrExpiredTokenError from None
    except jwt.PyJWTError:
        logger.info("download_token_rejected", reason="malformed")
        raise InvalidOrExpiredTokenError from None

    if payload.get("typ") != TOKEN_PURPOSE:
        logger.info("download_token_rejected", reason="wrong_purpose")
        raise InvalidOrExpiredTokenError
    return payload
