from __future__ import annotations

import asyncio
import smtplib
from email.message import EmailMessage

import httpx
import structlog

from app.core.config import get_settings

logger = structlog.get_logger(__name__)

RESEND_EMAILS_URL = "https://api.resend.com/emails"
CONFIRMATION_SUBJECT = "Your confirmation code"
SMTP_IMPLICIT_TLS_PORT = 465
SMTP_TIMEOUT_SECONDS = 10.0


def _setting_str(settings: object, attr: str) -> str:
    value = getattr(settings, attr, "")
    return value.strip() if isinstance(value, str) else ""


def build_confirmation_text(*, code: str, base_url: str) -> str:
    redeem_url = f"{base_url.rstrip('/')}/redeem"
    return "\n".join(
        [
            "Thanks for your purchase!",
            "",
            f"Your confirmation code: {code}",
            "",
            f"Redeem here: {redeem_url}",
            "",
            "This code is single-use. Keep it safe.",
        ]
    )


async def _send_via_resend(
    *,
    api_key: str,
    sender: str,
    to_address: str,
    subject: str,
    text: str,
) -> None:
    async with httpx.AsyncClient(timeout=10.0) as client:
        response = await client.post(
            RESEND_EMAILS_URL,
            json={"from": sender, "to": [to_address], "subject": subject, "text": text},
            headers={"Authorization": f"Bearer {api_key}"},
        )
        response.raise_for_status()


def _send_via_smtp(
    *,
    settings: object,
    sender: str,
    to_address: str,
    subject: str,
    text: str,
) -> None:
    message = EmailMessage()
    message["From"] = sender
    message["To"] = to_address
    message["Subject"] = subject
    message.set_content(text)

    host = _setting_str(settings, "smtp_host")
    port = int(getattr(settings, "smtp_port", 587))
    user = _setting_str(settings, "smtp_user")
    password = _setting_str(settings, "smtp_pass")

    if port == SMTP_IMPLICIT_TLS_PORT:
        with smtplib.SMTP_SSL(host, port, timeout=SMTP_TIMEOUT_SECONDS) as smtp:
            if user:
                smtp.login(user, password)
            smtp.send_message(message)
        return

    with smtplib.SMTP(host, port, timeout=SMTP_TIMEOUT_SECONDS) as smtp:
        smtp.starttls()
        if user:
            smtp.login(user, password)
        smtp.send_message(message)


async def send_confirmation_email(to_address: str, code: str) -> bool:
    settings = get_settings()
    sender = _setting_str(settings, "email_from") or "no-reply@example.com"
    text = build_confirmation_text(code=code, base_url=_setting_str(settings, "app_base_url"))
    resend_api_key = _setting_str(settings, "resend_api_key")
    provider = "resend" if resend_api_key else "smtp"

    try:
        if resend_api_key:
            await _send_via_resend(
                api_key=resend_api_key,
                sender=sender,
                to_address=to_address,
                subject=CONFIRMATION_SUBJECT,
                text=text,
            )
        else:
            await asyncio.to_thread(
                _send_via_smtp,
                settings=settings,
                sender=sender,
                to_address=to_address,
                subject=CONFIRMATION_SUBJECT,
                text=text,
            )
    except Exception:
        logger.exception("confirmation_email_delivery_failed", provider=provider)
        return False

    logger.info("confirmation_email_delivered", provider=provider)
    return True
