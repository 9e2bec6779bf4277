"""Resend Email Service.

Sends provider notification emails via the Resend API with idempotency and retry logic.
"""

from __future__ import annotations

import html as html_module
import logging
import re
from dataclasses import dataclass

import httpx

from credentialing.core.config import settings
from credentialing.services.http_service import DEFAULT_RETRY_STATUSES, request_with_retries

logger = logging.getLogger(__name__)

RESEND_SEND_URL = "https://api.resend.com/emails"
RESEND_MAX_ATTEMPTS = 3
RESEND_RETRY_BASE_DELAY = 0.5
RESEND_RETRY_MAX_DELAY = 4.0
RESEND_TIMEOUT_SECONDS = 20.0


@dataclass
class SendResult:
    success: bool
    message_id: str | None = None
    error: str | None = None


def html_to_text(content: str) -> str:
    """Plain-text alternative for deliverability and inbox previews."""
    text = re.sub(r"<(script|style)[^>]*>.*?</\1>", "", content, flags=re.DOTALL | re.I)
    text = re.sub(r"<[^>]+>", " ", text)
    text = re.sub(r"\s+", " ", text).strip()
    return html_module.unescape(text)


def _from_address() -> str:
    if settings.NOTIFICATION_FROM_NAME:
        return f"{settings.NOTIFICATION_FROM_NAME} <{settings.NOTIFICATION_FROM_EMAIL}>"
    return settings.NOTIFICATION_FROM_EMAIL


def _error_detail(response: httpx.Response) -> str | None:
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        return data.get("message") or data.get("error")
    return None


async def send_email(
    to: str,
    subject: str,
    body: str,
    idempotency_key: str,
    api_key: str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SendResult:
    """
    Send one email.

    The idempotency key must be stable across retries; Resend answers 409
    for a key it has already accepted, which counts as sent.
    """
    payload: dict[str, object] = {
        "from": _from_address(),
        "to": [to],
        "subject": subject,
        "html": body,
    }
    text = html_to_text(body)
    if text:
        payload["text"] = text
    if settings.SUPPORT_EMAIL:
        payload["reply_to"] = settings.SUPPORT_EMAIL

    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
        "Idempotency-Key": idempotency_key,
    }

    try:
        async with httpx.AsyncClient(timeout=RESEND_TIMEOUT_SECONDS, transport=transport) as client:

            async def request_fn() -> httpx.Response:
                return await client.post(RESEND_SEND_URL, headers=headers, json=payload)

            response = await request_with_retries(
                request_fn,
                max_attempts=RESEND_MAX_ATTEMPTS,
                base_delay=RESEND_RETRY_BASE_DELAY,
                max_delay=RESEND_RETRY_MAX_DELAY,
                retry_statuses=DEFAULT_RETRY_STATUSES,
            )
    except httpx.TimeoutException:
        logger.warning("Resend timeout (idempotency_key=%s)", idempotency_key)
        return SendResult(success=False, error="Connection timeout")
    except httpx.RequestError as e:
        logger.warning("Resend connection error (idempotency_key=%s)", idempotency_key)
        return SendResult(success=False, error=f"Connection error: {e.__class__.__name__}")

    if 200 <= response.status_code < 300:
        return SendResult(success=True, message_id=_json_id(response))

    # Idempotency conflict = already sent
    if response.status_code == 409:
        logger.info("Email already sent (409) for %s", idempotency_key)
        return SendResult(success=True, message_id=_json_id(response))

    error = f"Resend API error: {response.status_code}"
    detail = _error_detail(response)
    if detail:
        error = f"{error} ({detail})"
    return SendResult(success=False, error=error)


def _json_id(response: httpx.Response) -> str | None:
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        message_id = data.get("id")
        if isinstance(message_id, str) and message_id:
            return message_id
    return None
