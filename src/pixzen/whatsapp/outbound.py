"""Outbound WhatsApp messaging via UazAPI.

Sends are best-effort: every public function returns a bool (or None) and
never raises. Retries follow a linear backoff; permanent failures (HTTP
400/422, disconnected session) stop immediately.

Security: NEVER log phone or text. Only log hashes and lengths.
"""

from __future__ import annotations

import os
import re
import time
from dataclasses import dataclass
from typing import Any

import requests

from pixzen.observability.logging import get_logger
from pixzen.observability.redaction import hash_phone, safe_log_context

logger = get_logger(__name__)

# Timeout for HTTP requests (seconds)
HTTP_TIMEOUT = 30

# Retry config: MAX_RETRIES retries after the first attempt, delay grows
# linearly (attempt * RETRY_DELAY)
MAX_RETRIES = 2
RETRY_DELAY = 2.0

PERMANENT_STATUS_CODES = frozenset({400, 422})
PERMANENT_ERROR_MARKERS = ("disconnected", "logged out")

_NON_DIGITS = re.compile(r"\D")


@dataclass(frozen=True)
class PhoneValidation:
    valid: bool
    formatted: str
    error: str | None = None


def _get_config() -> dict[str, str]:
    """Get UazAPI config from environment.

    Required env vars:
    - UAZAPI_URL: Base URL of the instance (e.g., https://pixzen.uazapi.com)
    - UAZAPI_TOKEN: Instance token, sent in the `token` header
    """
    base_url = os.environ.get("UAZAPI_URL", "")
    token = os.environ.get("UAZAPI_TOKEN", "")

    if not base_url or not token:
        raise RuntimeError("Missing UazAPI config: UAZAPI_URL, UAZAPI_TOKEN")

    return {"base_url": base_url.rstrip("/"), "token": token}


def _headers(config: dict[str, str]) -> dict[str, str]:
    return {"Content-Type": "application/json", "token": config["token"]}


def _do_request(
    method: str,
    url: str,
    headers: dict[str, str],
    payload: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Execute HTTP request. Raises on network error or non-2xx status."""
    response = requests.request(
        method, url, json=payload, headers=headers, timeout=HTTP_TIMEOUT
    )
    response.raise_for_status()
    if not response.content:
        return {}
    return response.json()


def format_phone(phone: str) -> str:
    """Keep digits only."""
    return _NON_DIGITS.sub("", phone)


def validate_phone(phone: str) -> PhoneValidation:
    """Validate a Brazilian phone: 55 + DDD (11..99) + 8 or 9 digits."""
    formatted = format_phone(phone)
    if not formatted:
        return PhoneValidation(False, formatted, "Numero de telefone vazio")

    valid = (
        12 <= len(formatted) <= 13
        and formatted.startswith("55")
        and 11 <= int(formatted[2:4]) <= 99
    )
    if not valid:
        return PhoneValidation(
            False,
            formatted,
            "Numero de telefone brasileiro invalido. Formato esperado: 55XXXXXXXXXXX",
        )
    return PhoneValidation(True, formatted)


def _error_details(error: Exception) -> tuple[int | None, str]:
    """Extract (status_code, message) from a request error."""
    status_code = None
    message = str(error)

    response = getattr(error, "response", None)
    if response is not None:
        status_code = response.status_code
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            message = str(body["message"])

    return status_code, message


def is_permanent_failure(status_code: int | None, message: str) -> bool:
    """Whether a failed send must not be retried."""
    if status_code in PERMANENT_STATUS_CODES:
        return True
    lowered = message.lower()
    return any(marker in lowered for marker in PERMANENT_ERROR_MARKERS)


def _send(path: str, payload: dict[str, Any], log_ctx: dict[str, str]) -> bool:
    try:
        config = _get_config()
    except RuntimeError:
        logger.error("outbound send skipped: missing config", extra={"extra_fields": log_ctx})
        return False

    url = f"{config['base_url']}{path}"
    headers = _headers(config)

    logger.info("sending outbound message", extra={"extra_fields": log_ctx})

    for attempt in range(MAX_RETRIES + 1):
        if attempt > 0:
            time.sleep(RETRY_DELAY * attempt)

        try:
            _do_request("POST", url, headers, payload)
            logger.info(
                "outbound message sent",
                extra={"extra_fields": safe_log_context(**log_ctx, attempt=attempt)},
            )
            return True
        except (requests.RequestException, ValueError) as e:
            status_code, message = _error_details(e)
            fail_ctx = safe_log_context(
                **log_ctx,
                attempt=attempt,
                status_code=status_code,
                error_type=type(e).__name__,
            )

            if is_permanent_failure(status_code, message):
                logger.error(
                    "outbound send failed permanently", extra={"extra_fields": fail_ctx}
                )
                return False

            if attempt == MAX_RETRIES:
                logger.error(
                    "outbound send failed after retries", extra={"extra_fields": fail_ctx}
                )
                return False

            logger.warning(
                "outbound send failed, retrying", extra={"extra_fields": fail_ctx}
            )

    return False


def send_text(phone: str, message: str) -> bool:
    """Send a text message.

    Args:
        phone: Recipient phone. NEVER logged.
        message: Message text. NEVER logged.

    Returns:
        True if delivered to the provider, False otherwise.
    """
    number = format_phone(phone)
    log_ctx = safe_log_context(
        phone_hash=hash_phone(number), kind="text", text_len=len(message)
    )
    return _send("/send/text", {"number": number, "text": message}, log_ctx)


def send_image(phone: str, image_url: str, caption: str | None = None) -> bool:
    """Send an image by URL with an optional caption."""
    number = format_phone(phone)
    log_ctx = safe_log_context(
        phone_hash=hash_phone(number), kind="image", caption_len=len(caption or "")
    )
    payload = {"number": number, "image": image_url, "caption": caption or ""}
    return _send("/send/image", payload, log_ctx)


def get_instance_status() -> dict[str, Any] | None:
    """Fetch the provider session status, or None on any failure."""
    try:
        config = _get_config()
        return _do_request(
            "GET", f"{config['base_url']}/instance/status", _headers(config)
        )
    except (RuntimeError, requests.RequestException, ValueError) as e:
        logger.error(
            "failed to get instance status",
            extra={"extra_fields": safe_log_context(error_type=type(e).__name__)},
        )
        return None
