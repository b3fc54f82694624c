"""Request authentication helpers.

- Provider webhook: optional IP allowlist and shared secret
- Internal admin calls: `x-internal-key` shared secret (fail-closed)
"""

from __future__ import annotations

import hmac
import os

from fastapi import HTTPException, Request

from pixzen.observability.logging import get_logger
from pixzen.observability.redaction import safe_log_context

logger = get_logger(__name__)

INTERNAL_KEY_HEADER = "x-internal-key"
WEBHOOK_SECRET_HEADER = "x-webhook-secret"


def extract_bearer_token(request: Request) -> str | None:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header[7:]


def client_ip(request: Request) -> str:
    """Caller IP as seen by the reverse proxy.

    x-real-ip first, then the first x-forwarded-for hop, then the socket peer.
    """
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


def _allowed_ips() -> list[str]:
    raw = os.environ.get("WEBHOOK_ALLOWED_IPS", "")
    return [ip.strip() for ip in raw.split(",") if ip.strip()]


def is_webhook_ip_allowed(request: Request) -> bool:
    """True when no allowlist is configured or the caller is on it."""
    allowed = _allowed_ips()
    if not allowed:
        return True
    return client_ip(request) in allowed


def is_webhook_secret_valid(request: Request) -> bool:
    """True when no secret is configured or the request carries it."""
    expected = os.environ.get("WEBHOOK_SECRET", "")
    if not expected:
        return True
    provided = request.headers.get(WEBHOOK_SECRET_HEADER) or extract_bearer_token(request)
    return bool(provided) and hmac.compare_digest(provided.encode(), expected.encode())


def require_internal_key(request: Request) -> None:
    """FastAPI dependency guarding admin routes.

    Raises:
        HTTPException: 403 if INTERNAL_API_KEY is unset or does not match.
    """
    expected = os.environ.get("INTERNAL_API_KEY", "")
    provided = request.headers.get(INTERNAL_KEY_HEADER, "")
    if not expected or not provided or not hmac.compare_digest(
        provided.encode(), expected.encode()
    ):
        logger.warning(
            "internal key rejected",
            extra={
                "extra_fields": safe_log_context(
                    path=request.url.path, configured=bool(expected)
                )
            },
        )
        raise HTTPException(status_code=403, detail="Acesso negado")
