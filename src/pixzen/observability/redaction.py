"""Redaction helpers for safe logging.

Everything derived from a chat (phones, JIDs, names, texts, media) passes
through these before reaching a log line. Phones are logged as
`hash_phone(...)`; texts only as lengths.
"""

import hashlib
import re
from typing import Any

# WhatsApp JIDs embed the phone number ("5511...@s.whatsapp.net", "...@lid")
_JID_PATTERN = re.compile(r"[\w.:-]+@(?:s\.whatsapp\.net|lid|g\.us|c\.us)\b")
_PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-()]{8,}\d")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

_PATTERNS = (_JID_PATTERN, _EMAIL_PATTERN, _PHONE_PATTERN)

REDACTED = "[REDACTED]"

PHONE_HASH_LENGTH = 12


def hash_phone(phone: str) -> str:
    """Stable, non-reversible phone reference (sha256 prefix)."""
    return hashlib.sha256(phone.encode()).hexdigest()[:PHONE_HASH_LENGTH]


def redact_string(value: str) -> str:
    """Replace JIDs, e-mails and phone-like digit runs."""
    for pattern in _PATTERNS:
        value = pattern.sub(REDACTED, value)
    return value


def redact_value(value: Any) -> str:
    """String form of a value that is safe to log.

    Scalars are kept, strings are pattern-redacted, containers and binary
    blobs are reduced to their shape, anything else to its type name.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        return f"dict(keys={list(value)})"
    if isinstance(value, (list, tuple)):
        return f"list(len={len(value)})"
    if isinstance(value, (bytes, bytearray)):
        return f"bytes(len={len(value)})"
    return f"<{type(value).__name__}>"


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build `extra_fields` for a log call; every value goes through redact_value."""
    return {key: redact_value(value) for key, value in kwargs.items()}
