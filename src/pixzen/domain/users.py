"""WhatsApp contacts - lookup and first-contact registration.

ATENÇÃO PII: phone and name are never logged, only phone_hash.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import psycopg2

from pixzen.infra.db import txn
from pixzen.infra.repositories import whatsapp_users_repository as users_repo
from pixzen.observability.logging import get_logger
from pixzen.observability.redaction import hash_phone, safe_log_context

logger = get_logger(__name__)

_NON_DIGITS = re.compile(r"\D")


@dataclass(frozen=True)
class WhatsAppUser:
    id: str
    phone: str
    user_id: str | None
    name: str
    is_linked: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def linked(self) -> bool:
        """Usable for finance features (flag set and account present)."""
        return bool(self.is_linked and self.user_id)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> WhatsAppUser:
        return cls(
            id=str(row["id"]),
            phone=row["phone"],
            user_id=str(row["user_id"]) if row.get("user_id") else None,
            name=row.get("name") or "",
            is_linked=bool(row.get("is_linked")),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


def clean_phone(phone: str) -> str:
    return _NON_DIGITS.sub("", phone)


def get_user_by_phone(phone: str) -> WhatsAppUser | None:
    """Find the contact for a phone. None when unknown or on DB error."""
    digits = clean_phone(phone)
    try:
        with txn() as cur:
            row = users_repo.get_by_phone(cur, digits)
    except psycopg2.Error as e:
        logger.error(
            "failed to get whatsapp user",
            extra={
                "extra_fields": safe_log_context(
                    phone_hash=hash_phone(digits), error_type=type(e).__name__
                )
            },
        )
        return None
    return WhatsAppUser.from_row(row) if row else None


def create_whatsapp_user(phone: str, name: str) -> WhatsAppUser | None:
    """Register an unseen phone as an unlinked contact. None on DB error."""
    digits = clean_phone(phone)
    try:
        with txn() as cur:
            row = users_repo.insert_user(cur, phone=digits, name=name)
    except psycopg2.Error as e:
        logger.error(
            "failed to create whatsapp user",
            extra={
                "extra_fields": safe_log_context(
                    phone_hash=hash_phone(digits), error_type=type(e).__name__
                )
            },
        )
        return None

    if not row:
        return None

    logger.info(
        "whatsapp user created",
        extra={"extra_fields": safe_log_context(phone_hash=hash_phone(digits))},
    )
    return WhatsAppUser.from_row(row)
