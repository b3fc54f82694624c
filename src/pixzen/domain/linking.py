"""Account linking - link code issuance and redemption.

A contact that is not linked to an application account receives a short
code; the user types it in the app, which calls `link_whatsapp_account`.
Redemption is the only multi-statement transaction of the bot: code check,
contact update, code consumption and trial subscription are committed or
rolled back together.
"""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass
from datetime import timedelta

import psycopg2

from pixzen.infra.db import txn
from pixzen.infra.repositories import link_codes_repository as codes_repo
from pixzen.infra.repositories import subscriptions_repository as subs_repo
from pixzen.infra.repositories import whatsapp_users_repository as users_repo
from pixzen.infra.time import utc_now
from pixzen.observability.logging import get_logger
from pixzen.observability.redaction import hash_phone, safe_log_context

logger = get_logger(__name__)

CODE_LENGTH = 6
CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_TTL = timedelta(minutes=10)

INVALID_CODE_ERROR = "Codigo invalido, expirado ou ja utilizado"
INTERNAL_ERROR = "Erro interno"


class LinkCodeError(Exception):
    """Link code could not be stored."""

    pass


@dataclass(frozen=True)
class LinkResult:
    success: bool
    phone: str | None = None
    error: str | None = None


def new_code() -> str:
    """Random 6-char uppercase alphanumeric code."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def generate_link_code(whatsapp_user_id: str) -> str:
    """Issue a single-use code valid for 10 minutes.

    Raises:
        LinkCodeError: If the code could not be stored.
    """
    code = new_code()
    try:
        with txn() as cur:
            codes_repo.insert_link_code(
                cur,
                whatsapp_user_id=whatsapp_user_id,
                code=code,
                expires_at=utc_now() + CODE_TTL,
            )
    except psycopg2.Error as e:
        raise LinkCodeError("failed to store link code") from e

    logger.info(
        "link code issued",
        extra={"extra_fields": safe_log_context(whatsapp_user_id=whatsapp_user_id)},
    )
    return code


def link_whatsapp_account(code: str, user_id: str) -> LinkResult:
    """Redeem a link code for an application account.

    Accepted only if the code is unused and not expired. On rejection or
    failure nothing is written.
    """
    try:
        with txn() as cur:
            row = codes_repo.lock_redeemable(cur, code.strip().upper())
            if row is None:
                return LinkResult(success=False, error=INVALID_CODE_ERROR)

            users_repo.mark_linked(
                cur, whatsapp_user_id=str(row["whatsapp_user_id"]), user_id=user_id
            )
            codes_repo.mark_used(cur, str(row["id"]))
            subs_repo.upsert_trial(cur, user_id)
    except psycopg2.Error as e:
        logger.error(
            "failed to link whatsapp account",
            extra={"extra_fields": safe_log_context(error_type=type(e).__name__)},
        )
        return LinkResult(success=False, error=INTERNAL_ERROR)

    phone = row.get("phone") or ""
    logger.info(
        "whatsapp account linked",
        extra={"extra_fields": safe_log_context(phone_hash=hash_phone(phone))},
    )
    return LinkResult(success=True, phone=phone)
