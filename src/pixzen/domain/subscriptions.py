"""Subscription lookups and trial status with self-healing backfill."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

import psycopg2

from pixzen.domain.plans import ACTIVE, ACTIVE_STATUS, EXPIRED, TrialStatus, compute_trial_status
from pixzen.infra.db import txn
from pixzen.infra.repositories import subscriptions_repository as subs_repo
from pixzen.infra.repositories import whatsapp_users_repository as users_repo
from pixzen.infra.time import utc_now
from pixzen.observability.logging import get_logger
from pixzen.observability.redaction import safe_log_context

logger = get_logger(__name__)

DEFAULT_PLAN = "free"


@dataclass(frozen=True)
class Subscription:
    plano: str = DEFAULT_PLAN
    status: str | None = None
    criado_em: datetime | None = None


def get_user_subscription(user_id: str) -> Subscription:
    """Subscription of an account. A free placeholder when absent or on error."""
    try:
        with txn() as cur:
            row = subs_repo.get_subscription(cur, user_id)
    except psycopg2.Error as e:
        logger.warning(
            "failed to get subscription, assuming free",
            extra={"extra_fields": safe_log_context(error_type=type(e).__name__)},
        )
        return Subscription()

    if row is None:
        return Subscription()
    return Subscription(
        plano=row.get("plano") or DEFAULT_PLAN,
        status=row.get("status"),
        criado_em=row.get("criado_em"),
    )


def _aware(value: datetime) -> datetime:
    """Timestamps without tzinfo are UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def check_trial_status(user_id: str, now: datetime | None = None) -> TrialStatus:
    """Trial status of an account.

    - status 'ativo': active, never expired
    - otherwise the trial runs 7 days from assinantes.criado_em
    - no subscription row: the start is backfilled from the linked contact
      (updated_at, else created_at) and persisted as a trial row

    No start date at all, or a DB error, yields an expired status.
    """
    now = now or utc_now()
    try:
        with txn() as cur:
            row = subs_repo.get_subscription(cur, user_id)
            if row and row.get("status") == ACTIVE_STATUS:
                return ACTIVE

            start = row.get("criado_em") if row else None
            if start is None:
                contact = users_repo.get_timestamps_by_account(cur, user_id)
                if contact:
                    start = contact.get("updated_at") or contact.get("created_at")
                if start is not None:
                    subs_repo.upsert_trial(cur, user_id, started_at=start)
                    logger.info(
                        "trial start backfilled",
                        extra={"extra_fields": safe_log_context(user_id=user_id)},
                    )
    except psycopg2.Error as e:
        logger.error(
            "failed to check trial status",
            extra={"extra_fields": safe_log_context(error_type=type(e).__name__)},
        )
        return EXPIRED

    if start is None:
        return EXPIRED
    return compute_trial_status(_aware(start), now)
