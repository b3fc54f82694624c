"""Monthly usage counters and cap enforcement."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

import psycopg2

from pixzen.domain.plans import (
    DEFAULT_USAGE_LIMIT,
    UNLIMITED,
    UNLIMITED_REPORTED_LIMIT,
    usage_limit_for,
)
from pixzen.infra.db import txn
from pixzen.infra.repositories import subscriptions_repository as subs_repo
from pixzen.infra.repositories import usage_repository as usage_repo
from pixzen.infra.time import current_month
from pixzen.observability.logging import get_logger
from pixzen.observability.redaction import safe_log_context

logger = get_logger(__name__)

UsageKind = Literal["messages", "audio", "images"]

USAGE_COLUMNS: dict[str, usage_repo.UsageCounter] = {
    "messages": "messages_count",
    "audio": "audio_count",
    "images": "image_count",
}


@dataclass(frozen=True)
class UsageCheck:
    allowed: bool
    used: int
    limit: int


def check_usage_limit(user_id: str, now: datetime | None = None) -> UsageCheck:
    """Compare this month's usage (messages + audio + images) with the plan cap.

    Fails open: on DB error the message is allowed.
    """
    month = current_month(now)
    try:
        with txn() as cur:
            usage = usage_repo.get_usage(cur, user_id, month) or {}
            subscription = subs_repo.get_subscription(cur, user_id)
    except psycopg2.Error as e:
        logger.error(
            "failed to check usage limit, allowing",
            extra={"extra_fields": safe_log_context(error_type=type(e).__name__)},
        )
        return UsageCheck(allowed=True, used=0, limit=DEFAULT_USAGE_LIMIT)

    plan = subscription.get("plano") if subscription else None
    limit = usage_limit_for(plan)
    used = (
        (usage.get("messages_count") or 0)
        + (usage.get("audio_count") or 0)
        + (usage.get("image_count") or 0)
    )

    if limit == UNLIMITED:
        return UsageCheck(allowed=True, used=used, limit=UNLIMITED_REPORTED_LIMIT)
    return UsageCheck(allowed=used < limit, used=used, limit=limit)


def increment_usage(user_id: str, kind: UsageKind, now: datetime | None = None) -> None:
    """Add one to this month's counter. Failures are logged, never raised."""
    try:
        with txn() as cur:
            usage_repo.increment_counter(
                cur, user_id=user_id, month=current_month(now), column=USAGE_COLUMNS[kind]
            )
    except psycopg2.Error as e:
        logger.error(
            "failed to increment usage",
            extra={
                "extra_fields": safe_log_context(kind=kind, error_type=type(e).__name__)
            },
        )
