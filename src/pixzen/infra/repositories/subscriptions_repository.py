"""Subscriptions repository - `assinantes` rows (trial and paid plans).

Uses raw SQL with psycopg2 (no ORM). One row per account (unique user_id).
"""

from datetime import datetime
from typing import Any

from psycopg2.extensions import cursor as PgCursor


def get_subscription(cur: PgCursor, user_id: str) -> dict[str, Any] | None:
    """Fetch status, plano and criado_em for an account."""
    cur.execute(
        """
        SELECT status, plano, criado_em
        FROM assinantes
        WHERE user_id = %s
        LIMIT 1
        """,
        (user_id,),
    )
    return cur.fetchone()


def upsert_trial(
    cur: PgCursor,
    user_id: str,
    started_at: datetime | None = None,
) -> None:
    """Create a trial subscription, or touch atualizado_em if one exists.

    Args:
        cur: Database cursor (within transaction).
        user_id: Account identifier.
        started_at: Trial start. Defaults to now() on the database side.
    """
    cur.execute(
        """
        INSERT INTO assinantes (user_id, status, plano, criado_em, atualizado_em)
        VALUES (%s, 'trial', 'trial', COALESCE(%s, now()), now())
        ON CONFLICT (user_id) DO UPDATE SET atualizado_em = now()
        """,
        (user_id, started_at),
    )
