"""Link codes repository - single-use account linking codes.

Uses raw SQL with psycopg2 (no ORM).
"""

from datetime import datetime
from typing import Any

from psycopg2.extensions import cursor as PgCursor


def insert_link_code(
    cur: PgCursor,
    *,
    whatsapp_user_id: str,
    code: str,
    expires_at: datetime,
) -> None:
    cur.execute(
        """
        INSERT INTO whatsapp_link_codes (whatsapp_user_id, code, expires_at, used)
        VALUES (%s, %s, %s, false)
        """,
        (whatsapp_user_id, code, expires_at),
    )


def lock_redeemable(cur: PgCursor, code: str) -> dict[str, Any] | None:
    """Select an unused, unexpired code with its contact phone, locking it.

    The row lock keeps two concurrent redemptions of the same code from
    both succeeding.

    Args:
        cur: Database cursor (within transaction).
        code: Code as typed by the user (already uppercased).

    Returns:
        Row with id, whatsapp_user_id and phone, or None.
    """
    cur.execute(
        """
        SELECT lc.id, lc.whatsapp_user_id, wu.phone
        FROM whatsapp_link_codes lc
        JOIN whatsapp_users wu ON wu.id = lc.whatsapp_user_id
        WHERE lc.code = %s AND lc.used = false AND lc.expires_at > now()
        LIMIT 1
        FOR UPDATE OF lc
        """,
        (code,),
    )
    return cur.fetchone()


def mark_used(cur: PgCursor, link_code_id: str) -> None:
    cur.execute(
        "UPDATE whatsapp_link_codes SET used = true WHERE id = %s",
        (link_code_id,),
    )
