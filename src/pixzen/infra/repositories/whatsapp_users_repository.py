"""WhatsApp users repository - contacts known to the bot.

Uses raw SQL with psycopg2 (no ORM). Phones are stored digits only.
"""

from typing import Any

from psycopg2.extensions import cursor as PgCursor


def get_by_phone(cur: PgCursor, phone: str) -> dict[str, Any] | None:
    """Fetch a WhatsApp user row by its digits-only phone."""
    cur.execute(
        """
        SELECT id, phone, user_id, name, is_linked, created_at, updated_at
        FROM whatsapp_users
        WHERE phone = %s
        LIMIT 1
        """,
        (phone,),
    )
    return cur.fetchone()


def insert_user(cur: PgCursor, *, phone: str, name: str) -> dict[str, Any] | None:
    """Insert an unlinked WhatsApp user and return the new row."""
    cur.execute(
        """
        INSERT INTO whatsapp_users (phone, name, user_id, is_linked, created_at, updated_at)
        VALUES (%s, %s, NULL, false, now(), now())
        RETURNING id, phone, user_id, name, is_linked, created_at, updated_at
        """,
        (phone, name),
    )
    return cur.fetchone()


def mark_linked(cur: PgCursor, *, whatsapp_user_id: str, user_id: str) -> None:
    """Associate a WhatsApp user with an application account."""
    cur.execute(
        """
        UPDATE whatsapp_users
        SET user_id = %s, is_linked = true, updated_at = now()
        WHERE id = %s
        """,
        (user_id, whatsapp_user_id),
    )


def get_timestamps_by_account(cur: PgCursor, user_id: str) -> dict[str, Any] | None:
    """Fetch created_at/updated_at of the WhatsApp user linked to an account."""
    cur.execute(
        """
        SELECT created_at, updated_at
        FROM whatsapp_users
        WHERE user_id = %s
        LIMIT 1
        """,
        (user_id,),
    )
    return cur.fetchone()
