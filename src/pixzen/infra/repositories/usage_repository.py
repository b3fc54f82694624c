"""Usage repository - monthly WhatsApp usage counters.

Uses raw SQL with psycopg2 (no ORM). One row per (user_id, month).
"""

from typing import Any, Literal

from psycopg2.extensions import cursor as PgCursor

UsageCounter = Literal["messages_count", "audio_count", "image_count"]

# Whitelist of counter columns (interpolated into SQL)
COUNTER_COLUMNS: frozenset[str] = frozenset(
    {"messages_count", "audio_count", "image_count"}
)


def get_usage(cur: PgCursor, user_id: str, month: str) -> dict[str, Any] | None:
    cur.execute(
        """
        SELECT messages_count, audio_count, image_count
        FROM whatsapp_usage
        WHERE user_id = %s AND month = %s
        LIMIT 1
        """,
        (user_id, month),
    )
    return cur.fetchone()


def increment_counter(
    cur: PgCursor,
    *,
    user_id: str,
    month: str,
    column: UsageCounter,
) -> None:
    """Atomically add 1 to a counter, creating the month row if needed.

    Raises:
        ValueError: If column is not a known counter.
    """
    if column not in COUNTER_COLUMNS:
        raise ValueError(f"unknown usage counter: {column}")

    cur.execute(
        f"""
        INSERT INTO whatsapp_usage (user_id, month, {column})
        VALUES (%s, %s, 1)
        ON CONFLICT (user_id, month)
        DO UPDATE SET {column} = whatsapp_usage.{column} + 1, updated_at = now()
        """,
        (user_id, month),
    )
