"""Transactions repository - financial transactions created from chat.

Uses raw SQL with psycopg2 (no ORM).
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from psycopg2.extensions import cursor as PgCursor


def insert_transaction(
    cur: PgCursor,
    *,
    user_id: str,
    description: str,
    amount: Decimal,
    type: str,
    category_id: str,
    date: str | datetime,
    account_type: str,
    source: str,
) -> str:
    """Insert a transaction row.

    Returns:
        UUID string of the new transaction.
    """
    cur.execute(
        """
        INSERT INTO transactions (
            user_id, description, amount, type, category_id,
            date, account_type, source, created_at, updated_at
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, now(), now())
        RETURNING id
        """,
        (user_id, description, amount, type, category_id, date, account_type, source),
    )
    return str(cur.fetchone()["id"])


def list_amounts_since(
    cur: PgCursor,
    *,
    user_id: str,
    account_type: str,
    since: datetime,
) -> list[dict[str, Any]]:
    """List (amount, type) of an account's transactions dated on/after since."""
    cur.execute(
        """
        SELECT amount, type
        FROM transactions
        WHERE user_id = %s AND account_type = %s AND date >= %s
        """,
        (user_id, account_type, since),
    )
    return cur.fetchall()
