"""AI repository - model configuration and usage metering.

Uses raw SQL with psycopg2 (no ORM).
"""

from decimal import Decimal

from psycopg2.extensions import cursor as PgCursor


def list_ai_config(cur: PgCursor) -> dict[str, str]:
    """Return the ai_config key/value table as a dict."""
    cur.execute("SELECT config_key, config_value FROM ai_config")
    return {row["config_key"]: row["config_value"] for row in cur.fetchall()}


def insert_ai_usage(
    cur: PgCursor,
    *,
    user_id: str | None,
    model: str,
    input_tokens: int,
    output_tokens: int,
    cost_usd: Decimal,
    request_type: str,
) -> None:
    cur.execute(
        """
        INSERT INTO ai_usage_logs (
            user_id, model, input_tokens, output_tokens, cost_usd, request_type, created_at
        )
        VALUES (%s, %s, %s, %s, %s, %s, now())
        """,
        (user_id, model, input_tokens, output_tokens, cost_usd, request_type),
    )
