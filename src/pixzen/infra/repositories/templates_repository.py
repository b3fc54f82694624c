"""Message templates repository - admin-editable chat texts.

Uses raw SQL with psycopg2 (no ORM).
"""

from typing import Any

from psycopg2.extensions import cursor as PgCursor


def get_active_template(cur: PgCursor, template_key: str) -> dict[str, Any] | None:
    """Fetch template_content and variables of an active template."""
    cur.execute(
        """
        SELECT template_content, variables
        FROM message_templates
        WHERE template_key = %s AND is_active = true
        LIMIT 1
        """,
        (template_key,),
    )
    return cur.fetchone()
