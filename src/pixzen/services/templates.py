"""Admin-editable message templates with a read-through cache.

Templates live in `message_templates` and use `{{name}}` placeholders.
A missing template (or an unreachable database) yields "" so callers can fall back to
their hard-coded text.
"""

from __future__ import annotations

import psycopg2

from pixzen.infra.cache import TTLCache
from pixzen.infra.db import txn
from pixzen.infra.repositories import templates_repository as templates_repo
from pixzen.observability.logging import get_logger
from pixzen.observability.redaction import safe_log_context

logger = get_logger(__name__)

# Template keys used by the bot
WELCOME = "welcome"
WELCOME_LINK = "welcome_link"
TRIAL_EXPIRED = "trial_expired"
LIMIT_REACHED = "error_limit_reached"
LINK_CODE = "link_code"


def render(content: str, variables: dict[str, str] | None = None) -> str:
    """Replace every `{{name}}` occurrence with its value."""
    if not variables:
        return content
    for name, value in variables.items():
        content = content.replace("{{" + name + "}}", str(value))
    return content


class TemplateService:
    """Template lookup owning its cache (5 minute TTL)."""

    def __init__(self, cache: TTLCache[str] | None = None) -> None:
        self._cache: TTLCache[str] = cache if cache is not None else TTLCache()

    def _load(self, key: str) -> str | None:
        with txn() as cur:
            row = templates_repo.get_active_template(cur, key)
        if row is None:
            logger.warning(
                "template not found",
                extra={"extra_fields": safe_log_context(template_key=key)},
            )
            return None
        return row["template_content"]

    def get_template(self, key: str, variables: dict[str, str] | None = None) -> str:
        try:
            content = self._cache.get_or_load(key, lambda: self._load(key))
        except (psycopg2.Error, RuntimeError) as e:
            logger.error(
                "failed to fetch template",
                extra={
                    "extra_fields": safe_log_context(
                        template_key=key, error_type=type(e).__name__
                    )
                },
            )
            return ""
        if not content:
            return ""
        return render(content, variables)

    def clear_cache(self) -> None:
        self._cache.clear()

    def cache_size(self) -> int:
        return len(self._cache)


_template_service: TemplateService | None = None


def get_template_service() -> TemplateService:
    """Process-wide template service (one cache per process)."""
    global _template_service
    if _template_service is None:
        _template_service = TemplateService()
    return _template_service
