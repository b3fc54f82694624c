"""Time utilities for consistent timestamp handling."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

# Civil timezone used for everything the user sees (prompts, replies, months)
LOCAL_TZ = ZoneInfo("America/Sao_Paulo")


def utc_now() -> datetime:
    """Return current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


def local_now() -> datetime:
    """Return current São Paulo wall-clock time (timezone-aware)."""
    return datetime.now(LOCAL_TZ)


def current_month(now: datetime | None = None) -> str:
    """Return the usage month key (YYYY-MM) for the given UTC instant."""
    return (now or utc_now()).strftime("%Y-%m")


def format_local_date(value: str | datetime) -> str:
    """Format an ISO string or datetime as dd/mm/YYYY in São Paulo time.

    Naive values are taken as already local. Unparseable strings are
    returned unchanged.
    """
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    if value.tzinfo is None:
        value = value.replace(tzinfo=LOCAL_TZ)
    return value.astimezone(LOCAL_TZ).strftime("%d/%m/%Y")
