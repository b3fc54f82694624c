"""Database URL resolution for Alembic.

Kept apart from env.py so it can be tested without an alembic context.
DATABASE_URL may be a URL (postgres://, postgresql://) or a libpq key=value
DSN; both end up as a SQLAlchemy psycopg2 URL. DB_PASSWORD fills in a
missing password.
"""

from __future__ import annotations

import os
from urllib.parse import quote, quote_plus, urlsplit, urlunsplit

from psycopg2.extensions import parse_dsn

DRIVER_SCHEME = "postgresql+psycopg2"
_URL_SCHEMES = ("postgres", "postgresql")


def _with_password(netloc: str, password: str) -> str:
    userinfo, _, hostport = netloc.rpartition("@")
    user = userinfo.split(":", 1)[0]
    return f"{user}:{quote(password, safe='')}@{hostport}"


def url_from_url(url: str) -> str:
    """Normalize a postgres URL to the psycopg2 driver scheme."""
    parts = urlsplit(url)
    scheme = DRIVER_SCHEME if parts.scheme in _URL_SCHEMES else parts.scheme

    netloc = parts.netloc
    db_password = os.environ.get("DB_PASSWORD", "")
    if db_password and "@" in netloc and not parts.password:
        netloc = _with_password(netloc, db_password)

    return urlunsplit((scheme, netloc, parts.path, parts.query, parts.fragment))


def url_from_dsn(dsn: str) -> str:
    """Convert a libpq key=value DSN into a SQLAlchemy URL.

    A host starting with "/" is a unix socket directory and goes into the
    query string.
    """
    params = parse_dsn(dsn)
    password = params.get("password") or os.environ.get("DB_PASSWORD", "")

    user = quote_plus(params.get("user", ""))
    credentials = f"{user}:{quote_plus(password)}" if password else user
    dbname = quote_plus(params.get("dbname", ""))
    host = params.get("host", "localhost")
    port = params.get("port", "5432")

    if host.startswith("/"):
        return f"{DRIVER_SCHEME}://{credentials}@/{dbname}?host={quote_plus(host)}"
    return f"{DRIVER_SCHEME}://{credentials}@{host}:{port}/{dbname}"


def get_database_url() -> str:
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is required to run migrations")
    if "://" in url:
        return url_from_url(url)
    return url_from_dsn(url)
