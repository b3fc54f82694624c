"""Shared test doubles for PixZen WhatsApp tests.

These are NOT fixtures - they are regular classes imported by test modules.
"""

from __future__ import annotations

from collections import deque
from typing import Any


class LogRecorder:
    """Simple recorder to capture log calls deterministically."""

    def __init__(self):
        self.calls: list[tuple[str, tuple, dict]] = []

    def _record(self, level: str, *args, **kwargs):
        self.calls.append((level, args, kwargs))

    def info(self, *args, **kwargs):
        self._record("info", *args, **kwargs)

    def warning(self, *args, **kwargs):
        self._record("warning", *args, **kwargs)

    def error(self, *args, **kwargs):
        self._record("error", *args, **kwargs)

    def exception(self, *args, **kwargs):
        self._record("exception", *args, **kwargs)

    def debug(self, *args, **kwargs):
        self._record("debug", *args, **kwargs)

    def get_all_logged_content(self) -> str:
        """Concatenate all args and kwargs from all calls into one string."""
        parts = []
        for _level, args, kwargs in self.calls:
            parts.append(str(args))
            parts.append(str(kwargs))
        return " ".join(parts)

    def has_extra_field(self, key: str) -> bool:
        """Check if any call has the given key in extra_fields."""
        for _, _, kwargs in self.calls:
            extra = kwargs.get("extra", {})
            if key in extra.get("extra_fields", {}):
                return True
        return False

    def messages(self, level: str | None = None) -> list[str]:
        return [args[0] for lvl, args, _ in self.calls if args and (level is None or lvl == level)]


class MockCursor:
    """Cursor double: records executed SQL and replays queued results.

    Each fetchone()/fetchall() pops the next queued result; an empty queue
    yields None / [].
    """

    def __init__(self, results: list[Any] | None = None):
        self.executed: list[tuple[str, tuple | None]] = []
        self._results = deque(results or [])

    def execute(self, query, params=None):
        self.executed.append((query, params))

    def fetchone(self):
        return self._results.popleft() if self._results else None

    def fetchall(self):
        return self._results.popleft() if self._results else []

    def queries(self) -> list[str]:
        return [" ".join(q.split()) for q, _ in self.executed]


class MockTxnContext:
    """Stand-in for txn(): yields a MockCursor, optionally raising on enter."""

    def __init__(self, cursor: MockCursor | None = None, error: Exception | None = None):
        self.cursor = cursor if cursor is not None else MockCursor()
        self.error = error
        self.exited_with: type | None = None

    def __enter__(self):
        if self.error is not None:
            raise self.error
        return self.cursor

    def __exit__(self, exc_type, exc, tb):
        self.exited_with = exc_type
        return False


def txn_factory(ctx: MockTxnContext):
    """Callable usable as patch(..., side_effect=...) for txn()."""

    def _txn(conn=None):
        return ctx

    return _txn
