#!/usr/bin/env python3
"""Security & PII gate for runtime code.

Fails if, anywhere under src/:
- print() is called
- a logger call mentions a sensitive name (phone, payload, transcript...)
  without passing it through redaction (safe_log_context/hash_phone/redact_value)

Usage:
    python scripts/gate_security_pii.py [SRC_DIR]
"""

from __future__ import annotations

import ast
import sys
from pathlib import Path

SENSITIVE_KEYWORDS = (
    "payload",
    "phone",
    "push_name",
    "transcript",
    "media_key",
    "request.json",
    "message_text",
)

LOGGER_METHODS = frozenset({"debug", "info", "warning", "error", "critical", "exception"})

REDACTION_MARKERS = ("safe_log_context", "hash_phone", "redact_value")


def _is_logger_call(node: ast.Call) -> bool:
    func = node.func
    return (
        isinstance(func, ast.Attribute)
        and func.attr in LOGGER_METHODS
        and isinstance(func.value, ast.Name)
        and func.value.id == "logger"
    )


def check_source(source: str, filename: str = "<src>") -> list[str]:
    """Return one message per violation found in a module's source."""
    try:
        tree = ast.parse(source, filename=filename)
    except SyntaxError as e:
        return [f"{filename}:{e.lineno}: syntax error"]

    errors = []
    for node in ast.walk(tree):
        if not isinstance(node, ast.Call):
            continue

        if isinstance(node.func, ast.Name) and node.func.id == "print":
            errors.append(f"{filename}:{node.lineno}: print() not allowed in runtime code")
            continue

        if not _is_logger_call(node):
            continue
        segment = ast.get_source_segment(source, node) or ""
        if any(marker in segment for marker in REDACTION_MARKERS):
            continue
        lowered = segment.lower()
        for keyword in SENSITIVE_KEYWORDS:
            if keyword in lowered:
                errors.append(
                    f"{filename}:{node.lineno}: logger call with '{keyword}' "
                    "must use redaction (safe_log_context/hash_phone)"
                )
    return errors


def main(argv: list[str]) -> int:
    src_dir = Path(argv[1]) if len(argv) > 1 else Path(__file__).parent.parent / "src"
    if not src_dir.exists():
        sys.stderr.write(f"Error: {src_dir} not found\n")
        return 1

    all_errors: list[str] = []
    for pyfile in sorted(src_dir.rglob("*.py")):
        all_errors.extend(check_source(pyfile.read_text(encoding="utf-8"), str(pyfile)))

    if all_errors:
        sys.stderr.write("PII gate FAILED:\n")
        for err in all_errors:
            sys.stderr.write(f"  {err}\n")
        return 1

    sys.stdout.write("PII gate passed\n")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
