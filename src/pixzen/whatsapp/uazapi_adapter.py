"""UazAPI adapter - filter and normalize webhook payloads.

UazAPI delivers inbound events in (at least) two shapes:

- structured: ``{"EventType": "messages", "message": {...}, "chat": {...}}``
- legacy: a flat object with ``chatid``, ``text``, ``messageType``, ``media``

Both are mapped to the canonical `InboundMessage`. Normalization never
raises: a missing field falls through an explicit, ordered list of candidate
paths and ends in a default.
"""

from __future__ import annotations

import os
import re
import time
from typing import Any, Sequence

from .models import (
    JID_SUFFIX,
    MESSAGES_UPSERT,
    AudioContent,
    DocumentContent,
    ImageContent,
    InboundMessage,
    MessageContent,
    MessageData,
    MessageKey,
    extract_phone,
)

__all__ = ["extract_phone", "first_present", "normalize", "should_process"]

Path = tuple[str, ...]

STRUCTURED_EVENT_TYPE = "messages"

# Longest identifier accepted as a phone (E.164 has at most 15 digits)
MAX_PHONE_LENGTH = 15

# Suffixes stripped from phone candidates
_JID_SUFFIXES = (JID_SUFFIX, "@lid")

# Candidate paths, evaluated in priority order. Paths starting with "msg"
# are resolved against the message object, others against the payload root.
PHONE_CANDIDATES: tuple[Path, ...] = (("msg", "chatid"), ("msg", "sender"))
PHONE_FALLBACK_CANDIDATES: tuple[Path, ...] = (("chat", "jid"), ("msg", "owner"))
MESSAGE_ID_CANDIDATES: tuple[Path, ...] = (("msg", "messageid"), ("msg", "id"))
PUSH_NAME_CANDIDATES: tuple[Path, ...] = (("msg", "senderName"), ("chat", "lead_name"))
TEXT_CANDIDATES: tuple[Path, ...] = (("msg", "text"), ("msg", "content", "text"))
URL_CANDIDATES: tuple[Path, ...] = (("msg", "content", "URL"), ("msg", "media", "url"))
MIMETYPE_CANDIDATES: tuple[Path, ...] = (
    ("msg", "content", "mimetype"),
    ("msg", "media", "mimetype"),
)
MEDIA_KEY_CANDIDATES: tuple[Path, ...] = (
    ("msg", "content", "mediaKey"),
    ("msg", "media", "mediaKey"),
)
CAPTION_CANDIDATES: tuple[Path, ...] = (("msg", "caption"), ("msg", "content", "caption"))
FILENAME_CANDIDATES: tuple[Path, ...] = (
    ("msg", "content", "filename"),
    ("msg", "media", "filename"),
)
FILE_LENGTH_CANDIDATES: tuple[Path, ...] = (
    ("msg", "content", "fileLength"),
    ("msg", "media", "fileLength"),
)
SECONDS_CANDIDATES: tuple[Path, ...] = (
    ("msg", "media", "seconds"),
    ("msg", "content", "seconds"),
)
INSTANCE_CANDIDATES: tuple[Path, ...] = (("instanceName",), ("instance",))


def _dig(source: Any, path: Path) -> Any:
    """Walk nested dicts; None as soon as a step is missing or not a dict."""
    current = source
    for part in path:
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def first_present(
    roots: dict[str, Any],
    candidates: Sequence[Path],
    default: Any = "",
) -> Any:
    """Return the first truthy value among candidate paths, else default.

    Args:
        roots: Mapping of root names ("msg", "payload") to objects.
        candidates: Ordered paths. The first element selects the root when it
            names one; otherwise the path is resolved against "payload".
        default: Value returned when no candidate is present.
    """
    for path in candidates:
        if path[0] in roots:
            value = _dig(roots[path[0]], path[1:])
        else:
            value = _dig(roots["payload"], path)
        if value:
            return value
    return default


def _clean_phone(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    for suffix in _JID_SUFFIXES:
        value = value.replace(suffix, "")
    return value


def _resolve_phone(roots: dict[str, Any]) -> str:
    """Resolve the sender phone, avoiding opaque LID identifiers."""
    phone = ""
    for path in PHONE_CANDIDATES:
        phone = _clean_phone(first_present(roots, (path,)))
        if phone:
            break

    if "@" in phone or len(phone) > MAX_PHONE_LENGTH:
        for path in PHONE_FALLBACK_CANDIDATES:
            fallback = _clean_phone(first_present(roots, (path,)))
            if fallback:
                return fallback
        return re.sub(r"@.*", "", phone)

    return phone


def _is_structured(payload: dict[str, Any]) -> bool:
    return payload.get("EventType") == STRUCTURED_EVENT_TYPE and isinstance(
        payload.get("message"), dict
    ) and bool(payload.get("message"))


def _message_root(payload: dict[str, Any]) -> dict[str, Any]:
    """Object holding the message fields for either shape."""
    if _is_structured(payload):
        return payload["message"]
    return payload


def should_process(payload: Any) -> bool:
    """Decide whether a raw webhook event should reach the processor.

    Rejects echoes of our own sends, group chats and events that are not
    messages and carry no text or media-type hint.
    """
    if not isinstance(payload, dict):
        return False

    if _is_structured(payload):
        msg = payload["message"]
        if msg.get("fromMe") is True:
            return False
        if msg.get("isGroup") is True:
            return False
        return True

    if payload.get("fromMe") is True:
        return False
    if payload.get("isGroup") is True:
        return False
    return bool(payload.get("text") or payload.get("messageType"))


def _media_kind(message_type: Any) -> str:
    """Classify by case-insensitive substring of messageType."""
    lowered = message_type.lower() if isinstance(message_type, str) else ""
    for kind in ("audio", "image", "document"):
        if kind in lowered:
            return kind
    return "text"


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _build_content(roots: dict[str, Any], kind: str) -> MessageContent:
    url = str(first_present(roots, URL_CANDIDATES))
    media_key = str(first_present(roots, MEDIA_KEY_CANDIDATES))

    if kind == "audio":
        return MessageContent(
            audio=AudioContent(
                url=url,
                mimetype=str(
                    first_present(roots, MIMETYPE_CANDIDATES, "audio/ogg; codecs=opus")
                ),
                seconds=_as_int(first_present(roots, SECONDS_CANDIDATES, 0), 0),
                ptt=True,
                media_key=media_key,
            )
        )
    if kind == "image":
        return MessageContent(
            image=ImageContent(
                url=url,
                mimetype=str(first_present(roots, MIMETYPE_CANDIDATES, "image/jpeg")),
                caption=str(first_present(roots, CAPTION_CANDIDATES)),
                media_key=media_key,
            )
        )
    if kind == "document":
        return MessageContent(
            document=DocumentContent(
                url=url,
                mimetype=str(
                    first_present(roots, MIMETYPE_CANDIDATES, "application/pdf")
                ),
                title=str(first_present(roots, FILENAME_CANDIDATES, "document.pdf")),
                file_length=str(first_present(roots, FILE_LENGTH_CANDIDATES, "0")),
                media_key=media_key,
            )
        )

    text = first_present(roots, TEXT_CANDIDATES)
    return MessageContent(conversation=text if isinstance(text, str) else "")


def normalize(payload: Any) -> InboundMessage:
    """Map a raw UazAPI webhook payload to the canonical `InboundMessage`.

    Never raises. Worst case the result has an empty phone and content,
    which the processor treats as unprocessable.
    """
    if not isinstance(payload, dict):
        payload = {}

    msg = _message_root(payload)
    roots = {"payload": payload, "msg": msg}

    phone = _resolve_phone(roots)
    kind = _media_kind(msg.get("messageType"))
    default_instance = os.environ.get("UAZAPI_INSTANCE", "pixzen")

    return InboundMessage(
        event=MESSAGES_UPSERT,
        instance=str(first_present(roots, INSTANCE_CANDIDATES, default_instance)),
        data=MessageData(
            key=MessageKey(
                remote_jid=phone + JID_SUFFIX,
                from_me=msg.get("fromMe") is True,
                id=str(first_present(roots, MESSAGE_ID_CANDIDATES)),
            ),
            push_name=str(first_present(roots, PUSH_NAME_CANDIDATES)),
            message=_build_content(roots, kind),
            message_timestamp=_as_int(
                msg.get("messageTimestamp"), int(time.time() * 1000)
            ),
        ),
    )
