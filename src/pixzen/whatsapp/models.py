"""Canonical inbound WhatsApp message models.

Every component downstream of the webhook normalizer depends only on these
types, never on raw provider fields.

ATENÇÃO PII:
- `MessageKey.remote_jid`, `push_name` and message texts are PII
- Never log them; log `phone_hash` and lengths instead
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

# Canonical event emitted by the normalizer
MESSAGES_UPSERT = "messages.upsert"

# Suffix of a one-to-one WhatsApp JID
JID_SUFFIX = "@s.whatsapp.net"
GROUP_SUFFIX = "@g.us"

ContentKind = Literal["text", "image", "audio", "document", "empty"]


@dataclass(frozen=True)
class ImageContent:
    url: str
    mimetype: str = "image/jpeg"
    caption: str = ""
    media_key: str = ""


@dataclass(frozen=True)
class AudioContent:
    url: str
    mimetype: str = "audio/ogg; codecs=opus"
    seconds: int = 0
    ptt: bool = True
    media_key: str = ""


@dataclass(frozen=True)
class DocumentContent:
    url: str
    mimetype: str = "application/pdf"
    title: str = "document.pdf"
    file_length: str = "0"
    media_key: str = ""


@dataclass(frozen=True)
class MessageContent:
    """Message body. At most one variant is populated.

    `conversation` is None (not "") when the message is not a text message,
    so an empty text is still distinguishable from media.
    """

    conversation: str | None = None
    image: ImageContent | None = None
    audio: AudioContent | None = None
    document: DocumentContent | None = None

    @property
    def kind(self) -> ContentKind:
        """Discriminant of the populated variant."""
        if self.conversation:
            return "text"
        if self.audio is not None:
            return "audio"
        if self.image is not None:
            return "image"
        if self.document is not None:
            return "document"
        return "empty"


@dataclass(frozen=True)
class MessageKey:
    remote_jid: str
    from_me: bool = False
    id: str = ""


@dataclass(frozen=True)
class MessageData:
    key: MessageKey
    push_name: str = ""
    message: MessageContent = field(default_factory=MessageContent)
    message_timestamp: int = 0


@dataclass(frozen=True)
class InboundMessage:
    """Normalized inbound message (canonical shape)."""

    event: str
    instance: str
    data: MessageData

    @property
    def phone(self) -> str:
        """Sender phone recovered from the JID."""
        return extract_phone(self.data.key.remote_jid)


def extract_phone(remote_jid: str) -> str:
    """Strip the JID suffix, leaving the phone digits.

    Only the one-to-one suffix (or a group suffix) is removed; every other
    character is left untouched.

    Args:
        remote_jid: WhatsApp JID (e.g., "5511999999999@s.whatsapp.net")

    Returns:
        Phone number without suffix (e.g., "5511999999999")
    """
    if remote_jid.endswith(JID_SUFFIX):
        return remote_jid[: -len(JID_SUFFIX)]
    if remote_jid.endswith(GROUP_SUFFIX):
        return remote_jid[: -len(GROUP_SUFFIX)]
    return remote_jid
