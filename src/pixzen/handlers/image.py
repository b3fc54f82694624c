"""Image (receipt) handler: download, sniff format, vision extraction."""

from __future__ import annotations

from pixzen.ai import extractor as ai
from pixzen.handlers.common import save_and_confirm
from pixzen.observability.logging import get_logger
from pixzen.observability.redaction import hash_phone, safe_log_context
from pixzen.whatsapp import media, outbound
from pixzen.whatsapp.messages import IMAGE_ACK, IMAGE_NOT_UNDERSTOOD, ErrorMessages

logger = get_logger(__name__)

DEFAULT_IMAGE_FORMAT = "image/jpeg"


def detect_image_format(data: bytes) -> str:
    """Mimetype from magic numbers; JPEG when unrecognized."""
    if data[:3] == b"\xff\xd8\xff":
        return "image/jpeg"
    if data[:4] == b"\x89PNG":
        return "image/png"
    if data[:4] == b"GIF8":
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return DEFAULT_IMAGE_FORMAT


def handle_image_message(
    phone: str,
    url: str,
    caption: str | None,
    media_key: str,
    user_id: str,
) -> None:
    log_ctx = safe_log_context(phone_hash=hash_phone(phone), caption_len=len(caption or ""))
    try:
        logger.info("processing image", extra={"extra_fields": log_ctx})
        outbound.send_text(phone, IMAGE_ACK)

        data = media.fetch_media(url, media_key, "image")
        if not data:
            outbound.send_text(phone, ErrorMessages.IMAGE_FAILED)
            return

        image_format = detect_image_format(data)
        logger.info(
            "image downloaded",
            extra={
                "extra_fields": safe_log_context(
                    **log_ctx, image_len=len(data), image_format=image_format
                )
            },
        )

        tx = ai.get_extractor().analyze_image(data, caption, image_format, user_id)
        if tx is None:
            outbound.send_text(phone, IMAGE_NOT_UNDERSTOOD)
            return

        save_and_confirm(phone, user_id, tx, source="whatsapp_image", usage_kind="images")
    except Exception:
        logger.exception("image processing failed", extra={"extra_fields": log_ctx})
        outbound.send_text(phone, ErrorMessages.IMAGE_FAILED)
