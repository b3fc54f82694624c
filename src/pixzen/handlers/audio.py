"""Audio (voice note) handler: download, transcribe, reuse the text pipeline."""

from __future__ import annotations

from pixzen.ai import extractor as ai
from pixzen.domain import usage
from pixzen.handlers.text import handle_text_message
from pixzen.observability.logging import get_logger
from pixzen.observability.redaction import hash_phone, safe_log_context
from pixzen.whatsapp import media, outbound
from pixzen.whatsapp.messages import AUDIO_ACK, AUDIO_NOT_UNDERSTOOD, ErrorMessages

logger = get_logger(__name__)


def handle_audio_message(
    phone: str,
    url: str,
    mime_type: str,
    media_key: str,
    user_id: str,
) -> None:
    log_ctx = safe_log_context(phone_hash=hash_phone(phone), mime_type=mime_type)
    try:
        logger.info("processing audio", extra={"extra_fields": log_ctx})
        outbound.send_text(phone, AUDIO_ACK)

        media_type = "ptt" if "ptt" in mime_type else "audio"
        data = media.fetch_media(url, media_key, media_type)
        if not data:
            outbound.send_text(phone, ErrorMessages.AUDIO_FAILED)
            return

        transcript = ai.get_extractor().transcribe_audio(data, mime_type, user_id)
        if not transcript:
            outbound.send_text(phone, AUDIO_NOT_UNDERSTOOD)
            return

        logger.info(
            "audio transcribed",
            extra={"extra_fields": safe_log_context(**log_ctx, transcript_len=len(transcript))},
        )
        usage.increment_usage(user_id, "audio")
        handle_text_message(phone, transcript, user_id)
    except Exception:
        logger.exception("audio processing failed", extra={"extra_fields": log_ctx})
        outbound.send_text(phone, ErrorMessages.AUDIO_FAILED)
