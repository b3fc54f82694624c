"""Document handler: PDFs only, text extracted with MarkItDown."""

from __future__ import annotations

import io

from markitdown import MarkItDown

from pixzen.domain import usage
from pixzen.handlers.text import handle_text_message
from pixzen.observability.logging import get_logger
from pixzen.observability.redaction import hash_phone, safe_log_context
from pixzen.whatsapp import media, outbound
from pixzen.whatsapp.messages import (
    DOCUMENT_ACK,
    DOCUMENT_DOWNLOAD_FAILED,
    DOCUMENT_PDF_ONLY,
    DOCUMENT_SCANNED,
    DOCUMENT_UNREADABLE,
    ErrorMessages,
)

logger = get_logger(__name__)

# Below this many characters a PDF is assumed to be a scanned image
MIN_TEXT_CHARS = 10

PDF_TEXT_PREFIX = "[PDF] "


def is_pdf(mime_type: str, file_name: str | None) -> bool:
    return "pdf" in mime_type or bool(file_name and file_name.lower().endswith(".pdf"))


def extract_pdf_text(data: bytes) -> str:
    """Text content of a PDF.

    Raises:
        Exception: Whatever the converter raises on a corrupt PDF.
    """
    result = MarkItDown().convert_stream(io.BytesIO(data), file_extension=".pdf")
    return result.text_content or ""


def handle_document_message(
    phone: str,
    url: str,
    mime_type: str,
    media_key: str,
    file_name: str | None,
    user_id: str,
) -> None:
    log_ctx = safe_log_context(phone_hash=hash_phone(phone), mime_type=mime_type)
    try:
        if not is_pdf(mime_type, file_name):
            outbound.send_text(phone, DOCUMENT_PDF_ONLY)
            return

        logger.info("processing pdf document", extra={"extra_fields": log_ctx})
        outbound.send_text(phone, DOCUMENT_ACK)

        data = media.fetch_media(url, media_key, "document")
        if not data:
            outbound.send_text(phone, DOCUMENT_DOWNLOAD_FAILED)
            return

        try:
            text = extract_pdf_text(data)
        except Exception:
            logger.exception("pdf text extraction failed", extra={"extra_fields": log_ctx})
            outbound.send_text(phone, DOCUMENT_UNREADABLE)
            return

        if len(text.strip()) < MIN_TEXT_CHARS:
            outbound.send_text(phone, DOCUMENT_SCANNED)
            return

        logger.info(
            "pdf text extracted",
            extra={"extra_fields": safe_log_context(**log_ctx, text_len=len(text))},
        )
        usage.increment_usage(user_id, "messages")
        handle_text_message(phone, PDF_TEXT_PREFIX + text, user_id)
    except Exception:
        logger.exception("document processing failed", extra={"extra_fields": log_ctx})
        outbound.send_text(phone, ErrorMessages.GENERAL)
