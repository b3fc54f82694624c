"""Shared pipeline for content handlers: extract, persist, confirm.

Security: NEVER log phone or message text. Only phone_hash and lengths.
"""

from __future__ import annotations

from pixzen.ai import extractor as ai
from pixzen.domain import finance, usage
from pixzen.domain.finance import TransactionData
from pixzen.infra.time import format_local_date
from pixzen.observability.logging import get_logger
from pixzen.observability.redaction import hash_phone, safe_log_context
from pixzen.whatsapp import outbound
from pixzen.whatsapp.messages import TEXT_NOT_UNDERSTOOD, ErrorMessages, format_brl

logger = get_logger(__name__)

# Only the personal account is written from chat for now
DEFAULT_ACCOUNT_TYPE = "personal"
ACCOUNT_LABELS = {"personal": "Pessoal", "business": "Empresarial"}


def format_confirmation(data: TransactionData, account_type: str = DEFAULT_ACCOUNT_TYPE) -> str:
    """Chat confirmation of a saved transaction."""
    if data.type == "income":
        emoji, type_text = "💰", "Receita"
    else:
        emoji, type_text = "💸", "Despesa"

    return (
        f"{emoji} *{type_text} registrada!*\n\n"
        f"💵 Valor: R$ {format_brl(data.amount)}\n"
        f"📁 Categoria: {data.category}\n"
        f"📝 Descricao: {data.description}\n"
        f"📅 Data: {format_local_date(data.date)}\n"
        f"🏦 Conta: {ACCOUNT_LABELS.get(account_type, account_type)}"
    )


def save_and_confirm(
    phone: str,
    user_id: str,
    data: TransactionData,
    *,
    source: str,
    usage_kind: usage.UsageKind | None,
) -> bool:
    """Persist, count usage and confirm. Returns False if the save failed."""
    if not finance.save_transaction(user_id, data, source, DEFAULT_ACCOUNT_TYPE):
        outbound.send_text(phone, ErrorMessages.SAVE_FAILED)
        return False

    if usage_kind is not None:
        usage.increment_usage(user_id, usage_kind)

    outbound.send_text(phone, format_confirmation(data))
    return True


def process_financial_text(phone: str, text: str, user_id: str) -> None:
    """Free-form text pipeline shared by text, audio and document messages."""
    log_ctx = safe_log_context(phone_hash=hash_phone(phone), text_len=len(text))
    try:
        logger.info("analyzing financial text", extra={"extra_fields": log_ctx})

        data = ai.get_extractor().analyze_text(text, user_id)
        if data is None:
            outbound.send_text(phone, TEXT_NOT_UNDERSTOOD)
            return

        save_and_confirm(phone, user_id, data, source="whatsapp_text", usage_kind="messages")
    except Exception:
        logger.exception("financial text processing failed", extra={"extra_fields": log_ctx})
        outbound.send_text(phone, ErrorMessages.GENERAL)
