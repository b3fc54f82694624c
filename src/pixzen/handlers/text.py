"""Text message handler: commands and free-form financial text."""

from __future__ import annotations

from pixzen.domain import finance
from pixzen.domain.finance import MonthSummary
from pixzen.handlers.common import process_financial_text
from pixzen.infra.time import local_now
from pixzen.observability.logging import get_logger
from pixzen.observability.redaction import hash_phone, safe_log_context
from pixzen.whatsapp import outbound
from pixzen.whatsapp.messages import HELP_MESSAGE, ErrorMessages, format_brl

logger = get_logger(__name__)

# Exact match
HELP_COMMANDS = ("/ajuda", "/help", "ajuda", "help", "?")
# Prefix match
BALANCE_COMMANDS = ("/saldo", "/resumo", "saldo", "resumo")

MONTH_NAMES = (
    "janeiro", "fevereiro", "março", "abril", "maio", "junho",
    "julho", "agosto", "setembro", "outubro", "novembro", "dezembro",
)


def is_help_command(normalized: str) -> bool:
    return normalized in HELP_COMMANDS


def is_balance_command(normalized: str) -> bool:
    return normalized.startswith(BALANCE_COMMANDS)


def _account_block(title: str, summary: MonthSummary) -> str:
    return (
        f"*{title}*\n"
        f"   Receitas: R$ {format_brl(summary.income)}\n"
        f"   Despesas: R$ {format_brl(summary.expense)}\n"
        f"   Saldo: R$ {format_brl(summary.balance)}\n"
        f"   Transacoes: {summary.transaction_count}\n\n"
    )


def format_balance(personal: MonthSummary, business: MonthSummary, month_label: str) -> str:
    total = personal.balance + business.balance
    return (
        f"*Resumo de {month_label}*\n\n"
        + _account_block("Conta Pessoal", personal)
        + _account_block("Conta Empresarial", business)
        + f"*Saldo Total: R$ {format_brl(total)}*"
    )


def current_month_label() -> str:
    now = local_now()
    return f"{MONTH_NAMES[now.month - 1]} de {now.year}"


def handle_balance_command(phone: str, user_id: str) -> None:
    try:
        personal = finance.get_month_summary(user_id, "personal")
        business = finance.get_month_summary(user_id, "business")
        outbound.send_text(phone, format_balance(personal, business, current_month_label()))
    except Exception:
        logger.exception(
            "balance command failed",
            extra={"extra_fields": safe_log_context(phone_hash=hash_phone(phone))},
        )
        outbound.send_text(phone, ErrorMessages.GENERAL)


def handle_text_message(phone: str, text: str, user_id: str) -> None:
    """Route a text message: help, balance or financial text."""
    normalized = text.lower().strip()

    if is_help_command(normalized):
        outbound.send_text(phone, HELP_MESSAGE)
        return

    if is_balance_command(normalized):
        handle_balance_command(phone, user_id)
        return

    process_financial_text(phone, text, user_id)
