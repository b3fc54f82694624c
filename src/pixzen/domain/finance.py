"""Financial transactions extracted from chat messages.

The AI answers with Portuguese category names; storage uses English
category ids (CATEGORY_MAP). Unknown names fall back to the "other" id of
the transaction type.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Literal

import psycopg2

from pixzen.infra.db import txn
from pixzen.infra.repositories import transactions_repository as tx_repo
from pixzen.infra.time import local_now, utc_now
from pixzen.observability.logging import get_logger
from pixzen.observability.redaction import safe_log_context

logger = get_logger(__name__)

TransactionType = Literal["income", "expense"]
AccountType = Literal["personal", "business"]

CATEGORY_MAP: dict[str, str] = {
    # expense
    "alimentacao": "food",
    "mercado": "groceries",
    "transporte": "transport",
    "combustivel": "fuel",
    "saude": "health",
    "educacao": "education",
    "lazer": "entertainment",
    "moradia": "rent",
    "contas": "utilities",
    "roupas": "clothing",
    "beleza": "beauty",
    "pets": "pets",
    "viagem": "travel",
    "assinaturas": "subscriptions",
    "outros_despesa": "other_expense",
    # income
    "salario": "salary",
    "freelance": "freelance",
    "investimentos": "investments",
    "vendas": "sales",
    "presente": "gift_income",
    "reembolso": "refund",
    "aluguel": "rental",
    "outros_receita": "other_income",
}


@dataclass(frozen=True)
class TransactionData:
    """Transaction extracted by the AI, not yet persisted. amount > 0."""

    type: TransactionType
    amount: Decimal
    category: str
    description: str
    date: str
    confidence: float


@dataclass(frozen=True)
class MonthSummary:
    income: Decimal
    expense: Decimal
    balance: Decimal
    transaction_count: int


EMPTY_SUMMARY = MonthSummary(Decimal("0"), Decimal("0"), Decimal("0"), 0)


def category_id_for(category: str, tx_type: str) -> str:
    if category in CATEGORY_MAP:
        return CATEGORY_MAP[category]
    return "other_income" if tx_type == "income" else "other_expense"


def save_transaction(
    user_id: str,
    data: TransactionData,
    source: str,
    account_type: AccountType = "personal",
) -> bool:
    """Persist an extracted transaction. False on DB error."""
    try:
        with txn() as cur:
            tx_id = tx_repo.insert_transaction(
                cur,
                user_id=user_id,
                description=data.description,
                amount=data.amount,
                type=data.type,
                category_id=category_id_for(data.category, data.type),
                date=data.date or utc_now(),
                account_type=account_type,
                source=source,
            )
    except psycopg2.Error as e:
        logger.error(
            "failed to save transaction",
            extra={
                "extra_fields": safe_log_context(source=source, error_type=type(e).__name__)
            },
        )
        return False

    logger.info(
        "transaction saved",
        extra={
            "extra_fields": safe_log_context(
                transaction_id=tx_id, source=source, type=data.type
            )
        },
    )
    return True


def start_of_month(now: datetime | None = None) -> datetime:
    """Midnight of the first day of the current São Paulo month."""
    now = now or local_now()
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def summarize(rows: list[dict]) -> MonthSummary:
    """Aggregate (amount, type) rows."""
    income = sum(
        (Decimal(str(r["amount"])) for r in rows if r["type"] == "income"), Decimal("0")
    )
    expense = sum(
        (Decimal(str(r["amount"])) for r in rows if r["type"] == "expense"), Decimal("0")
    )
    return MonthSummary(
        income=income, expense=expense, balance=income - expense, transaction_count=len(rows)
    )


def get_month_summary(
    user_id: str,
    account_type: AccountType = "personal",
    now: datetime | None = None,
) -> MonthSummary:
    """Income/expense/balance of the current month. Zeros on DB error."""
    try:
        with txn() as cur:
            rows = tx_repo.list_amounts_since(
                cur, user_id=user_id, account_type=account_type, since=start_of_month(now)
            )
    except psycopg2.Error as e:
        logger.error(
            "failed to get month summary",
            extra={"extra_fields": safe_log_context(error_type=type(e).__name__)},
        )
        return EMPTY_SUMMARY
    return summarize(rows)
