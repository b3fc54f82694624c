"""AI extraction of financial transactions (OpenAI).

Three entry points: free text (chat completion with a JSON object
response), audio (transcription) and receipt images (vision). A model
answer without a positive amount means "no transaction" and yields None.

Tunables (models, temperature, token budgets, system prompt) come from the
`ai_config` table through a 5 minute cache owned by the extractor. When the
table cannot be read, hard-coded defaults are used.

Every call is metered into `ai_usage_logs`; metering failures are logged
and ignored.

Security: NEVER log message texts or transcripts. Only lengths.
"""

from __future__ import annotations

import base64
import json
import os
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

import openai
import psycopg2
from openai import OpenAI

from pixzen.ai.pricing import estimate_cost
from pixzen.ai.prompts import (
    AUDIO_TRANSCRIPTION_HINT,
    FINANCE_EXTRACTION_PROMPT,
    image_prompt,
    with_current_date,
)
from pixzen.domain.finance import TransactionData
from pixzen.infra.cache import TTLCache
from pixzen.infra.db import txn
from pixzen.infra.repositories import ai_repository as ai_repo
from pixzen.infra.time import local_now
from pixzen.observability.logging import get_logger
from pixzen.observability.redaction import safe_log_context

logger = get_logger(__name__)

# Timeout for model calls (seconds)
OPENAI_TIMEOUT = 60

CONFIG_CACHE_KEY = "ai_config"

DEFAULT_AI_CONFIG: dict[str, str] = {
    "text_model": "gpt-4o-mini",
    "image_model": "gpt-4o",
    "audio_model": "whisper-1",
    "text_temperature": "0.1",
    "text_max_tokens": "300",
    "image_max_tokens": "500",
    "finance_prompt": FINANCE_EXTRACTION_PROMPT,
}

TEXT_CONFIDENCE = 0.8
IMAGE_CONFIDENCE = 0.7
IMAGE_DESCRIPTION = "Transacao via imagem"
DESCRIPTION_MAX_CHARS = 100

# Audio bytes per estimated second (metering proxy for whisper)
AUDIO_BYTES_PER_SECOND = 16000

# Ordered (mime prefix, extension) rules, matched by substring
AUDIO_EXTENSIONS: tuple[tuple[str, str], ...] = (
    ("audio/ogg", "ogg"),
    ("audio/mpeg", "mp3"),
    ("audio/mp3", "mp3"),
    ("audio/mp4", "mp4"),
    ("audio/m4a", "m4a"),
    ("audio/wav", "wav"),
    ("audio/webm", "webm"),
    ("audio/x-wav", "wav"),
    ("audio/flac", "flac"),
    ("audio/x-m4a", "m4a"),
)
DEFAULT_AUDIO_EXTENSION = "ogg"

VISION_MIME_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})


# ── Pure helpers ─────────────────────────────────────────


def audio_extension(mime_type: str) -> str:
    """File extension accepted by the transcription endpoint."""
    for mime, ext in AUDIO_EXTENSIONS:
        if mime in mime_type:
            return ext
    return DEFAULT_AUDIO_EXTENSION


def clean_audio_mime(mime_type: str) -> str:
    """Push-to-talk notes are OGG; otherwise drop parameters (`; codecs=...`)."""
    if "ptt" in mime_type:
        return "audio/ogg"
    return mime_type.split(";")[0].strip()


def vision_mime(mime_type: str | None) -> str:
    if mime_type in VISION_MIME_TYPES:
        return mime_type
    return "image/jpeg"


def extract_json_object(content: str) -> dict[str, Any] | None:
    """Parse the widest `{...}` block of a free-form reply.

    Raises:
        ValueError: If the block is not valid JSON.
    """
    start = content.find("{")
    end = content.rfind("}")
    if start == -1 or end <= start:
        return None
    parsed = json.loads(content[start : end + 1])
    return parsed if isinstance(parsed, dict) else None


def _positive_amount(value: Any) -> Decimal | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    return amount


def parse_transaction(
    result: dict[str, Any],
    *,
    default_description: str,
    default_confidence: float,
    now: datetime | None = None,
) -> TransactionData | None:
    """Build a TransactionData from model output.

    Missing, non-numeric or non-positive amounts mean no transaction.
    """
    amount = _positive_amount(result.get("amount"))
    if amount is None:
        return None

    date = result.get("date")
    if not date or date == "null":
        date = (now or local_now()).isoformat()

    tx_type = "income" if result.get("type") == "income" else "expense"

    category = result.get("category")
    if not isinstance(category, str) or not category:
        category = "outros_despesa"

    try:
        confidence = float(result.get("confidence") or default_confidence)
    except (TypeError, ValueError):
        confidence = default_confidence

    return TransactionData(
        type=tx_type,
        amount=amount,
        category=category,
        description=result.get("description") or default_description,
        date=str(date),
        confidence=confidence,
    )


def current_local_datetime(now: datetime | None = None) -> str:
    """São Paulo date and time as shown to the model (dd/mm/YYYY HH:MM:SS)."""
    return (now or local_now()).strftime("%d/%m/%Y %H:%M:%S")


def _as_float(value: str | None, default: float) -> float:
    try:
        return float(value) if value else default
    except ValueError:
        return default


def _as_int(value: str | None, default: int) -> int:
    try:
        return int(value) if value else default
    except ValueError:
        return default


# ── Persistence seams ────────────────────────────────────


def load_ai_config() -> dict[str, str]:
    with txn() as cur:
        return ai_repo.list_ai_config(cur)


def log_ai_usage(
    model: str,
    input_tokens: int,
    output_tokens: int,
    request_type: str,
    user_id: str | None = None,
) -> None:
    """Persist one metered model call. Never raises on DB errors."""
    cost = estimate_cost(model, input_tokens, output_tokens)
    try:
        with txn() as cur:
            ai_repo.insert_ai_usage(
                cur,
                user_id=user_id,
                model=model,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                cost_usd=cost,
                request_type=request_type,
            )
    except psycopg2.Error as e:
        logger.error(
            "failed to log ai usage",
            extra={
                "extra_fields": safe_log_context(
                    model=model, request_type=request_type, error_type=type(e).__name__
                )
            },
        )


# ── Extractor ────────────────────────────────────────────


class FinanceExtractor:
    """OpenAI-backed extraction with an owned config cache.

    Args:
        client: OpenAI client (created lazily from OPENAI_API_KEY if None).
        cache: Config cache (5 minute TTL by default).
        config_loader: Reads the ai_config table.
        usage_logger: Persists metering rows.
    """

    def __init__(
        self,
        client: OpenAI | None = None,
        cache: TTLCache[dict[str, str]] | None = None,
        config_loader: Callable[[], dict[str, str]] = load_ai_config,
        usage_logger: Callable[..., None] = log_ai_usage,
    ) -> None:
        self._client = client
        self._cache: TTLCache[dict[str, str]] = cache if cache is not None else TTLCache()
        self._config_loader = config_loader
        self._usage_logger = usage_logger

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(
                api_key=os.environ.get("OPENAI_API_KEY"), timeout=OPENAI_TIMEOUT
            )
        return self._client

    def get_config(self) -> dict[str, str]:
        """Current AI config; stored keys override the defaults."""
        try:
            stored = self._cache.get_or_load(CONFIG_CACHE_KEY, self._config_loader) or {}
        except (psycopg2.Error, RuntimeError) as e:
            logger.error(
                "failed to load ai config, using defaults",
                extra={"extra_fields": safe_log_context(error_type=type(e).__name__)},
            )
            stored = {}
        return {**DEFAULT_AI_CONFIG, **{k: v for k, v in stored.items() if v}}

    def clear_config_cache(self) -> None:
        self._cache.clear()

    def _meter(self, model: str, usage: Any, request_type: str, user_id: str | None) -> None:
        if usage is None:
            return
        try:
            self._usage_logger(
                model, usage.prompt_tokens, usage.completion_tokens, request_type, user_id
            )
        except Exception:
            logger.exception(
                "ai usage metering failed",
                extra={"extra_fields": safe_log_context(request_type=request_type)},
            )

    def analyze_text(self, text: str, user_id: str | None = None) -> TransactionData | None:
        """Extract a transaction from free text. None when there is none."""
        config = self.get_config()
        model = config["text_model"]
        system_prompt = with_current_date(config["finance_prompt"], current_local_datetime())

        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": text},
                ],
                response_format={"type": "json_object"},
                temperature=_as_float(config["text_temperature"], 0.1),
                max_tokens=_as_int(config["text_max_tokens"], 300),
            )
            self._meter(model, response.usage, "text", user_id)

            content = response.choices[0].message.content
            if not content:
                return None
            result = json.loads(content)
        except (openai.OpenAIError, ValueError) as e:
            logger.error(
                "text analysis failed",
                extra={
                    "extra_fields": safe_log_context(
                        model=model, text_len=len(text), error_type=type(e).__name__
                    )
                },
            )
            return None

        if not isinstance(result, dict):
            return None
        return parse_transaction(
            result,
            default_description=text[:DESCRIPTION_MAX_CHARS],
            default_confidence=TEXT_CONFIDENCE,
        )

    def transcribe_audio(
        self, data: bytes, mime_type: str, user_id: str | None = None
    ) -> str | None:
        """Transcribe a voice note (pt). None on failure or empty result."""
        config = self.get_config()
        model = config["audio_model"]
        ext = audio_extension(mime_type)
        clean_mime = clean_audio_mime(mime_type)

        logger.info(
            "transcribing audio",
            extra={
                "extra_fields": safe_log_context(
                    mime_type=mime_type, ext=ext, audio_len=len(data)
                )
            },
        )

        try:
            response = self.client.audio.transcriptions.create(
                file=(f"audio.{ext}", data, clean_mime),
                model=model,
                language="pt",
                prompt=AUDIO_TRANSCRIPTION_HINT,
            )
        except openai.OpenAIError as e:
            logger.error(
                "audio transcription failed",
                extra={
                    "extra_fields": safe_log_context(
                        model=model, error_type=type(e).__name__
                    )
                },
            )
            return None

        estimated_seconds = round(len(data) / AUDIO_BYTES_PER_SECOND)
        try:
            self._usage_logger(model, estimated_seconds, 0, "audio", user_id)
        except Exception:
            logger.exception(
                "ai usage metering failed",
                extra={"extra_fields": safe_log_context(request_type="audio")},
            )

        return response.text or None

    def analyze_image(
        self,
        data: bytes,
        caption: str | None = None,
        mime_type: str | None = None,
        user_id: str | None = None,
    ) -> TransactionData | None:
        """Extract a transaction from a receipt image. None when there is none."""
        config = self.get_config()
        model = config["image_model"]
        image_b64 = base64.b64encode(data).decode("ascii")
        prompt = image_prompt(caption, current_local_datetime())

        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": prompt},
                            {
                                "type": "image_url",
                                "image_url": {
                                    "url": f"data:{vision_mime(mime_type)};base64,{image_b64}"
                                },
                            },
                        ],
                    }
                ],
                max_tokens=_as_int(config["image_max_tokens"], 500),
            )
            self._meter(model, response.usage, "image", user_id)

            content = response.choices[0].message.content
            if not content:
                return None
            result = extract_json_object(content)
        except (openai.OpenAIError, ValueError) as e:
            logger.error(
                "image analysis failed",
                extra={
                    "extra_fields": safe_log_context(
                        model=model, image_len=len(data), error_type=type(e).__name__
                    )
                },
            )
            return None

        if result is None:
            return None
        return parse_transaction(
            result,
            default_description=IMAGE_DESCRIPTION,
            default_confidence=IMAGE_CONFIDENCE,
        )


_extractor: FinanceExtractor | None = None


def get_extractor() -> FinanceExtractor:
    """Process-wide extractor (one config cache per process)."""
    global _extractor
    if _extractor is None:
        _extractor = FinanceExtractor()
    return _extractor
