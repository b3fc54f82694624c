"""Static per-model pricing for AI cost metering (USD)."""

from decimal import Decimal

_PER_MILLION = Decimal(1_000_000)

# model -> (input price per unit, output price per unit)
# Chat models are priced per token; whisper-1 per second of audio.
MODEL_PRICING: dict[str, tuple[Decimal, Decimal]] = {
    "gpt-4o-mini": (Decimal("0.15") / _PER_MILLION, Decimal("0.60") / _PER_MILLION),
    "gpt-4o": (Decimal("2.50") / _PER_MILLION, Decimal("10.00") / _PER_MILLION),
    "gpt-4-turbo": (Decimal("10.00") / _PER_MILLION, Decimal("30.00") / _PER_MILLION),
    "gpt-3.5-turbo": (Decimal("0.50") / _PER_MILLION, Decimal("1.50") / _PER_MILLION),
    "whisper-1": (Decimal("0.006") / Decimal(60), Decimal(0)),
}


def estimate_cost(model: str, input_units: int, output_units: int) -> Decimal:
    """Cost of one call. Unknown models cost 0."""
    input_price, output_price = MODEL_PRICING.get(model, (Decimal(0), Decimal(0)))
    return input_units * input_price + output_units * output_price
