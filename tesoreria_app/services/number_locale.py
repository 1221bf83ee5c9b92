from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional


CURRENCY_SYMBOL = "$"
_CENT = Decimal("0.01")


def to_decimal(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return Decimal(str(value))
    if value is None:
        return None

    raw = str(value).strip().replace("\u00a0", "").replace(" ", "").replace(CURRENCY_SYMBOL, "")
    if not raw:
        return None
    try:
        parsed = Decimal(raw)
    except InvalidOperation:
        return None
    return parsed if parsed.is_finite() else None


def quantize_money(value: Any) -> Decimal:
    parsed = to_decimal(value)
    if parsed is None:
        return Decimal("0.00")
    return parsed.quantize(_CENT, rounding=ROUND_HALF_UP)


def format_decimal(value: Any, decimals: int = 2) -> str:
    parsed = to_decimal(value)
    if parsed is None:
        return "—" if value is None else str(value)

    safe_decimals = max(int(decimals), 0)
    quantum = Decimal(1).scaleb(-safe_decimals)
    quantized = parsed.quantize(quantum, rounding=ROUND_HALF_UP)
    if quantized == 0:
        quantized = abs(quantized)
    return f"{quantized:.{safe_decimals}f}"


def format_currency(value: Any, symbol: str = CURRENCY_SYMBOL) -> str:
    """Monto con símbolo y exactamente dos decimales, sin separador de miles: $1234.50."""
    parsed = to_decimal(value)
    if parsed is None:
        return "—" if value is None else str(value)
    return f"{symbol}{format_decimal(parsed, decimals=2)}"
