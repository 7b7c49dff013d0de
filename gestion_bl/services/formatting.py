from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from gestion_bl.services.aggregation import MILLIME, to_decimal

PLACEHOLDER = "—"
CURRENCY = "TND"


def quantize_millimes(value: Any) -> Decimal:
    return to_decimal(value).quantize(MILLIME, rounding=ROUND_HALF_UP)


def format_amount(value: Any, *, placeholder: str = PLACEHOLDER) -> str:
    """Montant avec exactement 3 décimales ; None -> placeholder."""
    if value is None:
        return placeholder
    return f"{quantize_millimes(value):.3f}"


def format_tnd(value: Any, *, placeholder: str = PLACEHOLDER) -> str:
    if value is None:
        return placeholder
    return f"{format_amount(value)} {CURRENCY}"
