from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from framel.modules.orders.rules import as_decimal

TENTH = Decimal("0.1")


def normalize_search_query(query: Optional[str]) -> str:
    if query is None:
        return ""
    return query.strip().lower()


def average_rating(ratings: Iterable) -> float:
    """Mean rating rounded half-up to one decimal place.

    Raises ValueError for an empty sequence; callers show "no reviews yet".
    """
    values = [as_decimal(r) for r in ratings]
    if not values:
        raise ValueError("average_rating() of an empty sequence")
    mean = sum(values, Decimal(0)) / len(values)
    return float(mean.quantize(TENTH, rounding=ROUND_HALF_UP))


def format_kes(amount) -> str:
    """KES amount for display: thousands separators, decimals only when present."""
    value = as_decimal(amount or 0)
    if value == value.to_integral_value():
        return f"KES {int(value):,}"
    return f"KES {value.normalize():,f}"
