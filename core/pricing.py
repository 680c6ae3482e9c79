# core/pricing.py
"""Derived price figures for the detail view. Pure functions, no state."""
import datetime
import math
from typing import Optional, Sequence

from .models import PriceQuote


def lowest_price(prices: Sequence[PriceQuote]) -> Optional[PriceQuote]:
    """Cheapest quote; the first one wins a tie. None for an empty list."""
    if not prices:
        return None
    best = prices[0]
    for q in prices[1:]:
        if q.price < best.price:
            best = q
    return best


def price_spread(prices: Sequence[PriceQuote]) -> Optional[float]:
    if not prices:
        return None
    values = [q.price for q in prices]
    return max(values) - min(values)


def savings_percent(prices: Sequence[PriceQuote]) -> Optional[float]:
    """
    How much cheaper the best store is than the most expensive one, in
    percent. Only defined for two or more quotes and a non-zero maximum;
    otherwise None, so callers can hide the figure instead of showing NaN.
    """
    if len(prices) < 2:
        return None
    top = max(q.price for q in prices)
    if top <= 0:
        return None
    return price_spread(prices) / top * 100.0


def is_lowest(quote: PriceQuote, prices: Sequence[PriceQuote]) -> bool:
    best = lowest_price(prices)
    return best is not None and best.store == quote.store


def format_price(amount: float | None) -> str:
    """Chilean peso display: $59.990 (no decimals, dot thousands separator)."""
    if amount is None or (isinstance(amount, float) and math.isnan(amount)):
        return "Unavailable"
    rounded = int(round(amount))
    sign = "-" if rounded < 0 else ""
    return f"{sign}${abs(rounded):,}".replace(",", ".")


def format_percent(value: float | None) -> str:
    if value is None:
        return ""
    return f"{value:.1f}%"


def format_countdown(remaining: datetime.timedelta | None) -> Optional[str]:
    """m:ss with floored minutes and seconds; None when nothing is left."""
    if remaining is None:
        return None
    total_ms = int(remaining.total_seconds() * 1000)
    if total_ms <= 0:
        return None
    minutes = total_ms // 60000
    seconds = (total_ms % 60000) // 1000
    return f"{minutes}:{seconds:02d}"
