"""Display helpers for amounts, rates and compact bid prices."""

import math
from typing import Optional

from . import policy


def _trim(x: float, digits: int) -> str:
    s = f"{x:.{digits}f}"
    return s.rstrip("0").rstrip(".") if "." in s else s


def _round_to(x: float, digits: int) -> float:
    scale = 10 ** digits
    return math.floor(x * scale + 0.5) / scale


def format_bid_price(price: Optional[float]) -> str:
    """Compact price for sweep tables: 1.38M, 786k, 1.5k, 500."""
    if price is None or not math.isfinite(price) or price <= 0:
        return "N/A"
    if price >= 1_000_000:
        millions = price / 1_000_000
        if millions >= 100:
            return f"{_round_to(millions, 0):.0f}M"
        if millions >= 10:
            return _trim(_round_to(millions, 1), 1) + "M"
        return _trim(_round_to(millions, 2), 2) + "M"
    if price >= 1000:
        thousands = price / 1000
        if thousands >= 100:
            return f"{_round_to(thousands, 0):.0f}k"
        return _trim(_round_to(thousands, 1), 1) + "k"
    return f"{_round_to(price, 0):.0f}"


def fm(x: float, currency: str = policy.CURRENCY) -> str:
    return f"{currency} {x:,.0f}"


def fmt_pct(rate: float, digits: int = 2) -> str:
    """Fraction as percent: 0.0175 -> '1.75%'."""
    return _trim(rate * 100.0, digits) + "%"
