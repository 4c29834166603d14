"""
Rupiah formatting helpers (id-ID locale: "." groups thousands, no decimals)
"""
import math
import re
from typing import Optional, Union

Number = Union[int, float]

CURRENCY_PREFIX = "Rp\u00a0"

_NON_DIGITS = re.compile(r"[^\d]")


def _round_half_up(n: Number) -> int:
    return int(math.floor(n + 0.5))


def format_number(n: Optional[Number]) -> str:
    """Group digits the id-ID way: 150000 -> "150.000" """
    if n is None or (isinstance(n, float) and math.isnan(n)):
        n = 0
    value = _round_half_up(n)
    sign = "-" if value < 0 else ""
    return sign + f"{abs(value):,}".replace(",", ".")


def format_idr(n: Optional[Number]) -> str:
    """25000 -> "Rp 25.000" (non-breaking space, like Intl.NumberFormat)"""
    text = format_number(n)
    if text.startswith("-"):
        return "-" + CURRENCY_PREFIX + text[1:]
    return CURRENCY_PREFIX + text


def parse_idr(text: Optional[str]) -> int:
    """Inverse of format_idr; anything that is not a digit is ignored"""
    if not text:
        return 0
    stripped = text.strip()
    digits = _NON_DIGITS.sub("", stripped)
    if not digits:
        return 0
    value = int(digits)
    return -value if stripped.startswith("-") else value


def percent(raised: Optional[Number], target: Optional[Number]) -> int:
    """Progress towards target, clamped to 0..100"""
    r = max(0, raised or 0)
    t = max(0, target or 0)
    if t <= 0:
        return 0
    return min(100, _round_half_up(r / t * 100))
