from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

_CENT = Decimal("0.01")

_ONES = [
    "", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine", "Ten",
    "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen", "Seventeen",
    "Eighteen", "Nineteen",
]
_TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]


def to_decimal(value: object) -> Decimal:
    """Decimal from a float/int/str via its string form; anything else is 0."""
    if isinstance(value, Decimal):
        return value if value.is_finite() else Decimal("0")
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        out = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return out if out.is_finite() else Decimal("0")


def quantize2(value: object) -> Decimal:
    return to_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def money2(value: object) -> float:
    """Round half-up to paise. 2.675 -> 2.68, unlike round()."""
    out = float(quantize2(value))
    return 0.0 if out == 0 else out


def sum_money(values: Iterable[object]) -> float:
    total = Decimal("0")
    for value in values:
        total += to_decimal(value)
    return money2(total)


def _words(n: int) -> str:
    if n < 20:
        return _ONES[n]
    if n < 100:
        return _TENS[n // 10] + (" " + _ONES[n % 10] if n % 10 else "")
    if n < 1000:
        return _ONES[n // 100] + " Hundred" + (" " + _words(n % 100) if n % 100 else "")
    if n < 100_000:
        return _words(n // 1000) + " Thousand" + (" " + _words(n % 1000) if n % 1000 else "")
    if n < 10_000_000:
        return _words(n // 100_000) + " Lakh" + (" " + _words(n % 100_000) if n % 100_000 else "")
    return _words(n // 10_000_000) + " Crore" + (" " + _words(n % 10_000_000) if n % 10_000_000 else "")


def amount_in_words(amount: object) -> str:
    """Indian numbering (Lakh, Crore), e.g. 236.5 -> 'Two Hundred Thirty Six and Fifty Paise Only'."""
    value = quantize2(amount)
    negative = value < 0
    value = abs(value)
    rupees = int(value)
    paise = int((value - rupees) * 100)

    text = _words(rupees) if rupees else "Zero"
    if paise:
        text += f" and {_words(paise)} Paise"
    if negative:
        text = "Minus " + text
    return text + " Only"
