"""
Swiss-franc rounding and formatting helpers.

All monetary amounts are finalized with ``round5`` (nearest 0.05, half-up).
The arithmetic is done on ``Decimal`` built from the float's shortest repr so
that values such as 12.475 round up as printed, not as stored in binary.
"""
import math
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Any

from offerten.config import MANUAL_EDIT_TOLERANCE_CHF, ROUNDING_STEP_CHF

_STEP = Decimal(ROUNDING_STEP_CHF)
_TOLERANCE = Decimal(MANUAL_EDIT_TOLERANCE_CHF)

# Enough digits to quantize the largest finite float (~1.8e308) to 0.01
_PRECISION = 400


def _to_decimal(value: Any) -> Decimal:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return Decimal(0)
    if not math.isfinite(number):
        return Decimal(0)
    return Decimal(repr(number))


def round5(value: Any) -> float:
    """Round to the nearest 0.05 CHF, half-up. Non-numeric input yields 0.0."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        steps = (_to_decimal(value) / _STEP).quantize(Decimal(1), rounding=ROUND_HALF_UP)
        result = float(steps * _STEP)
    # avoid -0.0 in output
    return result + 0.0


def round_hours(value: Any) -> float:
    """Hours are displayed with one decimal."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return float(_to_decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def differs(persisted: Any, computed: Any) -> bool:
    """True when two amounts differ by at least the manual-edit tolerance."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return abs(_to_decimal(persisted) - _to_decimal(computed)) >= _TOLERANCE


def format_chf(amount: Any) -> str:
    """
    Format an amount the Swiss way with apostrophe thousands separators.

    >>> format_chf(1945.8)
    "1'945.80"
    """
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        value = _to_decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        sign = "-" if value < 0 else ""
        integer, _, cents = f"{abs(value):.2f}".partition(".")
    groups = []
    while len(integer) > 3:
        groups.insert(0, integer[-3:])
        integer = integer[:-3]
    groups.insert(0, integer)
    return sign + "'".join(groups) + "." + cents
