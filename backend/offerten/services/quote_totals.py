"""
Quote totals — discount, VAT and grand total from the authoritative subtotal.

These figures are handed to document generation verbatim; the templating side
must not re-round or recompute them.
"""
from dataclasses import asdict, dataclass
from typing import Any, Dict

from offerten.config import VAT_RATE
from offerten.services.rounding import round5


@dataclass(frozen=True)
class QuoteTotals:
    subtotal: float
    discount_pct: float
    discount_amount: float
    net_amount: float
    vat_rate: float
    vat_amount: float
    total: float

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def clamp_discount(pct: Any) -> float:
    try:
        value = float(pct)
    except (TypeError, ValueError):
        return 0.0
    if value != value:  # NaN
        return 0.0
    return min(100.0, max(0.0, value))


def calculate_totals(subtotal: float, discount_pct: float = 0.0) -> QuoteTotals:
    """
    discount = round5(subtotal × pct / 100)
    net      = round5(subtotal − discount)
    vat      = round5(net × 8.1 %)
    total    = round5(net + vat)
    """
    pct = clamp_discount(discount_pct)
    base = round5(subtotal)
    discount = round5(base * pct / 100.0)
    net = round5(base - discount)
    vat = round5(net * VAT_RATE)
    return QuoteTotals(
        subtotal=base,
        discount_pct=pct,
        discount_amount=discount,
        net_amount=net,
        vat_rate=VAT_RATE,
        vat_amount=vat,
        total=round5(net + vat),
    )
