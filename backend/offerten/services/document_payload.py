"""
Document payload — pre-rounded figures and template placeholders for the
quote letter.

The figures come straight from QuoteTotals; nothing here rounds or
recomputes an amount, it only formats them.
"""
from datetime import date, datetime
from typing import Any, Dict, Optional

from offerten.config import CURRENCY, DEFAULT_ENGAGEMENTS, DEFAULT_LEAD_TIME
from offerten.models.pricing import PRICE_FIELDS, PRICE_LABELS, EditablePriceSet
from offerten.services.costing_engine import clamp_engagements
from offerten.services.quote_totals import QuoteTotals
from offerten.services.rounding import format_chf

# Einsatzpauschalen wording, split the way the letter template splits it
ENGAGEMENT_TEXTS: Dict[int, Dict[str, str]] = {
    1: {"z1": "ei", "z2": "ne", "word": "Einsatzpauschale", "days": "einem Tag"},
    2: {"z1": "zw", "z2": "ei", "word": "Einsatzpauschalen", "days": "zwei verschiedenen Tagen"},
    3: {"z1": "dr", "z2": "ei", "word": "Einsatzpauschalen", "days": "drei verschiedenen Tagen"},
    4: {"z1": "vi", "z2": "er", "word": "Einsatzpauschalen", "days": "vier verschiedenen Tagen"},
}

MONTHS_DE = (
    "Januar", "Februar", "März", "April", "Mai", "Juni",
    "Juli", "August", "September", "Oktober", "November", "Dezember",
)


def engagement_texts(count: Any) -> Dict[str, str]:
    if count is None:
        return ENGAGEMENT_TEXTS[DEFAULT_ENGAGEMENTS]
    return ENGAGEMENT_TEXTS[clamp_engagements(count)]


def split_quote_number(quote_number: str) -> Dict[str, str]:
    """
    '25.12.001' -> {'a': '25.', 'b': '1', 'c': '2', 'd': '.001'}

    Numbers without at least three dot-separated parts land entirely in 'a'.
    """
    parts = (quote_number or "").split(".")
    if len(parts) >= 3:
        middle = parts[1]
        return {
            "a": parts[0] + ".",
            "b": middle[:1],
            "c": middle[1:2],
            "d": "." + parts[2],
        }
    return {"a": quote_number or "", "b": "", "c": "", "d": ""}


def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def format_date_short(value: Any) -> str:
    d = _parse_date(value)
    return f"{d.day}.{d.month}.{d.year}" if d else ""


def format_date_long(value: Any) -> str:
    d = _parse_date(value)
    return f"{d.day}. {MONTHS_DE[d.month - 1]} {d.year}" if d else ""


def discount_label(pct: float) -> str:
    return f"Rabatt {pct:.1f}%"


def build_document_payload(
    quote: Dict[str, Any],
    prices: EditablePriceSet,
    totals: QuoteTotals,
    engagement_count: Any = DEFAULT_ENGAGEMENTS,
) -> Dict[str, Any]:
    """
    Assemble everything the document generator needs for one quote.

    ``show_discount`` is False when no discount applies; the template then
    drops the discount rows instead of printing a zero.
    """
    quote_number = quote.get("quote_number", "")
    engagement = engagement_texts(engagement_count)
    number_parts = split_quote_number(quote_number)
    has_discount = totals.discount_pct > 0

    placeholders = {
        "{{DATUM}}": format_date_short(quote.get("quote_date")),
        "{{OFFNR_A}}": number_parts["a"],
        "{{OFFNR_B}}": number_parts["b"],
        "{{OFFNR_C}}": number_parts["c"],
        "{{OFFNR_D}}": number_parts["d"],
        "{{PROJEKT_ORT}}": quote.get("project_location") or "",
        "{{PROJEKT_BEZ}}": quote.get("project_designation") or "",
        "{{FIRMA}}": quote.get("recipient_company") or "",
        "{{VORLAUFZEIT}}": quote.get("lead_time") or DEFAULT_LEAD_TIME,
        "{{PREIS_LEISTUNG}}": format_chf(totals.subtotal),
        "{{PREIS_RABATT}}": f"-{format_chf(totals.discount_amount)}",
        "{{PREIS_ZWISCHEN}}": format_chf(totals.net_amount),
        "{{PREIS_MWST}}": format_chf(totals.vat_amount),
        "{{PREIS_TOTAL}}": format_chf(totals.total),
        "{{RABATT_LABEL}}": discount_label(totals.discount_pct),
        "{{TOTAL_2}}": (
            f"l (inkl. {totals.discount_pct:.1f}% Rabatt und inkl. " if has_discount else "l (inkl. "
        ),
        "{{EIN_Z1}}": engagement["z1"],
        "{{EIN_Z2}}": engagement["z2"],
        "{{EIN_WORT}}": engagement["word"],
        "{{EIN_TAGE_1}}": "Einsätze an maximal ",
        "{{EIN_TAGE_2}}": engagement["days"],
    }

    return {
        "quote_number": quote_number,
        "currency": CURRENCY,
        "show_discount": has_discount,
        "lines": [
            {"field": name, "label": PRICE_LABELS[name], "amount": prices.get(name)}
            for name in PRICE_FIELDS
        ],
        "totals": totals.as_dict(),
        "placeholders": placeholders,
    }
