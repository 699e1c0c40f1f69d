"""
Report Engine — renders the one-page PDF price sheet (Kostenzusammenstellung)
for a quote.

Input is the document payload built by document_payload.build_document_payload;
amounts are printed as they arrive, already rounded to 0.05 CHF.
"""
import io
import logging
import os
from typing import Any, Dict, Optional, Sequence

from offerten.models.pricing import CategoryEntry
from offerten.services.rounding import format_chf

logger = logging.getLogger("offerten-report")

DEFAULT_COMPANY_NAME = os.getenv("COMPANY_NAME", "HMQ AG")
DEFAULT_COMPANY_SUB = os.getenv("COMPANY_SUB", "Beweissicherung  |  Zustandsaufnahmen  |  www.hmq.ch")


def _hex_to_rgb(hex_color: str) -> tuple:
    """Convert '#RRGGBB' to (r, g, b) floats 0-1."""
    h = hex_color.lstrip("#")
    if len(h) != 6:
        return (0.10, 0.20, 0.35)
    return (int(h[0:2], 16) / 255, int(h[2:4], 16) / 255, int(h[4:6], 16) / 255)


# ── PDF helpers ───────────────────────────────────────────────────────────────

def _draw_header(c, page_w, page_h, company_name: str, company_sub: str, theme_rgb: tuple):
    from reportlab.lib.units import cm
    c.setFillColorRGB(*theme_rgb)
    c.rect(0, page_h - 2.6*cm, page_w, 2.6*cm, fill=1, stroke=0)
    c.setFillColorRGB(1, 1, 1)
    c.setFont("Helvetica-Bold", 13)
    c.drawString(1.5*cm, page_h - 1.3*cm, company_name)
    c.setFont("Helvetica", 8)
    c.drawString(1.5*cm, page_h - 1.9*cm, company_sub)
    c.setFillColorRGB(0, 0, 0)


def _draw_footer(c, page_w, quote_number: str, company_name: str):
    from reportlab.lib.units import cm
    c.setStrokeColorRGB(0.7, 0.7, 0.7)
    c.line(1.5*cm, 1.2*cm, page_w - 1.5*cm, 1.2*cm)
    c.setFillColorRGB(0.5, 0.5, 0.5)
    c.setFont("Helvetica", 7)
    c.drawString(1.5*cm, 0.8*cm, company_name)
    c.drawRightString(page_w - 1.5*cm, 0.8*cm, f"Offerte {quote_number}")


def _row(c, page_w, y, label: str, value: str, bold: bool = False):
    from reportlab.lib.units import cm
    c.setFont("Helvetica-Bold" if bold else "Helvetica", 10)
    c.setFillColorRGB(0.15, 0.15, 0.15)
    c.drawString(1.5*cm, y, label)
    c.drawRightString(page_w - 1.5*cm, y, value)


class ReportEngine:

    def __init__(self, settings: Optional[Dict[str, Any]] = None):
        s = settings or {}
        self.company_name = s.get("company_name", DEFAULT_COMPANY_NAME)
        self.company_sub = s.get("company_sub", DEFAULT_COMPANY_SUB)
        self.theme_rgb = _hex_to_rgb(s.get("theme_color_hex", "#1A3359"))

    def render_price_sheet(
        self,
        payload: Dict[str, Any],
        quote: Optional[Dict[str, Any]] = None,
        entries: Sequence[CategoryEntry] = (),
    ) -> bytes:
        """Return the price sheet as PDF bytes."""
        from reportlab.pdfgen import canvas as rl_canvas
        from reportlab.lib.pagesizes import A4
        from reportlab.lib.units import cm

        quote = quote or {}
        quote_number = payload.get("quote_number", "")
        currency = payload.get("currency", "CHF")
        totals = payload.get("totals", {})
        placeholders = payload.get("placeholders", {})

        buf = io.BytesIO()
        page_w, page_h = A4
        c = rl_canvas.Canvas(buf, pagesize=A4)
        c.setTitle(f"Kostenzusammenstellung {quote_number}")
        try:
            _draw_header(c, page_w, page_h, self.company_name, self.company_sub, self.theme_rgb)
            _draw_footer(c, page_w, quote_number, self.company_name)

            y = page_h - 4*cm
            c.setFont("Helvetica-Bold", 16)
            c.setFillColorRGB(*self.theme_rgb)
            c.drawString(1.5*cm, y, "KOSTENZUSAMMENSTELLUNG")
            y -= 0.7*cm
            c.setFont("Helvetica", 9)
            c.setFillColorRGB(0.4, 0.4, 0.4)
            meta = f"Offerte {quote_number}"
            if placeholders.get("{{DATUM}}"):
                meta += f"  |  {placeholders['{{DATUM}}']}"
            c.drawString(1.5*cm, y, meta)
            project = "  ".join(
                p for p in (quote.get("project_location"), quote.get("project_designation")) if p
            )
            if project:
                y -= 0.5*cm
                c.drawString(1.5*cm, y, project)

            counted = [e for e in entries if e.count > 0]
            if counted:
                y -= 1.0*cm
                c.setFont("Helvetica-Bold", 11)
                c.setFillColorRGB(0.08, 0.08, 0.12)
                c.drawString(1.5*cm, y, "Objekte")
                y -= 0.3*cm
                c.line(1.5*cm, y, page_w - 1.5*cm, y)
                y -= 0.5*cm
                for entry in counted:
                    _row(c, page_w, y, entry.title, str(entry.count))
                    y -= 0.45*cm

            y -= 0.8*cm
            c.setFont("Helvetica-Bold", 11)
            c.setFillColorRGB(0.08, 0.08, 0.12)
            c.drawString(1.5*cm, y, "Leistungen")
            y -= 0.3*cm
            c.line(1.5*cm, y, page_w - 1.5*cm, y)
            y -= 0.5*cm
            for line in payload.get("lines", []):
                is_subtotal = line["field"] == "subtotal"
                if is_subtotal:
                    y -= 0.15*cm
                _row(c, page_w, y, line["label"], f"{currency} {format_chf(line['amount'])}", bold=is_subtotal)
                y -= 0.5*cm

            y -= 0.5*cm
            c.line(1.5*cm, y + 0.3*cm, page_w - 1.5*cm, y + 0.3*cm)
            _row(c, page_w, y, "Leistungspreis", f"{currency} {format_chf(totals.get('subtotal', 0))}")
            y -= 0.5*cm
            if payload.get("show_discount"):
                _row(c, page_w, y, placeholders.get("{{RABATT_LABEL}}", "Rabatt"),
                     f"{currency} -{format_chf(totals.get('discount_amount', 0))}")
                y -= 0.5*cm
                _row(c, page_w, y, "Zwischentotal", f"{currency} {format_chf(totals.get('net_amount', 0))}")
                y -= 0.5*cm
            vat_pct = float(totals.get("vat_rate", 0)) * 100
            _row(c, page_w, y, f"MwSt {vat_pct:.1f}%", f"{currency} {format_chf(totals.get('vat_amount', 0))}")
            y -= 0.6*cm
            _row(c, page_w, y, "Total inkl. MwSt", f"{currency} {format_chf(totals.get('total', 0))}", bold=True)
        finally:
            c.save()

        logger.info(f"Price sheet rendered for quote {quote_number}", extra={"quote_number": quote_number})
        return buf.getvalue()
