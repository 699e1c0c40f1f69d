"""
test_report_engine.py — PDF price sheet rendering (reportlab).
"""

from offerten.models.pricing import CategoryEntry, EditablePriceSet
from offerten.services.document_payload import build_document_payload
from offerten.services.quote_totals import calculate_totals
from offerten.services.report_engine import ReportEngine, _hex_to_rgb


def _payload(discount_pct=0.0):
    quote = {"quote_number": "25.12.001", "quote_date": "2025-03-07", "project_location": "Winterthur"}
    prices = EditablePriceSet(survey=960.0, basics=350.0, subtotal=1310.0, discount_pct=discount_pct)
    return quote, build_document_payload(quote, prices, calculate_totals(1310.0, discount_pct))


class TestReportEngine:

    def test_renders_pdf_bytes(self):
        quote, payload = _payload()
        pdf = ReportEngine().render_price_sheet(payload, quote=quote)
        assert pdf.startswith(b"%PDF")
        assert len(pdf) > 500

    def test_renders_with_discount_and_objects(self):
        quote, payload = _payload(discount_pct=12.5)
        entries = [CategoryEntry("A", "EFH", 2), CategoryEntry("B", "MFH", 0)]
        pdf = ReportEngine({"company_name": "Test AG"}).render_price_sheet(payload, quote=quote, entries=entries)
        assert pdf.startswith(b"%PDF")

    def test_hex_colour_parsing(self):
        assert _hex_to_rgb("#FFFFFF") == (1.0, 1.0, 1.0)
        assert _hex_to_rgb("bogus") == (0.10, 0.20, 0.35)
