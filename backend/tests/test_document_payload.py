"""
test_document_payload.py — figures and placeholders handed to document generation.
"""

import pytest

from offerten.models.pricing import EditablePriceSet, PRICE_FIELDS
from offerten.services.document_payload import (
    build_document_payload,
    engagement_texts,
    format_date_long,
    format_date_short,
    split_quote_number,
)
from offerten.services.quote_totals import calculate_totals


@pytest.fixture
def quote():
    return {
        "quote_number": "25.12.001",
        "quote_date": "2025-03-07",
        "project_location": "Winterthur",
        "project_designation": "Neubau Wohnüberbauung",
        "recipient_company": "Muster Bau AG",
    }


@pytest.fixture
def prices():
    return EditablePriceSet(survey=960.0, basics=1040.0, subtotal=2000.0, discount_pct=10)


class TestPayloadFigures:

    def test_placeholders_use_precomputed_totals(self, quote, prices):
        payload = build_document_payload(quote, prices, calculate_totals(2000.0, 10))
        ph = payload["placeholders"]
        assert ph["{{PREIS_LEISTUNG}}"] == "2'000.00"
        assert ph["{{PREIS_RABATT}}"] == "-200.00"
        assert ph["{{PREIS_ZWISCHEN}}"] == "1'800.00"
        assert ph["{{PREIS_MWST}}"] == "145.80"
        assert ph["{{PREIS_TOTAL}}"] == "1'945.80"
        assert ph["{{RABATT_LABEL}}"] == "Rabatt 10.0%"

    def test_discount_rows_hidden_without_discount(self, quote, prices):
        payload = build_document_payload(quote, prices, calculate_totals(2000.0, 0))
        assert payload["show_discount"] is False
        assert payload["placeholders"]["{{TOTAL_2}}"] == "l (inkl. "

    def test_lines_in_document_order(self, quote, prices):
        payload = build_document_payload(quote, prices, calculate_totals(2000.0, 10))
        assert [line["field"] for line in payload["lines"]] == list(PRICE_FIELDS)
        survey = payload["lines"][2]
        assert survey["label"] == "Zustandsaufnahme vor Ort"
        assert survey["amount"] == 960.0

    def test_header_placeholders(self, quote, prices):
        ph = build_document_payload(quote, prices, calculate_totals(2000.0))["placeholders"]
        assert ph["{{DATUM}}"] == "7.3.2025"
        assert ph["{{PROJEKT_ORT}}"] == "Winterthur"
        assert ph["{{FIRMA}}"] == "Muster Bau AG"
        assert ph["{{VORLAUFZEIT}}"] == "3 Wochen"


class TestEngagementTexts:

    @pytest.mark.parametrize("count, word, days", [
        (1, "Einsatzpauschale", "einem Tag"),
        (2, "Einsatzpauschalen", "zwei verschiedenen Tagen"),
        (4, "Einsatzpauschalen", "vier verschiedenen Tagen"),
    ])
    def test_texts(self, count, word, days):
        texts = engagement_texts(count)
        assert texts["word"] == word
        assert texts["days"] == days

    def test_default_is_two(self):
        assert engagement_texts(None)["z1"] == "zw"

    def test_out_of_range_clamped(self):
        assert engagement_texts(7) == engagement_texts(4)


class TestHelpers:

    def test_split_quote_number(self):
        assert split_quote_number("25.12.001") == {"a": "25.", "b": "1", "c": "2", "d": ".001"}

    def test_split_unstructured_number(self):
        assert split_quote_number("X-77") == {"a": "X-77", "b": "", "c": "", "d": ""}

    def test_dates(self):
        assert format_date_short("2025-11-02") == "2.11.2025"
        assert format_date_long("2025-03-01") == "1. März 2025"
        assert format_date_short(None) == ""
        assert format_date_short("kein Datum") == ""
