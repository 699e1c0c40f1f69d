"""
test_rounding.py — 5-Rappen rounding, tolerance comparison and CHF formatting.
"""

import math
import pytest

from offerten.services.rounding import differs, format_chf, round5, round_hours


class TestRound5:
    """round5 finalizes every monetary amount to the nearest 0.05 CHF."""

    @pytest.mark.parametrize("value, expected", [
        (12.475, 12.50),
        (12.424, 12.40),
        (12.425, 12.45),
        (0, 0.0),
        (960.0, 960.0),
        (145.8, 145.80),
        (1800 * 0.081, 145.80),
        (0.024, 0.0),
        (0.025, 0.05),
    ])
    def test_known_values(self, value, expected):
        assert round5(value) == pytest.approx(expected, abs=1e-9)

    @pytest.mark.parametrize("value", [0.01, 1.234, 99.999, 1234.5678, 7.0 / 3.0, 0.1 + 0.2])
    def test_result_is_multiple_of_five_rappen(self, value):
        steps = round5(value) / 0.05
        assert abs(steps - round(steps)) < 1e-9

    @pytest.mark.parametrize("value", [1e15, 1e26, 1e27, 1e30, 1e300])
    def test_large_magnitudes_do_not_raise(self, value):
        result = round5(value)
        assert math.isfinite(result)
        steps = result / 0.05
        assert abs(steps - round(steps)) < 1e-9

    @pytest.mark.parametrize("value", [0.03, 12.475, 333.333, 1e6 + 0.026])
    def test_idempotent(self, value):
        once = round5(value)
        assert round5(once) == once

    def test_negative_zero_is_normalized(self):
        result = round5(-0.01)
        assert result == 0.0
        assert math.copysign(1.0, result) == 1.0

    @pytest.mark.parametrize("value", [None, "abc", float("nan"), float("inf")])
    def test_non_numeric_yields_zero(self, value):
        assert round5(value) == 0.0

    def test_numeric_string_accepted(self):
        assert round5("10.03") == 10.05


class TestDiffers:
    """Manual-edit tolerance: differences of 0.01 CHF and more count."""

    def test_below_tolerance(self):
        assert differs(100.0, 100.009) is False

    def test_exactly_tolerance(self):
        assert differs(100.01, 100.0) is True

    def test_above_tolerance(self):
        assert differs(100.02, 100.0) is True

    def test_equal(self):
        assert differs(55.55, 55.55) is False

    def test_direction_irrelevant(self):
        assert differs(100.0, 100.05) is differs(100.05, 100.0)


class TestFormatting:

    def test_thousands_apostrophe(self):
        assert format_chf(1945.8) == "1'945.80"

    def test_millions(self):
        assert format_chf(1234567.5) == "1'234'567.50"

    def test_small_amount(self):
        assert format_chf(0.05) == "0.05"

    def test_negative(self):
        assert format_chf(-2000) == "-2'000.00"

    def test_round_hours_one_decimal(self):
        assert round_hours(7.96) == 8.0
        assert round_hours(2.25) == 2.3

    def test_large_amounts_format_and_round(self):
        assert format_chf(1e27) == "1'" + "'".join(["000"] * 9) + ".00"
        assert round_hours(1e30) == 1e30
