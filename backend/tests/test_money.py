# Overview: Pytest coverage for integer-cent money and VAT arithmetic.

import pytest

from docledger.errors import ValidationError
from docledger.money import (
    MoneyLine,
    bps_from_percent,
    document_totals,
    format_cents,
    grv_line_amounts,
    line_total,
    parse_cents,
    round_half_up_div,
    weighted_average_cost,
)


class TestRounding:
    def test_half_rounds_up(self):
        assert round_half_up_div(5, 10) == 1
        assert round_half_up_div(4, 10) == 0
        assert round_half_up_div(15, 10) == 2

    def test_half_rounds_away_from_zero_for_negatives(self):
        assert round_half_up_div(-15, 10) == -2
        assert round_half_up_div(-14, 10) == -1

    def test_zero_denominator_rejected(self):
        with pytest.raises(ValidationError):
            round_half_up_div(1, 0)


class TestLineTotal:
    def test_discount_applied_per_line(self):
        assert line_total(3, 1000, 250) == 2750

    def test_discount_floors_at_zero(self):
        assert line_total(1, 100, 500) == 0

    def test_negative_qty_rejected(self):
        with pytest.raises(ValidationError):
            line_total(-1, 100)


class TestDocumentTotals:
    def test_exclusive_adds_vat_on_top(self):
        totals = document_totals([MoneyLine(2, 1000)], 1500, "exclusive")
        assert totals.to_dict() == {"sub_total_cents": 2000, "vat_total_cents": 300, "total_cents": 2300}

    def test_inclusive_extracts_vat(self):
        totals = document_totals([MoneyLine(1, 1150)], 1500, "inclusive")
        assert totals.vat_total_cents == 150
        assert totals.sub_total_cents == 1000
        assert totals.total_cents == 1150

    def test_none_mode_has_no_vat(self):
        totals = document_totals([MoneyLine(1, 999)], 1500, "none")
        assert totals.vat_total_cents == 0
        assert totals.total_cents == 999

    def test_vat_rounded_once_on_the_sum(self):
        # Per-line rounding would give 2 x round(0.495) = 0; the sum rounds to 1.
        lines = [MoneyLine(1, 33), MoneyLine(1, 33)]
        totals = document_totals(lines, 150, "exclusive")
        assert totals.vat_total_cents == 1

    def test_exempt_and_non_taxable_lines_skip_vat(self):
        lines = [
            MoneyLine(1, 1000),
            MoneyLine(1, 1000, is_vat_exempt=True),
            MoneyLine(1, 1000, taxable=False),
        ]
        totals = document_totals(lines, 1500, "exclusive")
        assert totals.sub_total_cents == 3000
        assert totals.vat_total_cents == 150

    def test_unknown_vat_mode_rejected(self):
        with pytest.raises(ValidationError):
            document_totals([MoneyLine(1, 100)], 1500, "gross")


class TestGRVLineAmounts:
    def test_percent_discount_in_bps(self):
        amounts = grv_line_amounts(10, 1000, "percent", 1000, 1500)
        assert amounts.discount_cents == 1000
        assert amounts.subtotal_cents == 9000
        assert amounts.vat_amount_cents == 1350
        assert amounts.total_cents == 10350

    def test_amount_discount_is_per_unit(self):
        amounts = grv_line_amounts(4, 500, "amount", 50, 0)
        assert amounts.discount_cents == 200
        assert amounts.subtotal_cents == 1800

    def test_exempt_line_has_no_vat(self):
        amounts = grv_line_amounts(1, 1000, vat_rate_bps=1500, is_vat_exempt=True)
        assert amounts.vat_amount_cents == 0

    def test_percent_over_hundred_rejected(self):
        with pytest.raises(ValidationError):
            grv_line_amounts(1, 1000, "percent", 10001)


class TestAverageCost:
    def test_weighted_average(self):
        # 10 @ 100 + 10 @ 200 -> 150
        assert weighted_average_cost(10, 100, 10, 200) == 150

    def test_average_rounds_half_up(self):
        # (1*100 + 2*101) / 3 = 100.67
        assert weighted_average_cost(1, 100, 2, 101) == 101

    def test_from_empty_takes_receipt_cost(self):
        assert weighted_average_cost(0, 0, 5, 321) == 321


class TestFormatting:
    def test_format_cents(self):
        assert format_cents(123450) == "R1,234.50"
        assert format_cents(-5) == "-R0.05"

    def test_parse_cents(self):
        assert parse_cents("R1,234.50") == 123450
        assert parse_cents("12.5") == 1250
        assert parse_cents("-3") == -300

    def test_parse_cents_rejects_sub_cent_precision(self):
        with pytest.raises(ValidationError):
            parse_cents("1.005")

    def test_bps_from_percent(self):
        assert bps_from_percent(15) == 1500
        assert bps_from_percent("7.5") == 750
        with pytest.raises(ValidationError):
            bps_from_percent("abc")
