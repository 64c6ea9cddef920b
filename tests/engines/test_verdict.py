"""
Tests for the Verdict Classifier.

Covers:
- Range, less-than and greater-than expressions, boundaries included
- Free-text measured values (units, whitespace)
- Unparsable input yields an empty verdict, never an exception
"""

from decimal import Decimal

import pytest

from billing_engines.verdict import (
    ParameterReading,
    RangeKind,
    ReferenceRange,
    Verdict,
    classify,
    classify_parameters,
    parse_number,
)


class TestRangeExpression:
    """N1-N2 is inclusive on both ends."""

    @pytest.mark.parametrize("value,expected", [
        ("15", Verdict.NORMAL),
        ("8", Verdict.LOW),
        ("20", Verdict.NORMAL),
        ("10", Verdict.NORMAL),
        ("20.01", Verdict.HIGH),
        ("9.99", Verdict.LOW),
    ])
    def test_ten_to_twenty(self, value, expected):
        assert classify(value, "10-20") == expected

    def test_whitespace_around_dash(self):
        assert classify("4.5", "3.5 - 5.0") == Verdict.NORMAL

    def test_decimal_boundaries_are_exact(self):
        assert classify("0.3", "0.1-0.3") == Verdict.NORMAL

    def test_range_embedded_in_text(self):
        assert classify("150", "Desirable: 100-199 mg/dl") == Verdict.NORMAL


class TestStrictInequalities:
    """The boundary of < and > forms is abnormal."""

    def test_less_than_boundary_is_high(self):
        assert classify("5", "<5") == Verdict.HIGH

    def test_less_than_below(self):
        assert classify("4.9", "<5") == Verdict.NORMAL

    def test_greater_than_boundary_is_low(self):
        assert classify("40", ">40") == Verdict.LOW

    def test_greater_than_above(self):
        assert classify("40.5", "> 40") == Verdict.NORMAL

    def test_unparsable_threshold_gives_no_verdict(self):
        assert classify("5", "<abc") == Verdict.NONE


class TestMeasuredValue:

    def test_value_with_unit(self):
        assert classify("12.5 mg/dl", "10-20") == Verdict.NORMAL

    def test_decimal_value(self):
        assert classify(Decimal("25"), "10-20") == Verdict.HIGH

    def test_int_value(self):
        assert classify(3, "<5") == Verdict.NORMAL

    @pytest.mark.parametrize("value", ["", "   ", "positive", None])
    def test_non_numeric_value_gives_no_verdict(self, value):
        assert classify(value, "10-20") == Verdict.NONE

    @pytest.mark.parametrize("reference", ["", None, "Negative", "see note"])
    def test_unparsable_reference_gives_no_verdict(self, reference):
        assert classify("15", reference) == Verdict.NONE

    def test_none_verdict_is_empty_string(self):
        assert Verdict.NONE.value == ""


class TestParsing:

    def test_parse_number_leading(self):
        assert parse_number("  -3.5e1abc") == Decimal("-35")

    def test_parse_number_none(self):
        assert parse_number("abc") is None

    def test_parse_range(self):
        parsed = ReferenceRange.parse("70-110")
        assert parsed == ReferenceRange(RangeKind.RANGE, low=Decimal("70"), high=Decimal("110"))

    def test_parse_less_than(self):
        assert ReferenceRange.parse("<200").kind == RangeKind.LESS_THAN

    def test_parse_garbage(self):
        assert ReferenceRange.parse("n/a") is None


class TestClassifyParameters:

    def test_results_keep_order(self):
        readings = [
            ParameterReading("Hemoglobin", "11", "12-16", "g/dl"),
            ParameterReading("WBC", "8000", "4000-11000"),
            ParameterReading("Cholesterol", "240", "<200"),
        ]
        results = classify_parameters(readings)

        assert [r.verdict for r in results] == [Verdict.LOW, Verdict.NORMAL, Verdict.HIGH]
        assert [r.is_abnormal for r in results] == [True, False, True]

    def test_abnormal_parameters_logged(self, captured_logs):
        classify_parameters([ParameterReading("Glucose", "300", "70-110")])

        records = [r for r in captured_logs() if r["message"] == "abnormal_parameters_detected"]
        assert records and records[0]["abnormal"] == ["Glucose"]
