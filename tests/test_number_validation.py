"""
Tests for Number Validation & Formatting
"""

import numpy as np
import pytest

from fieldguard.schemas.validation import NumberFormatOptions, ValidationOptions
from fieldguard.services.number_validation import (
    detect_european_notation,
    evaluate_and_format,
    extract_currency_symbol,
    format_field,
    in_range,
    is_integer,
    is_negative,
    is_positive,
    max_value,
    min_value,
    parse_number,
    validate,
)
from fieldguard.services.records import LinkedRecord


# ============================================================================
# PARSING
# ============================================================================

class TestParseNumber:
    """Tests for parse_number."""

    @pytest.mark.parametrize("value,expected", [
        ("42", 42.0),
        ("-42", -42.0),
        ("3.5", 3.5),
        ("$1,234.50", 1234.5),
        ("1.234,56", 1234.56),
        ("EUR 100", 100.0),
        ("100 GBP", 100.0),
        ("1e3", 1000.0),
        (7, 7.0),
        (np.int64(5), 5.0),
        (2.25, 2.25),
    ])
    def test_parses(self, value, expected):
        assert parse_number(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", [None, "", "12abc", "banana", True, float("nan"), float("inf"), "inf"])
    def test_rejects(self, value):
        assert parse_number(value) is None

    def test_currency_extraction(self):
        assert extract_currency_symbol("R$ 10") == ("BRL", "10")
        assert extract_currency_symbol("10€") == ("EUR", "10")
        assert extract_currency_symbol("10") == (None, "10")

    def test_european_notation(self):
        assert detect_european_notation("1.234,56") is True
        assert detect_european_notation("12,5") is True
        assert detect_european_notation("1,234.56") is False


# ============================================================================
# VALIDATORS
# ============================================================================

class TestValidators:
    """Tests for the number validators."""

    def test_validate(self):
        assert validate(LinkedRecord({"n": "12.5"}), "n") is True
        record = LinkedRecord({"n": "twelve"})
        assert validate(record, "n") is False
        assert record.errors == {"n": ["Please enter a valid number"]}

    def test_sign_checks(self):
        assert is_positive(LinkedRecord({"n": "10"}), "n") is True
        assert is_negative(LinkedRecord({"n": "-$3"}), "n") is True
        record = LinkedRecord({"n": 0})
        assert is_positive(record, "n") is False
        assert record.errors == {"n": ["Value must be a positive number"]}

    def test_is_integer(self):
        assert is_integer(LinkedRecord({"n": "3.0"}), "n") is True
        record = LinkedRecord({"n": "3.5"})
        assert is_integer(record, "n") is False
        assert record.errors == {"n": ["Value must be a whole number"]}

    def test_min_max(self):
        assert min_value(LinkedRecord({"n": "10"}), "n", 10) is True
        assert max_value(LinkedRecord({"n": "10"}), "n", 10) is True
        record = LinkedRecord({"n": "11"})
        assert max_value(record, "n", 10.0) is False
        assert record.errors == {"n": ["Value must not exceed 10"]}

    def test_range_is_inclusive(self):
        assert in_range(LinkedRecord({"n": "1"}), "n", 1, 10) is True
        assert in_range(LinkedRecord({"n": "10"}), "n", 1, 10) is True
        record = LinkedRecord({"n": "11"})
        assert in_range(record, "n", 1, 10) is False
        assert record.errors == {"n": ["Value must be between 1 and 10"]}

    def test_empty_value(self):
        record = LinkedRecord({"n": ""})
        assert is_positive(record, "n") is False
        assert record.errors == {}

    def test_custom_message(self):
        record = LinkedRecord({"n": "-5"})
        is_positive(record, "n", ValidationOptions(error_msg="Project value must be a positive number"))
        assert record.errors == {"n": ["Project value must be a positive number"]}


# ============================================================================
# FORMATTING
# ============================================================================

class TestFormatField:
    """Tests for format_field."""

    def test_thousands_separator(self):
        record = LinkedRecord({"n": 1234567})
        assert format_field(record, "n", NumberFormatOptions(thousands_separator=True)) == "1,234,567"
        assert record.get("n") == "1,234,567"

    def test_decimals_and_affixes(self):
        record = LinkedRecord({"n": "1234.5"})
        opts = NumberFormatOptions(decimals=2, prefix="$")
        assert format_field(record, "n", opts) == "$1234.50"

    def test_decimals_with_separator(self):
        record = LinkedRecord({"n": 1234567})
        opts = NumberFormatOptions(decimals=2, thousands_separator=True, suffix=" USD")
        assert format_field(record, "n", opts) == "1,234,567.00 USD"

    def test_info_message(self):
        record = LinkedRecord({"n": "1234.5"})
        format_field(record, "n", NumberFormatOptions(decimals=1), ValidationOptions(add_info=True))
        assert record.infos == {"n": ["Value has been formatted from 1234.5"]}

    def test_non_number_untouched(self):
        record = LinkedRecord({"n": "abc"})
        assert format_field(record, "n", NumberFormatOptions(decimals=2)) == ""
        assert record.get("n") == "abc"


class TestEvaluateAndFormat:
    """Tests for evaluate_and_format."""

    def test_between(self):
        record = LinkedRecord({"n": "5"})
        assert evaluate_and_format(record, "n", "between", NumberFormatOptions(decimals=2), [1, 10]) is True
        assert record.get("n") == "5.00"

    def test_min_with_string_arg(self):
        record = LinkedRecord({"n": "5"})
        assert evaluate_and_format(record, "n", "min", None, ["10"]) is False
        assert record.errors == {"n": ["Value must be at least 10"]}
        assert record.get("n") == "5"

    def test_set_record_disabled(self):
        record = LinkedRecord({"n": "1000"})
        opts = ValidationOptions(set_record=False)
        assert evaluate_and_format(record, "n", "isPositive", NumberFormatOptions(thousands_separator=True),
                                   options=opts) is True
        assert record.get("n") == "1000"

    def test_unknown_type_falls_back_to_validate(self):
        assert evaluate_and_format(LinkedRecord({"n": "1"}), "n", "isPrime") is True
        record = LinkedRecord({"n": "one"})
        assert evaluate_and_format(record, "n", "isPrime") is False
        assert record.errors == {"n": ["Please enter a valid number"]}
