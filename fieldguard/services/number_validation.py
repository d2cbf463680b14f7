"""
Number Validation & Formatting

Validators: validate, isPositive, isNegative, isInteger, min, max, between.
Values may carry currency symbols/codes, thousand separators or European
notation ("$1,234.50", "1.234,50 EUR"); they are parsed before comparison.

Same record/option contract as the date and string validators.
"""

import logging
import re
from enum import Enum
from typing import Any, Optional, Tuple

import numpy as np

from fieldguard.schemas.validation import (
    NumberFormatOptions,
    ValidationOptions,
    resolve_options,
)
from fieldguard.services.records import RecordAccessor, is_empty

logger = logging.getLogger(__name__)


# ============================================================================
# CONSTANTS
# ============================================================================

class NumberValidationType(str, Enum):
    VALIDATE = "validate"
    IS_POSITIVE = "isPositive"
    IS_NEGATIVE = "isNegative"
    IS_INTEGER = "isInteger"
    MIN = "min"
    MAX = "max"
    BETWEEN = "between"


CURRENCY_SYMBOLS = {
    "$": "USD",
    "€": "EUR",
    "£": "GBP",
    "¥": "JPY",
    "₹": "INR",
    "R$": "BRL",
    "A$": "AUD",
    "C$": "CAD",
    "NZ$": "NZD",
    "HK$": "HKD",
}

CURRENCY_CODES = {
    "USD", "EUR", "GBP", "JPY", "INR", "AUD", "CAD", "NZD",
    "CHF", "SEK", "NOK", "DKK", "SGD", "HKD", "CNY", "BRL", "MXN",
}

NUMERIC_PATTERN = re.compile(r'^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$')


# ============================================================================
# PARSING
# ============================================================================

def extract_currency_symbol(value: str) -> Tuple[Optional[str], str]:
    """Strip a leading/trailing currency symbol or code: (currency_code, rest)."""
    value = value.strip()

    for symbol, code in sorted(CURRENCY_SYMBOLS.items(), key=lambda x: -len(x[0])):
        if value.startswith(symbol):
            return code, value[len(symbol):].strip()
        if value.endswith(symbol):
            return code, value[:-len(symbol)].strip()

    upper_val = value.upper()
    for code in CURRENCY_CODES:
        if upper_val.startswith(code):
            return code, value[len(code):].strip()
        if upper_val.endswith(code):
            return code, value[:-len(code)].strip()

    return None, value


def remove_thousand_separators(value: str) -> str:
    """Remove thousand separators (commas) from numeric string."""
    pattern = r'(\d),(\d{3})'
    result = value
    while re.search(pattern, result):
        result = re.sub(pattern, r'\1\2', result)
    return result


def detect_european_notation(value: str) -> bool:
    """1.234,56 style: comma is the decimal mark."""
    if '.' in value and ',' in value:
        return value.rfind(',') > value.rfind('.')
    return bool(re.match(r'^[\d.]+,\d{1,2}$', value))


def convert_european_notation(value: str) -> str:
    return value.replace('.', '').replace(',', '.')


def parse_number(value: Any) -> Optional[float]:
    """Parse a value to a finite float; None when it is not a number."""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float, np.integer, np.floating)):
        number = float(value)
        return number if np.isfinite(number) else None

    text = str(value).strip()
    if not text:
        return None

    negative = text.startswith("-")
    if negative:
        text = text[1:].strip()

    _, text = extract_currency_symbol(text)
    text = text.replace(" ", "")

    if detect_european_notation(text):
        text = convert_european_notation(text)
    else:
        text = remove_thousand_separators(text)

    if not NUMERIC_PATTERN.match(text):
        logger.debug("Could not parse %r as a number", value)
        return None

    number = float(text)
    if not np.isfinite(number):
        return None
    return -number if negative else number


def _display(number: Optional[float]) -> str:
    if isinstance(number, float) and number.is_integer():
        return str(int(number))
    return str(number)


def format_number_value(number: float, number_format: NumberFormatOptions) -> str:
    if number_format.decimals is not None:
        body = f"{number:,.{number_format.decimals}f}" if number_format.thousands_separator \
            else f"{number:.{number_format.decimals}f}"
    elif float(number).is_integer():
        body = f"{int(number):,}" if number_format.thousands_separator else str(int(number))
    else:
        body = f"{number:,}" if number_format.thousands_separator else repr(number)

    return f"{number_format.prefix or ''}{body}{number_format.suffix or ''}"


# ============================================================================
# VALIDATORS
# ============================================================================

def _check(
    record: RecordAccessor,
    field: str,
    predicate,
    opts: ValidationOptions,
    default_msg: str,
) -> bool:
    value = record.get(field)
    valid = False

    if not is_empty(value):
        number = parse_number(value)
        valid = number is not None and bool(predicate(number))

    if not is_empty(value) or opts.validate_on_empty:
        if not valid and opts.add_error and record.linked:
            record.add_error(field, opts.error_msg or default_msg)

    return valid


def validate(record: RecordAccessor, field: str, options: Optional[ValidationOptions] = None) -> bool:
    return _check(record, field, lambda n: True, resolve_options(options), "Please enter a valid number")


def is_positive(record: RecordAccessor, field: str, options: Optional[ValidationOptions] = None) -> bool:
    return _check(record, field, lambda n: n > 0, resolve_options(options),
                  "Value must be a positive number")


def is_negative(record: RecordAccessor, field: str, options: Optional[ValidationOptions] = None) -> bool:
    return _check(record, field, lambda n: n < 0, resolve_options(options),
                  "Value must be a negative number")


def is_integer(record: RecordAccessor, field: str, options: Optional[ValidationOptions] = None) -> bool:
    return _check(record, field, lambda n: n.is_integer(), resolve_options(options),
                  "Value must be a whole number")


def min_value(
    record: RecordAccessor,
    field: str,
    minimum: Optional[float],
    options: Optional[ValidationOptions] = None,
) -> bool:
    return _check(record, field, lambda n: minimum is not None and n >= minimum,
                  resolve_options(options), f"Value must be at least {_display(minimum)}")


def max_value(
    record: RecordAccessor,
    field: str,
    maximum: Optional[float],
    options: Optional[ValidationOptions] = None,
) -> bool:
    return _check(record, field, lambda n: maximum is not None and n <= maximum,
                  resolve_options(options), f"Value must not exceed {_display(maximum)}")


def in_range(
    record: RecordAccessor,
    field: str,
    minimum: Optional[float],
    maximum: Optional[float],
    options: Optional[ValidationOptions] = None,
) -> bool:
    """Inclusive range check."""
    return _check(
        record, field,
        lambda n: minimum is not None and maximum is not None and minimum <= n <= maximum,
        resolve_options(options), f"Value must be between {_display(minimum)} and {_display(maximum)}",
    )


def format_field(
    record: RecordAccessor,
    field: str,
    number_format: Optional[NumberFormatOptions] = None,
    options: Optional[ValidationOptions] = None,
) -> str:
    """Format a numeric field; returns "" (and leaves the field alone) for non-numbers."""
    opts = resolve_options(options)
    value = record.get(field)
    formatted = ""

    if not is_empty(value):
        number = parse_number(value)
        if number is not None:
            formatted = format_number_value(number, number_format or NumberFormatOptions())

    if formatted and (not is_empty(value) or opts.format_on_empty):
        if opts.add_info and opts.set_record and record.linked:
            record.add_info(field, opts.info_msg or f"Value has been formatted from {value}")

    if opts.set_record and formatted and record.linked:
        record.set(field, formatted)

    return formatted


# ============================================================================
# DISPATCH
# ============================================================================

def _single_arg(validation_args: Any) -> Any:
    if isinstance(validation_args, (list, tuple)):
        return validation_args[0] if validation_args else None
    return validation_args


def run_validation(
    record: RecordAccessor,
    field: str,
    validation_type: Any,
    validation_args: Any = None,
    options: Optional[ValidationOptions] = None,
) -> bool:
    """Select a validator by its type; unknown types fall back to validate."""
    try:
        kind = NumberValidationType(validation_type)
    except ValueError:
        logger.warning("Unknown number validation type %r, using validate", validation_type)
        kind = NumberValidationType.VALIDATE

    if kind is NumberValidationType.IS_POSITIVE:
        return is_positive(record, field, options)
    if kind is NumberValidationType.IS_NEGATIVE:
        return is_negative(record, field, options)
    if kind is NumberValidationType.IS_INTEGER:
        return is_integer(record, field, options)
    if kind is NumberValidationType.MIN:
        return min_value(record, field, parse_number(_single_arg(validation_args)), options)
    if kind is NumberValidationType.MAX:
        return max_value(record, field, parse_number(_single_arg(validation_args)), options)
    if kind is NumberValidationType.BETWEEN:
        if isinstance(validation_args, (list, tuple)) and len(validation_args) == 2:
            low, high = parse_number(validation_args[0]), parse_number(validation_args[1])
        else:
            low, high = None, None
        return in_range(record, field, low, high, options)
    return validate(record, field, options)


def evaluate_and_format(
    record: RecordAccessor,
    field: str,
    validation_type: Any,
    number_format: Optional[NumberFormatOptions] = None,
    validation_args: Any = None,
    options: Optional[ValidationOptions] = None,
) -> bool:
    opts = resolve_options(options)
    valid = run_validation(record, field, validation_type, validation_args, opts)

    if valid or opts.format_on_error:
        format_field(record, field, number_format, opts)

    return valid
