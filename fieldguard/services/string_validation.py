"""
String Validation & Formatting

Validators: validate, isEmail, isPhone, isSSN, matchesPattern, hasLength,
min, max. Formatters: generic string formatting, SSN (XXX-XX-XXXX) and
phone (E164 / NATIONAL / INTERNATIONAL via phonenumbers).

Same record/option contract as the date validators.
"""

import logging
import re
from enum import Enum
from typing import Any, Optional, Pattern, Union

import phonenumbers
from phonenumbers import NumberParseException, PhoneNumberFormat

from fieldguard.config import settings
from fieldguard.schemas.validation import (
    StringFormatOptions,
    ValidationOptions,
    resolve_options,
)
from fieldguard.services.records import RecordAccessor, is_empty

logger = logging.getLogger(__name__)


# ============================================================================
# CONSTANTS
# ============================================================================

class StringValidationType(str, Enum):
    VALIDATE = "validate"
    IS_EMAIL = "isEmail"
    IS_PHONE = "isPhone"
    IS_SSN = "isSSN"
    MATCHES_PATTERN = "matchesPattern"
    HAS_LENGTH = "hasLength"
    MIN = "min"
    MAX = "max"


# RFC 5322 style
EMAIL_PATTERN = re.compile(
    r'^(([^<>()\[\]\\.,;:\s@"]+(\.[^<>()\[\]\\.,;:\s@"]+)*)|(".+"))@'
    r'((\[[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}])|(([a-zA-Z\-0-9]+\.)+[a-zA-Z]{2,}))$',
    re.IGNORECASE,
)

# 9 digits; area 000, 666 and 9xx, group 00 and serial 0000 are never issued
SSN_PATTERN = re.compile(r'^(?!000|666|9\d{2})\d{3}(?!00)\d{2}(?!0000)\d{4}$')

NON_DIGIT_PATTERN = re.compile(r'\D')

PHONE_FORMATS = {
    "E164": PhoneNumberFormat.E164,
    "NATIONAL": PhoneNumberFormat.NATIONAL,
    "INTERNATIONAL": PhoneNumberFormat.INTERNATIONAL,
}

INVALID_SSN = "Invalid SSN"
INVALID_PHONE = "Invalid Phone Number"


# ============================================================================
# HELPERS
# ============================================================================

def _as_text(value: Any) -> str:
    return "" if is_empty(value) else str(value)


def _report(
    record: RecordAccessor,
    field: str,
    value: str,
    valid: bool,
    opts: ValidationOptions,
    default_msg: str,
) -> None:
    if not value and not opts.validate_on_empty:
        return
    if not valid and opts.add_error and record.linked:
        record.add_error(field, opts.error_msg or default_msg)


def extract_digits(value: str) -> str:
    """Keep digits only: '123-45-6789' -> '123456789'."""
    return NON_DIGIT_PATTERN.sub('', value)


def parse_phone(value: str, region: Optional[str] = None) -> Optional[phonenumbers.PhoneNumber]:
    """Parse a phone number, returning None when phonenumbers rejects it."""
    try:
        return phonenumbers.parse(value, region or settings.DEFAULT_PHONE_REGION)
    except NumberParseException as exc:
        logger.debug("Could not parse %r as a phone number: %s", value, exc)
        return None


def is_valid_phone_number(value: str, region: Optional[str] = None) -> bool:
    number = parse_phone(value, region)
    return number is not None and phonenumbers.is_valid_number(number)


def is_valid_ssn(value: str) -> bool:
    return bool(SSN_PATTERN.match(extract_digits(value)))


def _info_enabled(opts: ValidationOptions) -> bool:
    """String formatting annotates unless add_info was explicitly turned off."""
    return opts.add_info or "add_info" not in opts.model_fields_set


def to_title_case(value: str) -> str:
    return re.sub(r'\w\S*', lambda m: m.group(0)[0].upper() + m.group(0)[1:].lower(), value)


# ============================================================================
# VALIDATORS
# ============================================================================

def matches_pattern(
    record: RecordAccessor,
    field: str,
    pattern: Union[str, Pattern[str], None],
    options: Optional[ValidationOptions] = None,
) -> bool:
    opts = resolve_options(options)
    value = _as_text(record.get(field))
    valid = False

    if value and pattern is not None:
        try:
            compiled = pattern if isinstance(pattern, re.Pattern) else re.compile(str(pattern))
            valid = bool(compiled.search(value))
        except re.error as exc:
            logger.debug("Invalid pattern %r: %s", pattern, exc)

    _report(record, field, value, valid, opts, "Value does not match the required pattern")
    return valid


def is_email(
    record: RecordAccessor,
    field: str,
    options: Optional[ValidationOptions] = None,
) -> bool:
    opts = resolve_options(options)
    value = _as_text(record.get(field))
    valid = bool(value) and bool(EMAIL_PATTERN.match(value))

    _report(record, field, value, valid, opts, "Please enter a valid email address")
    return valid


def is_phone(
    record: RecordAccessor,
    field: str,
    region: Optional[str] = None,
    options: Optional[ValidationOptions] = None,
) -> bool:
    opts = resolve_options(options)
    value = _as_text(record.get(field))
    valid = bool(value) and is_valid_phone_number(value, region)

    _report(record, field, value, valid, opts, "Please enter a valid phone number")
    return valid


def is_ssn(
    record: RecordAccessor,
    field: str,
    options: Optional[ValidationOptions] = None,
) -> bool:
    """Social Security Number check on the digits of the value."""
    opts = resolve_options(options)
    value = _as_text(record.get(field))
    valid = bool(value) and is_valid_ssn(value)

    _report(record, field, value, valid, opts, "Please enter a valid Social Security Number")
    return valid


def has_length(
    record: RecordAccessor,
    field: str,
    min_len: Optional[int],
    max_len: Optional[int],
    options: Optional[ValidationOptions] = None,
) -> bool:
    opts = resolve_options(options)
    value = _as_text(record.get(field))
    valid = False

    if value and min_len is not None and max_len is not None:
        valid = min_len <= len(value) <= max_len

    _report(record, field, value, valid, opts,
            f"Value must be between {min_len} and {max_len} characters")
    return valid


def min_length(
    record: RecordAccessor,
    field: str,
    min_len: Optional[int],
    options: Optional[ValidationOptions] = None,
) -> bool:
    opts = resolve_options(options)
    value = _as_text(record.get(field))
    valid = bool(value) and min_len is not None and len(value) >= min_len

    _report(record, field, value, valid, opts, f"Value must be at least {min_len} characters")
    return valid


def max_length(
    record: RecordAccessor,
    field: str,
    max_len: Optional[int],
    options: Optional[ValidationOptions] = None,
) -> bool:
    opts = resolve_options(options)
    value = _as_text(record.get(field))
    valid = bool(value) and max_len is not None and len(value) <= max_len

    _report(record, field, value, valid, opts, f"Value must not exceed {max_len} characters")
    return valid


# ============================================================================
# FORMATTERS
# ============================================================================

def apply_string_format(value: str, format_options: StringFormatOptions) -> str:
    """Apply trim, case, replace, truncate, padding, prefix and suffix in that order."""
    formatted = value

    if format_options.trim:
        formatted = formatted.strip()

    if format_options.case == "upper":
        formatted = formatted.upper()
    elif format_options.case == "lower":
        formatted = formatted.lower()
    elif format_options.case == "title":
        formatted = to_title_case(formatted)

    if format_options.replace is not None:
        if format_options.replace.regex:
            formatted = re.sub(format_options.replace.search, format_options.replace.replace, formatted)
        else:
            formatted = formatted.replace(format_options.replace.search, format_options.replace.replace, 1)

    if format_options.truncate and len(formatted) > format_options.truncate:
        formatted = formatted[:format_options.truncate]

    if format_options.pad_start and format_options.pad_char:
        formatted = formatted.rjust(format_options.pad_start, format_options.pad_char[0])

    if format_options.pad_end and format_options.pad_char:
        formatted = formatted.ljust(format_options.pad_end, format_options.pad_char[0])

    if format_options.prefix:
        formatted = format_options.prefix + formatted

    if format_options.suffix:
        formatted = formatted + format_options.suffix

    return formatted


def format_string(
    record: RecordAccessor,
    field: str,
    format_options: Optional[StringFormatOptions] = None,
    options: Optional[ValidationOptions] = None,
) -> Any:
    """
    Format a string field. Info and write-back are on unless explicitly
    disabled; an empty value is returned untouched unless `format_on_empty`.
    """
    opts = resolve_options(options)
    raw = record.get(field)

    if is_empty(raw) and not opts.format_on_empty:
        return raw

    formatted = apply_string_format(_as_text(raw), format_options or StringFormatOptions())

    if _info_enabled(opts) and record.linked:
        record.add_info(field, opts.info_msg or "String has been formatted")

    if opts.set_record and record.linked:
        record.set(field, formatted)

    return formatted


def format_ssn(
    record: RecordAccessor,
    field: str,
    options: Optional[ValidationOptions] = None,
) -> str:
    opts = resolve_options(options)
    value = _as_text(record.get(field))
    formatted = value

    if value or opts.format_on_empty:
        if is_valid_ssn(value):
            digits = extract_digits(value)
            formatted = f"{digits[:3]}-{digits[3:5]}-{digits[5:]}"
            if opts.add_info and opts.set_record and record.linked:
                info_msg = opts.info_msg if opts.info_msg is not None else f"Value changed from {value}"
                record.add_info(field, info_msg)
        elif opts.set_record:
            formatted = INVALID_SSN

        if opts.set_record and record.linked:
            record.set(field, formatted)

    return formatted


def format_phone(
    record: RecordAccessor,
    field: str,
    phone_format: str = "INTERNATIONAL",
    options: Optional[ValidationOptions] = None,
    region: Optional[str] = None,
) -> str:
    opts = resolve_options(options)
    value = _as_text(record.get(field))
    formatted = value
    target = PHONE_FORMATS.get((phone_format or "INTERNATIONAL").upper(), PhoneNumberFormat.INTERNATIONAL)

    if value or opts.format_on_empty:
        number = parse_phone(value, region) if value else None
        if number is not None and phonenumbers.is_valid_number(number):
            formatted = phonenumbers.format_number(number, target)
            if opts.add_info and opts.set_record and record.linked:
                record.add_info(field, opts.info_msg or f"Value changed from {value}")
        elif opts.set_record:
            formatted = INVALID_PHONE

        if opts.set_record and record.linked:
            record.set(field, formatted)

    return formatted


def normalize_phone_e164(record: RecordAccessor, field: str, region: str = "US") -> bool:
    """
    Import-hook phone check: annotate impossible / invalid / unparsable
    numbers, otherwise rewrite the field in E.164 (+15551234567).

    Returns False only when the number was rejected; empty values pass.
    """
    value = _as_text(record.get(field))
    if not value:
        return True

    try:
        number = phonenumbers.parse(value, region)
    except NumberParseException:
        error = "Invalid phone number (error)"
    else:
        if not phonenumbers.is_possible_number(number):
            error = "Invalid phone number (impossible)"
        elif not phonenumbers.is_valid_number(number):
            error = "Invalid phone number (invalid)"
        else:
            record.set(field, phonenumbers.format_number(number, PhoneNumberFormat.E164))
            return True

    if record.linked:
        record.add_error(field, error)
    return False


# ============================================================================
# DISPATCH
# ============================================================================

def _as_length(value: Any) -> Optional[int]:
    if isinstance(value, (list, tuple)):
        value = value[0] if len(value) == 1 else None
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.debug("Ignoring non-numeric length %r", value)
        return None


def _pair_args(validation_args: Any):
    if isinstance(validation_args, (list, tuple)) and len(validation_args) == 2:
        return _as_length(validation_args[0]), _as_length(validation_args[1])
    return None, None


def phone_region(validation_args: Any) -> Optional[str]:
    """Region from `{"region": "GB"}` style args; None means the default region."""
    if isinstance(validation_args, dict) and validation_args.get("region"):
        return str(validation_args["region"]).upper()
    return None


def run_validation(
    record: RecordAccessor,
    field: str,
    validation_type: Any,
    validation_args: Any = None,
    options: Optional[ValidationOptions] = None,
) -> bool:
    """Select a validator by its type; unknown types fall back to validate."""
    try:
        kind = StringValidationType(validation_type)
    except ValueError:
        logger.warning("Unknown string validation type %r, using validate", validation_type)
        kind = StringValidationType.VALIDATE

    if kind is StringValidationType.IS_EMAIL:
        return is_email(record, field, options)
    if kind is StringValidationType.IS_PHONE:
        return is_phone(record, field, phone_region(validation_args), options)
    if kind is StringValidationType.IS_SSN:
        return is_ssn(record, field, options)
    if kind is StringValidationType.MATCHES_PATTERN:
        pattern = validation_args
        if isinstance(pattern, (list, tuple)):
            pattern = pattern[0] if pattern else None
        return matches_pattern(record, field, pattern, options)
    if kind is StringValidationType.HAS_LENGTH:
        min_len, max_len = _pair_args(validation_args)
        return has_length(record, field, min_len, max_len, options)
    if kind is StringValidationType.MIN:
        return min_length(record, field, _as_length(validation_args), options)
    if kind is StringValidationType.MAX:
        return max_length(record, field, _as_length(validation_args), options)
    return record.get(field) is not None


def evaluate_and_format(
    record: RecordAccessor,
    field: str,
    validation_type: Any,
    format_options: Optional[StringFormatOptions] = None,
    validation_args: Any = None,
    options: Optional[ValidationOptions] = None,
) -> bool:
    """
    Run one string validator, then format the field when it passed, when
    `format_on_error` is set, or when the record is detached.
    """
    opts = resolve_options(options)
    valid = run_validation(record, field, validation_type, validation_args, opts)

    if valid or opts.format_on_error or not record.linked:
        format_string(record, field, format_options, opts)

    return valid


def evaluate_and_format_phone(
    record: RecordAccessor,
    field: str,
    phone_format: str = "INTERNATIONAL",
    options: Optional[ValidationOptions] = None,
    region: Optional[str] = None,
) -> bool:
    opts = resolve_options(options)
    valid = is_phone(record, field, region, opts)
    if valid or opts.format_on_error:
        format_phone(record, field, phone_format, opts, region)
    return valid


def evaluate_and_format_ssn(
    record: RecordAccessor,
    field: str,
    options: Optional[ValidationOptions] = None,
) -> bool:
    opts = resolve_options(options)
    valid = is_ssn(record, field, opts)
    if valid or opts.format_on_error:
        format_ssn(record, field, opts)
    return valid
