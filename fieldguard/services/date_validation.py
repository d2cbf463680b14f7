"""
Date Validation & Formatting

Implements the date validator family used by field constraints:
- Relative dates: "now", "now+5days", "now-3months", "now+1year"
- Natural dates: anything dateutil can read ("2024-03-15", "March 15th, 2024")
- Format strings: yyyy, yy, y, mmmm, mmm, mm, m, dd, d plus a delimiter
- Validators: validate / before / after / between, and the format step

Every validator reads one field from a record, returns a boolean verdict and
optionally rewrites the field or annotates it. Parse failures never raise;
they are reported through the verdict.
"""

import logging
import re
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, List, Optional, Tuple

from dateutil import parser as dateutil_parser
from dateutil.relativedelta import relativedelta

from fieldguard.config import settings
from fieldguard.schemas.validation import ValidationOptions, resolve_options
from fieldguard.services.records import RecordAccessor, is_empty

logger = logging.getLogger(__name__)


# ============================================================================
# CONSTANTS
# ============================================================================

class DateValidationType(str, Enum):
    VALIDATE = "validate"
    BEFORE = "before"
    AFTER = "after"
    BETWEEN = "between"


# now, now+5days, now-3months, now+1year
RELATIVE_DATE_PATTERN = re.compile(r'^now([+-])(\d+)(days?|months?|years?)$', re.IGNORECASE)

# Words the natural parser resolves against the clock (day offsets)
RELATIVE_DATE_WORDS = {
    "now": 0,
    "today": 0,
    "yesterday": -1,
    "tomorrow": 1,
}

# Ordinal suffixes for date parsing
ORDINAL_PATTERN = re.compile(r'(\d{1,2})(st|nd|rd|th)', re.IGNORECASE)

# Longest tokens first so "mmmm" is never read as "mm" + "mm"
FORMAT_TOKENS = ("yyyy", "mmmm", "mmm", "yy", "mm", "dd", "y", "m", "d")

TOKEN_KINDS = {
    "yyyy": "year", "yy": "year", "y": "year",
    "mmmm": "month", "mmm": "month", "mm": "month", "m": "month",
    "dd": "day", "d": "day",
}

DELIMITER_PRIORITY = ("/", "-", ".")
DEFAULT_DELIMITER = " "

ISO_FORMAT = "yyyy-mm-dd"

# Month names are always separated by spaces
MONTH_NAME_TOKENS = ("mmmm", "mmm")

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]
MONTH_ABBREVIATIONS = [name[:3] for name in MONTH_NAMES]


# ============================================================================
# RELATIVE DATES
# ============================================================================

def _now() -> datetime:
    return datetime.now()


def parse_relative_date(value: Any) -> Optional[datetime]:
    """
    Evaluate a relative date expression against the current clock.

    Returns None for anything that is not `now` or `now±N(day|month|year)[s]`
    so the caller can fall through to the natural parser.
    """
    if value is None or isinstance(value, (datetime, date)):
        return None

    text = str(value).strip().lower()
    if not text:
        return None

    now = _now()
    if text == "now":
        return now

    match = RELATIVE_DATE_PATTERN.match(text)
    if not match:
        return None

    sign, amount, unit = match.groups()
    offset = int(amount) if sign == "+" else -int(amount)
    unit = re.sub(r's$', '', unit)

    try:
        if unit == "day":
            return now + relativedelta(days=offset)
        if unit == "month":
            return now + relativedelta(months=offset)
        return now + relativedelta(years=offset)
    except (ValueError, OverflowError) as exc:
        logger.debug("Relative date %r is out of range: %s", text, exc)
        return None


# ============================================================================
# NATURAL DATES
# ============================================================================

def remove_ordinal_suffix(text: str) -> str:
    """Remove ordinal suffixes (st, nd, rd, th) from date strings."""
    return ORDINAL_PATTERN.sub(r'\1', text)


def _to_local_naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def parse_date(value: Any) -> Optional[datetime]:
    """Parse free text into a datetime. Returns None instead of raising."""
    if value is None:
        return None

    if isinstance(value, datetime):
        return _to_local_naive(value)
    if isinstance(value, date):
        return datetime.combine(value, time())

    text = str(value).strip()
    if not text:
        return None

    lowered = text.lower()
    if lowered in RELATIVE_DATE_WORDS:
        return _now() + timedelta(days=RELATIVE_DATE_WORDS[lowered])

    try:
        parsed = dateutil_parser.parse(remove_ordinal_suffix(text), dayfirst=settings.DATE_DAYFIRST)
    except (ValueError, TypeError, OverflowError) as exc:
        logger.debug("Could not parse %r as a date: %s", text, exc)
        return None

    return _to_local_naive(parsed)


def is_date(value: Any) -> bool:
    """
    True when the natural parser can read the value.

    Relative expressions (now+5days) are excluded on purpose: they are only
    ever resolved by parse_relative_date.
    """
    if value is None:
        return False
    if RELATIVE_DATE_PATTERN.match(str(value).strip().lower()):
        return False
    return parse_date(value) is not None


# ============================================================================
# FORMAT STRINGS
# ============================================================================

def tokenize_format(date_format: str) -> List[Tuple[str, str]]:
    """
    Split a format string into (kind, text) pairs.

    kind is "year", "month", "day" or "literal"; matching is case-insensitive
    and always takes the longest token available at each position.
    """
    pattern = date_format.lower()
    tokens: List[Tuple[str, str]] = []
    i = 0
    while i < len(pattern):
        for token in FORMAT_TOKENS:
            if pattern.startswith(token, i):
                tokens.append((TOKEN_KINDS[token], token))
                i += len(token)
                break
        else:
            tokens.append(("literal", pattern[i]))
            i += 1
    return tokens


def _render_component(value: datetime, token: str) -> str:
    if token in ("yyyy", "y"):
        return str(value.year)
    if token == "yy":
        return str(value.year)[-2:]
    if token == "mmmm":
        return MONTH_NAMES[value.month - 1]
    if token == "mmm":
        return MONTH_ABBREVIATIONS[value.month - 1]
    if token == "mm":
        return f"{value.month:02d}"
    if token == "m":
        return str(value.month)
    if token == "dd":
        return f"{value.day:02d}"
    return str(value.day)


def _iso_date(value: datetime) -> str:
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def _iso_instant(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds")


def format_date(value: datetime, date_format: Optional[str] = None) -> str:
    """
    Render a datetime with a format string such as "MM/DD/YYYY",
    "MMMM DD, YYYY" or "DD.MM.YY".

    No format renders MM/DD/YYYY. Anything that does not resolve to exactly
    one year, one month and one day component, each set apart by a literal,
    renders ISO YYYY-MM-DD. Month names are always joined with spaces.
    """
    try:
        if not date_format:
            return f"{value.month:02d}/{value.day:02d}/{value.year}"

        tokens = tokenize_format(date_format)
        components = [token for kind, token in tokens if kind != "literal"]
        kinds = sorted(TOKEN_KINDS[token] for token in components)
        if kinds != ["day", "month", "year"]:
            return _iso_date(value)

        # "YYYYMMDD" has no separator to split on
        for (kind, _), (next_kind, _) in zip(tokens, tokens[1:]):
            if kind != "literal" and next_kind != "literal":
                return _iso_date(value)

        literals = {text for kind, text in tokens if kind == "literal"}
        if any(token in MONTH_NAME_TOKENS for token in components):
            delimiter = DEFAULT_DELIMITER
        else:
            delimiter = next((d for d in DELIMITER_PRIORITY if d in literals), DEFAULT_DELIMITER)

        return delimiter.join(_render_component(value, token) for token in components)
    except (AttributeError, TypeError, ValueError) as exc:
        logger.debug("Falling back to ISO rendering for format %r: %s", date_format, exc)
        return _iso_date(value)


# ============================================================================
# VALIDATORS
# ============================================================================

def _resolve_value(value: Any) -> Optional[datetime]:
    """Field value for validate/format: relative expression first, then natural."""
    parsed = parse_relative_date(value)
    if parsed is None:
        parsed = parse_date(value)
    return parsed


def _resolve_bound(bound: Any) -> Optional[datetime]:
    """Comparison bound: natural date first, then relative expression."""
    if bound is None:
        return None
    if is_date(bound):
        return parse_date(bound)
    return parse_relative_date(bound)


def _resolve_compared_value(
    record: RecordAccessor,
    field: str,
    value: Any,
    date_format: Optional[str],
) -> Optional[datetime]:
    """
    Field value for before/after/between. A relative value is written back
    in the requested format as soon as it resolves, whatever the verdict.
    """
    if is_date(value):
        return parse_date(value)

    parsed = parse_relative_date(value)
    if parsed is not None and date_format and record.linked:
        record.set(field, format_date(parsed, date_format))
    return parsed


def _render_bound(resolved: Optional[datetime], raw: Any, date_format: Optional[str]) -> str:
    if resolved is None:
        return str(raw)
    if date_format:
        return format_date(resolved, date_format)
    return _iso_instant(resolved)


def _report(
    record: RecordAccessor,
    field: str,
    value: Any,
    valid: bool,
    opts: ValidationOptions,
    default_msg: str,
) -> None:
    if is_empty(value) and not opts.validate_on_empty:
        return
    if not valid and opts.add_error and record.linked:
        record.add_error(field, opts.error_msg or default_msg)


def validate(
    record: RecordAccessor,
    field: str,
    date_format: Optional[str] = None,
    options: Optional[ValidationOptions] = None,
) -> bool:
    """
    Check that a field holds a date and rewrite it in `date_format`
    (ISO when omitted).

    Example:
        validate(record, "birth_date", "MM/DD/YYYY",
                 ValidationOptions(error_msg="Please enter a valid birth date"))
    """
    opts = resolve_options(options)
    value = record.get(field)
    valid = False
    formatted = ""

    if not is_empty(value):
        parsed = _resolve_value(value)
        if parsed is not None:
            valid = True
            formatted = format_date(parsed, date_format or ISO_FORMAT)

    if formatted:
        record.set(field, formatted)

    default_msg = (
        f"Please enter a valid date in the format {date_format}"
        if date_format else "Please enter a valid date"
    )
    _report(record, field, value, valid, opts, default_msg)
    return valid


def format_field(
    record: RecordAccessor,
    field: str,
    date_format: Optional[str] = None,
    options: Optional[ValidationOptions] = None,
) -> str:
    """
    Format a date field. Returns the formatted text, or "" when the value
    cannot be read as a date (the field is then left untouched).
    """
    opts = resolve_options(options)
    value = record.get(field)
    formatted = ""

    if not is_empty(value):
        parsed = _resolve_value(value)
        if parsed is not None:
            formatted = format_date(parsed, date_format or ISO_FORMAT)

    if formatted and (not is_empty(value) or opts.format_on_empty):
        if opts.add_info and opts.set_record and record.linked:
            record.add_info(field, opts.info_msg or f"Value has been formatted from {value}")

    if opts.set_record and formatted and record.linked:
        record.set(field, formatted)

    return formatted


def before(
    record: RecordAccessor,
    field: str,
    date_before: Any,
    date_format: Optional[str] = None,
    options: Optional[ValidationOptions] = None,
) -> bool:
    """Strictly earlier than `date_before` (a date or a relative expression)."""
    opts = resolve_options(options)
    value = record.get(field)
    valid = False
    bound = None

    if not is_empty(value):
        bound = _resolve_bound(date_before)
        input_date = _resolve_compared_value(record, field, value, date_format)
        if input_date is not None and bound is not None:
            valid = input_date < bound

    _report(
        record, field, value, valid, opts,
        f"Please enter a valid date before {_render_bound(bound, date_before, date_format)}",
    )
    return valid


def after(
    record: RecordAccessor,
    field: str,
    date_after: Any,
    date_format: Optional[str] = None,
    options: Optional[ValidationOptions] = None,
) -> bool:
    """Strictly later than `date_after`, e.g. after(record, "start", "now+30days")."""
    opts = resolve_options(options)
    value = record.get(field)
    valid = False
    bound = None

    if not is_empty(value):
        bound = _resolve_bound(date_after)
        input_date = _resolve_compared_value(record, field, value, date_format)
        if input_date is not None and bound is not None:
            valid = input_date > bound

    _report(
        record, field, value, valid, opts,
        f"Please enter a valid date after {_render_bound(bound, date_after, date_format)}",
    )
    return valid


def between(
    record: RecordAccessor,
    field: str,
    date_start: Any,
    date_end: Any,
    date_format: Optional[str] = None,
    options: Optional[ValidationOptions] = None,
) -> bool:
    """Open interval: start < value < end. Equal bounds never validate."""
    opts = resolve_options(options)
    value = record.get(field)
    valid = False
    start = None
    end = None

    if not is_empty(value):
        start = _resolve_bound(date_start)
        end = _resolve_bound(date_end)
        input_date = _resolve_compared_value(record, field, value, date_format)
        if input_date is not None and start is not None and end is not None:
            valid = start < input_date < end

    _report(
        record, field, value, valid, opts,
        "Please enter a valid date between "
        f"{_render_bound(start, date_start, date_format)} and "
        f"{_render_bound(end, date_end, date_format)}",
    )
    return valid


# ============================================================================
# DISPATCH
# ============================================================================

def _single_arg(validation_args: Any) -> Any:
    if isinstance(validation_args, (list, tuple)):
        return validation_args[0] if validation_args else None
    return validation_args


def _pair_args(validation_args: Any) -> Tuple[Any, Any]:
    if isinstance(validation_args, (list, tuple)) and len(validation_args) == 2:
        return validation_args[0], validation_args[1]
    return None, None


def run_validation(
    record: RecordAccessor,
    field: str,
    validation_type: Any,
    date_format: Optional[str] = None,
    validation_args: Any = None,
    options: Optional[ValidationOptions] = None,
) -> bool:
    """Select a validator by its type; unknown types fall back to validate."""
    try:
        kind = DateValidationType(validation_type)
    except ValueError:
        logger.warning("Unknown date validation type %r, using validate", validation_type)
        kind = DateValidationType.VALIDATE

    if kind is DateValidationType.BEFORE:
        return before(record, field, _single_arg(validation_args), date_format, options)
    if kind is DateValidationType.AFTER:
        return after(record, field, _single_arg(validation_args), date_format, options)
    if kind is DateValidationType.BETWEEN:
        start, end = _pair_args(validation_args)
        return between(record, field, start, end, date_format, options)
    return validate(record, field, date_format, options)


def evaluate_and_format(
    record: RecordAccessor,
    field: str,
    validation_type: Any,
    date_format: Optional[str] = None,
    validation_args: Any = None,
    options: Optional[ValidationOptions] = None,
) -> bool:
    """
    Run one date validator, then format the field when it passed (or when
    `format_on_error` is set).

    Example:
        evaluate_and_format(record, "event_date", "between", "MM/DD/YYYY",
                            ["now", "now+30days"],
                            ValidationOptions(format_on_error=True))
    """
    opts = resolve_options(options)
    valid = run_validation(record, field, validation_type, date_format, validation_args, opts)

    if valid or opts.format_on_error:
        format_field(record, field, date_format, opts)

    return valid
