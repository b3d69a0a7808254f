"""
Statement Field Formats

Date and currency parsing shared by the CSV parsers and the PDF extractor.

Both parsers are table driven: an ordered list of (pattern, handler) pairs is
tried in priority order and the first structural match decides the result.
Neither function raises; unparseable input yields ``None``.
"""

import logging
import re
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Callable

from dateutil import parser as dateutil_parser

logger = logging.getLogger(__name__)

# Year-less dates further than this into the future belong to last year
FUTURE_ROLLBACK_DAYS = 30

# Two-digit years up to this value are 20xx, above it 19xx
TWO_DIGIT_YEAR_PIVOT = 50

PLAUSIBLE_YEARS = (1900, 2100)

MONTH_NAMES = (
    "JANUARY", "FEBRUARY", "MARCH", "APRIL", "MAY", "JUNE",
    "JULY", "AUGUST", "SEPTEMBER", "OCTOBER", "NOVEMBER", "DECEMBER",
)

_MONTH = (
    r"(JAN(?:UARY)?|FEB(?:RUARY)?|MAR(?:CH)?|APR(?:IL)?|MAY|JUNE?|JULY?|"
    r"AUG(?:UST)?|SEP(?:T(?:EMBER)?)?|OCT(?:OBER)?|NOV(?:EMBER)?|DEC(?:EMBER)?)"
)

# A date token may be followed by a time component or a separator
_END = r"(?=$|[\sT,])"


def month_number(name: str) -> int:
    """Return 1-12 for a month name or abbreviation."""
    prefix = name[:3].upper()
    for index, full_name in enumerate(MONTH_NAMES, start=1):
        if full_name.startswith(prefix):
            return index
    raise ValueError(f"Unknown month: {name}")


def expand_two_digit_year(value: int) -> int:
    return 2000 + value if value <= TWO_DIGIT_YEAR_PIVOT else 1900 + value


def _build_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _month_day(first: int, second: int, year: int) -> date | None:
    """Conventional month/day order, swapped only when it is not a valid date."""
    result = _build_date(year, first, second)
    if result is None:
        result = _build_date(year, second, first)
    return result


def _resolve_implied_year(
    build: Callable[[int], date | None],
    statement_year: int | None,
    today: date,
) -> date | None:
    if statement_year:
        return build(statement_year)

    result = build(today.year)
    # Feb 29 exists in at most one of the two candidate years
    if result is None or result > today + timedelta(days=FUTURE_ROLLBACK_DAYS):
        result = build(today.year - 1) or result
    return result


def _handle_mdy(match: re.Match, statement_year: int | None, today: date) -> date | None:
    return _month_day(int(match.group(1)), int(match.group(2)), int(match.group(3)))


def _handle_mdy_short(match: re.Match, statement_year: int | None, today: date) -> date | None:
    year = expand_two_digit_year(int(match.group(3)))
    return _month_day(int(match.group(1)), int(match.group(2)), year)


def _handle_ymd(match: re.Match, statement_year: int | None, today: date) -> date | None:
    return _build_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))


def _handle_month_name_first(
    match: re.Match, statement_year: int | None, today: date
) -> date | None:
    month = month_number(match.group(1))
    day = int(match.group(2))
    if match.group(3):
        return _build_date(int(match.group(3)), month, day)
    return _resolve_implied_year(
        lambda year: _build_date(year, month, day), statement_year, today
    )


def _handle_day_first_name(
    match: re.Match, statement_year: int | None, today: date
) -> date | None:
    year = int(match.group(3))
    if year < 100:
        year = expand_two_digit_year(year)
    return _build_date(year, month_number(match.group(2)), int(match.group(1)))


def _handle_md(match: re.Match, statement_year: int | None, today: date) -> date | None:
    first, second = int(match.group(1)), int(match.group(2))
    return _resolve_implied_year(
        lambda year: _month_day(first, second, year), statement_year, today
    )


# Priority order matters: the first template whose pattern matches wins.
DATE_TEMPLATES: list[tuple[str, re.Pattern, Callable]] = [
    ("MM/DD/YYYY", re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})" + _END), _handle_mdy),
    ("MM/DD/YY", re.compile(r"(\d{1,2})/(\d{1,2})/(\d{2})" + _END), _handle_mdy_short),
    ("YYYY-MM-DD", re.compile(r"(\d{4})[-/.](\d{1,2})[-/.](\d{1,2})" + _END), _handle_ymd),
    ("MM-DD-YYYY", re.compile(r"(\d{1,2})[-.](\d{1,2})[-.](\d{4})" + _END), _handle_mdy),
    (
        "Mon DD, YYYY",
        re.compile(
            _MONTH + r"\.?\s+(\d{1,2})(?:st|nd|rd|th)?(?:,?\s+(\d{4}))?" + _END,
            re.IGNORECASE,
        ),
        _handle_month_name_first,
    ),
    (
        "DD Mon YYYY",
        re.compile(r"(\d{1,2})\s+" + _MONTH + r"\.?,?\s+(\d{4})" + _END, re.IGNORECASE),
        _handle_day_first_name,
    ),
    (
        "DD-Mon-YYYY",
        re.compile(r"(\d{1,2})-" + _MONTH + r"-(\d{4}|\d{2})" + _END, re.IGNORECASE),
        _handle_day_first_name,
    ),
    ("MM/DD", re.compile(r"(\d{1,2})/(\d{1,2})" + _END), _handle_md),
]

# Gate for the generic fallback: a digit plus a separator or a month-like word
_LOOKS_LIKE_DATE = re.compile(r"\d.*(?:[/\-]|[A-Za-z]{3})|[A-Za-z]{3}.*\d")


def parse_date(
    text: str | None,
    statement_year: int | None = None,
    today: date | None = None,
) -> date | None:
    """Parse a statement date string.

    Args:
        text: Raw date text, optionally followed by a time
        statement_year: Year to use for year-less dates (disables rollback)
        today: Reference date for the current-year assumption

    Returns:
        Parsed date or None
    """
    if not text:
        return None

    text = text.strip()
    if not text:
        return None

    today = today or date.today()

    for name, pattern, handler in DATE_TEMPLATES:
        match = pattern.match(text)
        if match:
            result = handler(match, statement_year, today)
            if result is None:
                logger.debug(f"Date {text!r} matched {name} but is not a calendar date")
            return result

    return _parse_generic_date(text, today)


def _parse_generic_date(text: str, today: date) -> date | None:
    if not _LOOKS_LIKE_DATE.search(text):
        return None

    try:
        parsed = dateutil_parser.parse(text, default=datetime(today.year, 1, 1))
    except (ValueError, OverflowError):
        return None

    if not PLAUSIBLE_YEARS[0] <= parsed.year <= PLAUSIBLE_YEARS[1]:
        return None

    return parsed.date()


def extract_year_from_filename(file_name: str | None) -> int | None:
    """Return the earliest 19xx/20xx year in a statement file name."""
    if not file_name:
        return None

    years = [
        int(m.group(1))
        for m in re.finditer(r"(?<!\d)((?:19|20)\d{2})(?!\d)", file_name)
    ]
    return min(years) if years else None


_MARKER = re.compile(r"(?<![A-Z])(CR|DR)(?![A-Z])")
_CURRENCY = re.compile(r"[$€£¥₱]|(?<![A-Z])(?:USD|EUR|GBP|CAD|AUD|PHP)(?![A-Z])")
_PLAIN_NUMBER = re.compile(r"(?:\d+(?:\.\d*)?|\.\d+)")


def _normalize_separators(digits: str) -> str:
    if "," in digits and "." in digits:
        if digits.rfind(",") > digits.rfind("."):
            return digits.replace(".", "").replace(",", ".")
        return digits.replace(",", "")

    if "," in digits:
        head, _, tail = digits.rpartition(",")
        if digits.count(",") == 1 and len(tail) == 2:
            return f"{head}.{tail}"
        return digits.replace(",", "")

    if digits.count(".") > 1:
        return digits.replace(".", "")

    return digits


def parse_amount(text: str | None) -> Decimal | None:
    """Parse a signed currency amount.

    Parenthetical, trailing-minus and DR amounts are negative; CR amounts are
    positive; otherwise the literal sign is kept.

    Args:
        text: Raw amount text

    Returns:
        Decimal amount or None if the text is not an amount
    """
    if text is None:
        return None

    cleaned = str(text).strip().upper()
    if not cleaned:
        return None

    markers = set(_MARKER.findall(cleaned))
    is_credit = "CR" in markers
    is_debit = "DR" in markers
    cleaned = _MARKER.sub("", cleaned)
    cleaned = _CURRENCY.sub("", cleaned).strip()

    is_parenthetical = False
    if cleaned.startswith("(") and cleaned.endswith(")"):
        is_parenthetical = True
        cleaned = cleaned[1:-1].strip()
    # "-$(15.99)" leaves "-(15.99)" once the symbol is gone
    elif cleaned.startswith("-(") and cleaned.endswith(")"):
        is_parenthetical = True
        cleaned = cleaned[2:-1].strip()

    cleaned = re.sub(r"[\s']", "", cleaned)

    is_trailing_negative = False
    if len(cleaned) > 1 and cleaned.endswith("-") and not cleaned.startswith("-"):
        is_trailing_negative = True
        cleaned = cleaned[:-1]

    if cleaned.startswith("+"):
        cleaned = cleaned[1:]

    is_literal_negative = cleaned.startswith("-")
    digits = _normalize_separators(cleaned.lstrip("-"))

    if not _PLAIN_NUMBER.fullmatch(digits):
        return None

    try:
        amount = Decimal(digits)
    except InvalidOperation:
        return None

    if is_parenthetical or is_trailing_negative or is_debit:
        return -abs(amount)
    if is_credit:
        return abs(amount)
    return -amount if is_literal_negative else amount
