"""
Date token parsing for expiry-bearing documents.

Every supported shape is resolved to an ISO YYYY-MM-DD string:
- DD/MM/YYYY (separators / - .)  → as written
- DD/MM/YY                       → two-digit year expanded relative to today
- YYYY-MM-DD                     → as written
- DD MMM YYYY                    → English month names, any case
- MMM DD, YYYY                   → month-first, as printed on US-style labels
- MMM YYYY, MM/YYYY, MM/YY       → last day of that month
- YYYY                           → 31 December of that year

Anything that does not form a real calendar date resolves to None.
"""

import calendar
import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import List, Optional

__all__ = [
    'DateFormat', 'DatePrecision', 'ParsedDate', 'DateToken', 'DateNormalizer',
    'InvalidDateToken', 'parse_date_token', 'normalize_date', 'find_date_tokens',
    'expand_two_digit_year', 'is_iso_date',
]


class InvalidDateToken(ValueError):
    """Raised internally when a token has a date shape but no valid date."""


class DateFormat(Enum):
    """Date shape hints, in the order shapes are tried."""
    DAY_MONTH_YEAR = "DD/MM/YYYY"
    DAY_MONTH_SHORT_YEAR = "DD/MM/YY"
    ISO = "YYYY-MM-DD"
    DAY_MONTH_NAME_YEAR = "DD MMM YYYY"
    MONTH_NAME_DAY_YEAR = "MMM DD, YYYY"
    MONTH_NAME_YEAR = "MMM YYYY"
    MONTH_YEAR = "MM/YYYY"
    MONTH_SHORT_YEAR = "MM/YY"
    YEAR = "YYYY"
    AUTO = "AUTO"


class DatePrecision(Enum):
    DAY = "day"
    MONTH = "month"
    YEAR = "year"


@dataclass(frozen=True)
class ParsedDate:
    iso: str
    precision: DatePrecision
    date_format: DateFormat

    @property
    def as_date(self) -> date:
        return date.fromisoformat(self.iso)


@dataclass(frozen=True)
class DateToken:
    """A date-shaped substring found while scanning text."""
    raw: str
    start: int
    end: int


MONTHS = {
    'jan': 1, 'january': 1,
    'feb': 2, 'february': 2,
    'mar': 3, 'march': 3,
    'apr': 4, 'april': 4,
    'may': 5,
    'jun': 6, 'june': 6,
    'jul': 7, 'july': 7,
    'aug': 8, 'august': 8,
    'sep': 9, 'sept': 9, 'september': 9,
    'oct': 10, 'october': 10,
    'nov': 11, 'november': 11,
    'dec': 12, 'december': 12,
}

MONTH_NAME = (
    r'(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?'
    r'|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)(?![a-z])'
)

# A two-digit year further than this many years in the past rolls into the next century
TWO_DIGIT_YEAR_LOOKBACK = 10

MIN_YEAR = 1900
MAX_YEAR = 2199

_SEP = r'\s?[/\-.]\s?'

# Full-token shapes, tried in priority order
_SHAPES = [
    (DateFormat.DAY_MONTH_YEAR,
     re.compile(r'(?P<day>\d{1,2})' + _SEP + r'(?P<month>\d{1,2})' + _SEP + r'(?P<year>\d{4})')),
    (DateFormat.DAY_MONTH_SHORT_YEAR,
     re.compile(r'(?P<day>\d{1,2})' + _SEP + r'(?P<month>\d{1,2})' + _SEP + r'(?P<year>\d{2})')),
    (DateFormat.ISO,
     re.compile(r'(?P<year>\d{4})' + _SEP + r'(?P<month>\d{1,2})' + _SEP + r'(?P<day>\d{1,2})')),
    (DateFormat.DAY_MONTH_NAME_YEAR,
     re.compile(r'(?P<day>\d{1,2})(?:st|nd|rd|th)?[\s\-/.,]*(?P<month>' + MONTH_NAME + r')\.?'
                r"[\s\-/.,']*(?P<year>\d{4}|\d{2})", re.IGNORECASE)),
    (DateFormat.MONTH_NAME_DAY_YEAR,
     re.compile(r'(?P<month>' + MONTH_NAME + r')\.?\s*(?P<day>\d{1,2})(?:st|nd|rd|th)?(?:\s*,\s*|\s+)(?P<year>\d{4})',
                re.IGNORECASE)),
    (DateFormat.MONTH_NAME_YEAR,
     re.compile(r'(?P<month>' + MONTH_NAME + r")\.?[\s\-/.,']*(?P<year>\d{4}|\d{2})", re.IGNORECASE)),
    (DateFormat.MONTH_YEAR,
     re.compile(r'(?P<month>\d{1,2})' + _SEP + r'(?P<year>\d{4})')),
    (DateFormat.MONTH_SHORT_YEAR,
     re.compile(r'(?P<month>\d{1,2})\s?[/\-]\s?(?P<year>\d{2})')),
    (DateFormat.YEAR,
     re.compile(r'(?P<year>(?:19|20|21)\d{2})')),
]

# Scanner used to locate tokens inside free text, longest shapes first
DATE_TOKEN_PATTERN = re.compile(
    r'(?<![\d/.\-])\d{1,2}' + _SEP + r'\d{1,2}' + _SEP + r'(?:\d{4}|\d{2})(?![\d/\-])'
    r'|(?<![\d/.\-])\d{4}[/\-.]\d{1,2}[/\-.]\d{1,2}(?!\d)'
    r'|(?<!\d)\d{1,2}(?:st|nd|rd|th)?[\s\-/.,]*' + MONTH_NAME + r"\.?[\s\-/.,']*(?:\d{4}|\d{2})(?!\d)"
    r'|(?<![a-z])' + MONTH_NAME + r'\.?\s*\d{1,2}(?:st|nd|rd|th)?(?:\s*,\s*|\s+)\d{4}(?!\d)'
    # A two-digit number followed by an ordinal or a full year is a day, not a year
    r'|(?<![a-z])' + MONTH_NAME + r"\.?[\s\-/.,']*(?:\d{4}|\d{2}(?!st|nd|rd|th|\s*,?\s*\d{4}))(?!\d)"
    r'|(?<![\d/.\-])\d{1,2}[/\-.]\d{4}(?!\d)'
    r'|(?<![\d/.\-])\d{1,2}[/\-]\d{2}(?![\d/\-])'
    r'|(?<![\d/.\-])(?:19|20|21)\d{2}(?![\d/\-])',
    re.IGNORECASE,
)

ISO_DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def expand_two_digit_year(yy: int, today: Optional[date] = None) -> int:
    """
    Expand a two-digit year into the current century.

    Years that would land more than TWO_DIGIT_YEAR_LOOKBACK years in the past
    belong to the next century (expiry dates are never that old).

    Examples:
        >>> expand_two_digit_year(38, date(2024, 1, 1))
        2038
        >>> expand_two_digit_year(5, date(2098, 1, 1))
        2105
    """
    today = today or date.today()
    century = (today.year // 100) * 100
    year = century + yy
    if year < today.year - TWO_DIGIT_YEAR_LOOKBACK:
        year += 100
    return year


def _resolve_month(raw: str) -> int:
    if raw.isdigit():
        month = int(raw)
        # 00 is a printer sentinel for December on some medicine strips
        return 12 if month == 0 else month
    month = MONTHS.get(raw.lower().rstrip('.'))
    if month is None:
        raise InvalidDateToken(f"Unknown month name: {raw}")
    return month


def _build(groups: dict, date_format: DateFormat, today: Optional[date]) -> ParsedDate:
    raw_year = groups['year']
    if len(raw_year) == 2:
        year = expand_two_digit_year(int(raw_year), today)
    else:
        year = int(raw_year)
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise InvalidDateToken(f"Year out of range: {year}")

    if groups.get('month') is None:
        return ParsedDate(f"{year:04d}-12-31", DatePrecision.YEAR, date_format)

    month = _resolve_month(groups['month'])
    if not 1 <= month <= 12:
        raise InvalidDateToken(f"Month out of range: {month}")

    last_day = calendar.monthrange(year, month)[1]
    if groups.get('day') is None:
        return ParsedDate(f"{year:04d}-{month:02d}-{last_day:02d}", DatePrecision.MONTH, date_format)

    day = int(groups['day'])
    if not 1 <= day <= last_day:
        raise InvalidDateToken(f"Day out of range: {day}")
    return ParsedDate(f"{year:04d}-{month:02d}-{day:02d}", DatePrecision.DAY, date_format)


def parse_date_token(
    token: str,
    format_hint: Optional[DateFormat] = None,
    today: Optional[date] = None
) -> Optional[ParsedDate]:
    """
    Parse a single date token.

    Args:
        token: Date-shaped string (e.g., "31/12/2024", "AUG 2026", "08/26")
        format_hint: Restrict parsing to one shape (AUTO or None tries all)
        today: Reference date for two-digit year expansion

    Returns:
        ParsedDate or None if the token is not a valid date
    """
    if not token or not isinstance(token, str):
        return None

    cleaned = token.strip().rstrip('.,')
    for date_format, shape in _SHAPES:
        if format_hint not in (None, DateFormat.AUTO) and date_format != format_hint:
            continue
        match = shape.fullmatch(cleaned)
        if not match:
            continue
        try:
            return _build(match.groupdict(), date_format, today)
        except InvalidDateToken:
            # Shapes are disjoint once matched, a bad value means a bad token
            return None
    return None


def normalize_date(
    token: str,
    format_hint: Optional[DateFormat] = None,
    today: Optional[date] = None
) -> Optional[str]:
    """
    Normalize a date token to ISO YYYY-MM-DD.

    Examples:
        >>> normalize_date("08/26", today=date(2024, 6, 1))
        '2026-08-31'
        >>> normalize_date("00/2028")
        '2028-12-31'
        >>> normalize_date("31/02/2024") is None
        True
    """
    parsed = parse_date_token(token, format_hint=format_hint, today=today)
    return parsed.iso if parsed else None


def find_date_tokens(text: str, start: int = 0, limit: Optional[int] = None) -> List[DateToken]:
    """
    Locate date-shaped substrings in text, in reading order.

    Args:
        text: Text to scan
        start: Offset to start scanning from
        limit: Only tokens starting before this offset are returned (a token
            may run past it, so a window never cuts a date in half)
    """
    if not text:
        return []
    tokens = []
    for match in DATE_TOKEN_PATTERN.finditer(text, start):
        if limit is not None and match.start() >= limit:
            break
        tokens.append(DateToken(raw=match.group(0), start=match.start(), end=match.end()))
    return tokens


def is_iso_date(value: Optional[str]) -> bool:
    """True if value is a real calendar date in YYYY-MM-DD form."""
    if not value or not ISO_DATE_PATTERN.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


class DateNormalizer:
    """Date parsing bound to a reference 'today' (injectable for tests)."""

    def __init__(self, today: Optional[date] = None):
        self._today = today

    @property
    def today(self) -> date:
        return self._today or date.today()

    def parse(self, token: str, format_hint: Optional[DateFormat] = None) -> Optional[ParsedDate]:
        return parse_date_token(token, format_hint=format_hint, today=self.today)

    def normalize(self, token: str, format_hint: Optional[DateFormat] = None) -> Optional[str]:
        return normalize_date(token, format_hint=format_hint, today=self.today)

    def find_tokens(self, text: str, start: int = 0, limit: Optional[int] = None) -> List[DateToken]:
        return find_date_tokens(text, start=start, limit=limit)
