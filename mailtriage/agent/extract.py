"""
Entity extraction: deadline dates and monetary amounts.

Both extractors are an ordered list of independent matcher functions
composed by ``first_success``. Patterns are tried in the listed order, not
by best match: the first matcher that produces a usable value wins.
Nothing here raises on odd input; a miss is simply ``None``.

Usage:
    from mailtriage.agent.extract import EntityExtractor

    extractor = EntityExtractor()
    entities = extractor.extract("Renewal due 15 March 2026, amount of £120")
    entities.deadline  # → date(2026, 3, 15) if that is still ahead
"""

import logging
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional, Sequence, TypeVar

from mailtriage.agent.dates import Clock, utc_now
from mailtriage.agent.schemas import Amount, ExtractedEntities

logger = logging.getLogger(__name__)

T = TypeVar("T")

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
_MONTH = r"(?P<month>" + "|".join(MONTHS) + r")[a-z]*"
_ORDINAL = r"(?:st|nd|rd|th)?"
# A day/month with no year must not be followed by one, otherwise a past
# full date would be picked up again as a year-less date.
_NO_YEAR = r"\b(?!\.?,?\s+\d{4}(?!\d))"

_DAY_MONTH_YEAR = re.compile(
    rf"(?<!\d)(?P<day>\d{{1,2}}){_ORDINAL}\s+(?:of\s+)?{_MONTH}\.?,?\s+(?P<year>\d{{4}})(?!\d)",
    re.IGNORECASE,
)
_NUMERIC_DMY = re.compile(
    r"(?<!\d)(?P<day>\d{1,2})[/-](?P<month>\d{1,2})[/-](?P<year>\d{4})(?!\d)"
)
_ISO_YMD = re.compile(
    r"(?<!\d)(?P<year>\d{4})[/-](?P<month>\d{1,2})[/-](?P<day>\d{1,2})(?!\d)"
)
_ORDINAL_DAY_MONTH = re.compile(
    rf"(?<!\d)(?P<day>\d{{1,2}}){_ORDINAL}\s+(?:of\s+)?{_MONTH}{_NO_YEAR}",
    re.IGNORECASE,
)
_KEYWORD_DAY_MONTH = re.compile(
    rf"\b(?:due|by|on)\s+(?:on\s+)?(?P<day>\d{{1,2}}){_ORDINAL}\s+{_MONTH}{_NO_YEAR}",
    re.IGNORECASE,
)

_NUMBER = r"(?P<number>(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d{1,2})?)"
_SYMBOL_PREFIXED = re.compile(rf"(?P<currency>[£$€])\s*{_NUMBER}")
_SUFFIXED = re.compile(
    rf"{_NUMBER}\s*(?P<currency>(?:GBP|USD|EUR)(?![a-z])|[£$€])",
    re.IGNORECASE,
)
_AMOUNT_OF = re.compile(
    rf"\bamount\s*(?:of\s*)?(?P<currency>[£$€])?\s*{_NUMBER}",
    re.IGNORECASE,
)


def first_success(matchers: Sequence[Callable[..., Optional[T]]], *args) -> Optional[T]:
    """Return the first non-None matcher result, in list order."""
    for matcher in matchers:
        result = matcher(*args)
        if result is not None:
            return result
    return None


# =============================================================================
# DEADLINE MATCHERS — (text, today) → first valid date strictly after today
# =============================================================================

def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _month_number(name: str) -> int:
    return MONTHS[name[:3].lower()]


def _future(candidate: Optional[date], today: date) -> Optional[date]:
    if candidate is not None and candidate > today:
        return candidate
    return None


def _next_occurrence(day: int, month: int, today: date) -> Optional[date]:
    """Resolve a year-less day/month to its next future occurrence.

    29 February can be up to four years away.
    """
    for year in range(today.year, today.year + 5):
        candidate = _future(_safe_date(year, month, day), today)
        if candidate:
            return candidate
    return None


def match_day_month_year(text: str, today: date) -> Optional[date]:
    """``15 March 2026``, ``1st Feb 2027``."""
    for m in _DAY_MONTH_YEAR.finditer(text):
        candidate = _safe_date(int(m["year"]), _month_number(m["month"]), int(m["day"]))
        if _future(candidate, today):
            return candidate
    return None


def match_numeric_dmy(text: str, today: date) -> Optional[date]:
    """``15/03/2026`` or ``15-03-2026``, day first."""
    for m in _NUMERIC_DMY.finditer(text):
        candidate = _safe_date(int(m["year"]), int(m["month"]), int(m["day"]))
        if _future(candidate, today):
            return candidate
    return None


def match_iso_ymd(text: str, today: date) -> Optional[date]:
    """``2026-03-15``."""
    for m in _ISO_YMD.finditer(text):
        candidate = _safe_date(int(m["year"]), int(m["month"]), int(m["day"]))
        if _future(candidate, today):
            return candidate
    return None


def match_ordinal_day_month(text: str, today: date) -> Optional[date]:
    """``15th of March`` with no year."""
    for m in _ORDINAL_DAY_MONTH.finditer(text):
        candidate = _next_occurrence(int(m["day"]), _month_number(m["month"]), today)
        if candidate:
            return candidate
    return None


def match_keyword_day_month(text: str, today: date) -> Optional[date]:
    """``due 15 March``, ``by 3 April``, ``on 1 June`` with no year."""
    for m in _KEYWORD_DAY_MONTH.finditer(text):
        candidate = _next_occurrence(int(m["day"]), _month_number(m["month"]), today)
        if candidate:
            return candidate
    return None


DEADLINE_MATCHERS: tuple[Callable[[str, date], Optional[date]], ...] = (
    match_day_month_year,
    match_numeric_dmy,
    match_iso_ymd,
    match_ordinal_day_month,
    match_keyword_day_month,
)


# =============================================================================
# AMOUNT MATCHERS — (text, default_currency) → Amount
# =============================================================================

def _parse_amount(number: str, currency: Optional[str], default_currency: str) -> Optional[Amount]:
    try:
        value = Decimal(number.replace(",", ""))
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    currency = currency or default_currency
    if len(currency) > 1:
        currency = currency.upper()
    return Amount(value=value, currency=currency)


def match_symbol_prefixed(text: str, default_currency: str) -> Optional[Amount]:
    """``£1,234.50``, ``$ 20``."""
    m = _SYMBOL_PREFIXED.search(text)
    return _parse_amount(m["number"], m["currency"], default_currency) if m else None


def match_suffixed(text: str, default_currency: str) -> Optional[Amount]:
    """``99.99 GBP``, ``45€``."""
    m = _SUFFIXED.search(text)
    return _parse_amount(m["number"], m["currency"], default_currency) if m else None


def match_amount_of(text: str, default_currency: str) -> Optional[Amount]:
    """``amount of £50``, ``amount 75.00`` (default currency)."""
    m = _AMOUNT_OF.search(text)
    return _parse_amount(m["number"], m["currency"], default_currency) if m else None


AMOUNT_MATCHERS: tuple[Callable[[str, str], Optional[Amount]], ...] = (
    match_symbol_prefixed,
    match_suffixed,
    match_amount_of,
)


class EntityExtractor:
    """Pulls a candidate deadline and a monetary amount out of message text."""

    def __init__(self, clock: Clock = utc_now, default_currency: str = "£"):
        self._clock = clock
        self._default_currency = default_currency

    def extract_deadline(self, text: str, now: Optional[datetime] = None) -> Optional[date]:
        today = (now or self._clock()).date()
        return first_success(DEADLINE_MATCHERS, text, today)

    def extract_amount(self, text: str) -> Optional[Amount]:
        return first_success(AMOUNT_MATCHERS, text, self._default_currency)

    def extract(self, text: str, now: Optional[datetime] = None) -> ExtractedEntities:
        entities = ExtractedEntities(
            deadline=self.extract_deadline(text, now),
            amount=self.extract_amount(text),
        )
        logger.debug(
            "entities.extracted",
            extra={
                "action": "entities.extracted",
                "deadline": entities.deadline.isoformat() if entities.deadline else None,
                "amount": entities.amount.display if entities.amount else None,
            },
        )
        return entities
