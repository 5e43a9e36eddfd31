"""
Period tags and keys.

Tags arrive in several spellings (2025-03, MAR25, Mar-2025). They are
normalised to YYYY-MM so that a repayment tagged MAR25 settles debts
tagged 2025-03. Tags that are not months are kept as typed.
"""

import re
from datetime import datetime
from typing import Optional

_MONTHS = {
    "JAN": 1, "FEB": 2, "MAR": 3, "APR": 4,
    "MAY": 5, "JUN": 6, "JUL": 7, "AUG": 8,
    "SEP": 9, "OCT": 10, "NOV": 11, "DEC": 12,
}

_YEAR_FIRST = re.compile(r"^(?P<y>\d{4})[-/.](?P<m>\d{1,2})$")
_MONTH_FIRST = re.compile(r"^(?P<m>\d{1,2})[-/.](?P<y>\d{4})$")
_NAMED_SHORT_YEAR = re.compile(r"^(?P<mon>[A-Za-z]{3})(?P<y>\d{2})$")
_NAMED_LONG_YEAR = re.compile(r"^(?P<mon>[A-Za-z]{3})[-\s/]?(?P<y>\d{4})$")
_MONTH_KEY = re.compile(r"^\d{4}-\d{2}$")

# Statement cycles run from the 25th of the previous month to the 24th
CYCLE_START_DAY = 25
CYCLE_END_DAY = 24


def _month_key(year: int, month: int) -> Optional[str]:
    if not 1 <= month <= 12:
        return None
    return f"{year:04d}-{month:02d}"


def normalize_month_tag(tag: Optional[str]) -> Optional[str]:
    """
    Canonicalise a month-like tag to YYYY-MM.

    Returns None when the tag is empty or is not a recognisable month.
    """
    if not tag:
        return None
    text = tag.strip()

    match = _YEAR_FIRST.match(text) or _MONTH_FIRST.match(text)
    if match:
        return _month_key(int(match.group("y")), int(match.group("m")))

    match = _NAMED_SHORT_YEAR.match(text)
    if match:
        month = _MONTHS.get(match.group("mon").upper())
        if month:
            return _month_key(2000 + int(match.group("y")), month)
        return None

    match = _NAMED_LONG_YEAR.match(text)
    if match:
        month = _MONTHS.get(match.group("mon").upper())
        if month:
            return _month_key(int(match.group("y")), month)

    return None


def resolve_period_tag(tag: Optional[str]) -> Optional[str]:
    """Month tags become YYYY-MM; other non-blank tags pass through stripped."""
    if tag is None:
        return None
    stripped = tag.strip()
    if not stripped:
        return None
    return normalize_month_tag(stripped) or stripped


def period_key_from_date(occurred_at: Optional[datetime]) -> Optional[str]:
    if occurred_at is None:
        return None
    return _month_key(occurred_at.year, occurred_at.month)


def resolve_period_key(
    period_tag: Optional[str],
    occurred_at: Optional[datetime],
    unknown_key: str = "unknown",
) -> str:
    """Grouping key: the tag, else the month of the timestamp, else the sentinel."""
    return period_tag or period_key_from_date(occurred_at) or unknown_key


def is_month_key(key: Optional[str]) -> bool:
    return bool(key) and bool(_MONTH_KEY.match(key))


def format_cycle_range(period_key: str) -> Optional[str]:
    """
    Render a month key as its statement window.

    2025-03 -> "25.02 - 24.03". Non-month keys have no window.
    """
    if not is_month_key(period_key):
        return None
    month = int(period_key[5:7])
    if not 1 <= month <= 12:
        return None
    start_month = 12 if month == 1 else month - 1
    return f"{CYCLE_START_DAY:02d}.{start_month:02d} - {CYCLE_END_DAY:02d}.{month:02d}"
