"""
Lenient numeric and date coercion for raw ledger input.

Storage rows arrive with amounts as numbers, numeric strings, empty strings
or nothing at all. Nothing here raises: unreadable values become None and
the caller decides what None contributes (always zero for money).
"""

import math
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

ZERO = Decimal("0")
DEFAULT_EPSILON = Decimal("0.01")


def coerce_decimal(value: Any) -> Optional[Decimal]:
    """
    Convert a raw value into a finite Decimal.

    Returns None for None, booleans, blanks, non-numeric strings,
    NaN and infinities.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        # str() keeps 0.05 as 0.05 instead of its binary expansion
        result = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return None
        try:
            result = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None

    if not result.is_finite():
        return None
    return result


def coerce_datetime(value: Any) -> Optional[datetime]:
    """
    Convert a raw timestamp into a timezone-aware datetime.

    Accepts datetimes, dates and ISO-8601 strings (a trailing "Z" is fine).
    Naive values are taken as UTC. Anything unreadable becomes None.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
