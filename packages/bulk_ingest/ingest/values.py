"""Cell value normalization: amounts and dates.

Amounts arrive in every style a spreadsheet can produce: ``Rp 1.250.000``,
``13,319,000``, ``12500``, ``1,5``. :func:`clean_number` folds them into a
float; :func:`to_whole_amount` rounds that to whole Rupiah. Dates go through
``dateutil`` so ``2025-01-31``, ``01/31/2025`` and ``31 Jan 2025`` all work.
"""

from __future__ import annotations

import math
import re
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from dateutil import parser as date_parser

_CURRENCY_PREFIX_RE = re.compile(r"Rp\.?\s*", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")
# One thousands group: a digit, a separator, exactly three digits.
_THOUSANDS_GROUP_RE = re.compile(r"(\d)[.,](\d{3})(?!\d)")
_DECIMAL_SUFFIX_RE = re.compile(r"\.\d{1,2}\b")
_NON_NUMERIC_RE = re.compile(r"[^\d.-]")
_NUMERIC_PREFIX_RE = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")
# Fills date parts a cell leaves out ("March 2025" is the 1st, "Jan 31" is
# year 2001). dateutil would otherwise take them from today.
_DATE_DEFAULT = datetime(2001, 1, 1)


def clean_number(value: str | float | None) -> float:
    """Parse a loosely formatted amount into a float.

    Steps, in order:

    1. drop ``Rp``/``Rp.`` prefixes (any case) and all whitespace;
    2. collapse ``digit[.,]ddd`` groups until nothing changes, which handles
       both ``1.234.567`` and ``13,319,000``;
    3. a comma that survives is a decimal comma unless the value already has
       a one or two digit ``.dd`` decimal part;
    4. parse the leading numeric prefix.

    Empty, unparseable and non-finite input gives ``0.0``. Numbers are
    returned as floats untouched, so applying the function to its own output
    is a no-op.
    """

    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        f = float(value)
        return f if math.isfinite(f) else 0.0

    s = _CURRENCY_PREFIX_RE.sub("", value)
    s = _WHITESPACE_RE.sub("", s)
    if not s:
        return 0.0

    prev = None
    while s != prev:
        prev = s
        s = _THOUSANDS_GROUP_RE.sub(r"\1\2", s)

    if "," in s and not _DECIMAL_SUFFIX_RE.search(s):
        s = s.replace(",", ".")

    m = _NUMERIC_PREFIX_RE.match(_NON_NUMERIC_RE.sub("", s))
    if m is None:
        return 0.0
    num = float(m.group(0))
    return num if math.isfinite(num) else 0.0


def to_whole_amount(value: float) -> int:
    """Round an amount half-up to whole currency units."""

    return int(Decimal(repr(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def normalize_date(raw: str | None) -> str | None:
    """Return ``raw`` as an ISO ``YYYY-MM-DD`` date, or ``None`` if unparseable.

    Only the calendar date is kept. A trailing time or zone offset is parsed
    and then dropped, so the same cell always yields the same day regardless
    of the machine's timezone. Missing parts come from a fixed default, not
    from the current date.
    """

    if raw is None:
        return None
    s = raw.strip()
    if not s:
        return None
    try:
        dt = date_parser.parse(s, default=_DATE_DEFAULT)
    except (ValueError, OverflowError):
        return None
    return dt.date().isoformat()


__all__ = ["clean_number", "normalize_date", "to_whole_amount"]
