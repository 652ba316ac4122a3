"""Character-level cleanup shared by the CSV parser and the catalog matcher.

Spreadsheets exported from phones and office suites in mixed locales carry
typographic quotes, full-width or Arabic commas and zero-width spaces. Both the
record coalescer and the matcher fold these to plain ASCII before looking at
quotes, delimiters or tokens.
"""

from __future__ import annotations

import re

# “ ” „ ‟
SMART_QUOTES_RE = re.compile("[\u201c\u201d\u201e\u201f]")
# fullwidth, Arabic, ideographic, Arabic decimal separator, low-9 quote
COMMA_VARIANTS_RE = re.compile("[\uff0c\u060c\u3001\u066b\u201a]")
# no-break space, zero-width space/non-joiner/joiner, word joiner
INVISIBLE_WS_RE = re.compile("[\u00a0\u200b\u200c\u200d\u2060]")


def sanitize(text: str) -> str:
    """Return ``text`` with smart quotes, comma variants and invisible spaces folded."""

    text = SMART_QUOTES_RE.sub('"', text)
    text = COMMA_VARIANTS_RE.sub(",", text)
    return INVISIBLE_WS_RE.sub("", text)


__all__ = ["sanitize"]
