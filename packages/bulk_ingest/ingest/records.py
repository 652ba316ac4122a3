"""Record-level CSV handling: line normalization, coalescing and splitting.

The stdlib :mod:`csv` reader needs to know the dialect up front and gives up
on unbalanced quoting. Uploaded spreadsheets routinely break both, so this
module does the work by hand:

- ``coalesce_records`` joins physical lines into logical records while a
  quoted cell is still open (cells with embedded newlines);
- ``split_line`` is a quote-aware splitter for a single record;
- ``detect_delimiter`` picks the delimiter that gives the most consistent
  column count over a small sample.
"""

from __future__ import annotations

from collections.abc import Sequence

from ..models import RawRecord
from ..text import sanitize

CANDIDATE_DELIMITERS: tuple[str, ...] = (",", ";", "\t", "|")
DELIMITER_SAMPLE_SIZE: int = 10


def normalize_newlines(content: str) -> str:
    """Strip byte-order marks and convert ``\\r\\n`` / ``\\r`` to ``\\n``."""

    return content.replace("\ufeff", "").replace("\r\n", "\n").replace("\r", "\n")


def _toggles_quote_state(line: str) -> bool:
    """Return True when ``line`` holds an odd number of unescaped quotes.

    A doubled quote (``""``) is an escaped literal and never flips the state.
    """

    odd = False
    i = 0
    n = len(line)
    while i < n:
        if line[i] == '"':
            if i + 1 < n and line[i + 1] == '"':
                i += 2
                continue
            odd = not odd
        i += 1
    return odd


def coalesce_records(content: str) -> list[RawRecord]:
    """Split ``content`` into logical records, honoring multi-line quoted cells.

    Every physical line is sanitized (smart quotes, comma variants, invisible
    whitespace) before quote tracking. Blank records are dropped.
    """

    records: list[RawRecord] = []
    buf: list[str] = []
    start = 0
    in_quotes = False

    for lineno, raw in enumerate(normalize_newlines(content).split("\n"), start=1):
        line = sanitize(raw)
        if not buf:
            start = lineno
        buf.append(line)
        if _toggles_quote_state(line):
            in_quotes = not in_quotes
        if not in_quotes:
            text = "\n".join(buf)
            if text.strip():
                records.append(RawRecord(text=text, start_line=start, end_line=lineno))
            buf = []

    # Unterminated quote at EOF: keep what we have as the final record.
    if buf:
        text = "\n".join(buf)
        if text.strip():
            records.append(RawRecord(text=text, start_line=start, end_line=start + len(buf) - 1))

    return records


def split_line(line: str, delimiter: str = ",") -> list[str]:
    """Split one record on ``delimiter``, respecting double-quoted cells.

    Inside quotes the delimiter is literal and ``""`` is one ``"``. Every cell
    is trimmed.
    """

    cells: list[str] = []
    cur: list[str] = []
    in_quotes = False
    i = 0
    n = len(line)
    while i < n:
        ch = line[i]
        if ch == '"':
            if in_quotes and i + 1 < n and line[i + 1] == '"':
                cur.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif ch == delimiter and not in_quotes:
            cells.append("".join(cur))
            cur = []
        else:
            cur.append(ch)
        i += 1
    cells.append("".join(cur))
    return [c.strip() for c in cells]


def detect_delimiter(lines: Sequence[str], min_columns: int = 2) -> str:
    """Pick the candidate delimiter with the most consistent column count.

    For each candidate, the first sampled line fixes the expected column
    count; every sampled line with that count (and at least ``min_columns``
    cells) scores a point. The score is ``points * columns``. Ties keep the
    earlier candidate, so comma wins when nothing is better.
    """

    sample = list(lines[:DELIMITER_SAMPLE_SIZE])
    best = CANDIDATE_DELIMITERS[0]
    best_score = -1

    for delimiter in CANDIDATE_DELIMITERS:
        consistent = 0
        columns = -1
        for line in sample:
            n_cells = len(split_line(line, delimiter))
            if columns == -1:
                columns = n_cells
            if n_cells == columns and n_cells >= min_columns:
                consistent += 1
        score = consistent * max(columns, 1)
        if score > best_score:
            best_score = score
            best = delimiter

    return best


__all__ = [
    "CANDIDATE_DELIMITERS",
    "coalesce_records",
    "detect_delimiter",
    "normalize_newlines",
    "split_line",
]
