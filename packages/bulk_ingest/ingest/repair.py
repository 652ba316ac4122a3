"""Per-row column-count repair.

A data record has to yield exactly one cell per header column before fields
can be read by position. Real uploads break that in two common ways: a
different delimiter on some rows, and an unquoted thousands separator that
turns ``12,500`` into the two cells ``12`` and ``500``.

``repair_row`` tries an ordered list of strategies and stops at the first one
that produces the header width. The last strategy always succeeds, so a row is
never dropped for its shape; overflow lands in the final (notes) column.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from ..logging_setup import get_logger
from ..models import RepairStrategy
from .records import CANDIDATE_DELIMITERS, split_line

_logger = get_logger("bulk_ingest.ingest.repair")

_ENDS_WITH_DIGIT_RE = re.compile(r"\d$")
_THREE_DIGITS_RE = re.compile(r"^\d{3}$")

# Upper bounds on merge passes; each pass removes at least one cell.
_MERGE_PASSES = 8
_FORCE_FIT_MERGE_PASSES = 12


@dataclass(frozen=True, slots=True)
class RepairOutcome:
    cells: list[str]
    strategy: RepairStrategy


RepairStep = Callable[[str, str, int], list[str] | None]


def merge_thousand_groups_once(cells: list[str]) -> list[str]:
    """Rejoin adjacent ``(…digit, ddd)`` cell pairs with a comma, one pass."""

    out: list[str] = []
    i = 0
    while i < len(cells):
        cur = cells[i].strip()
        if i + 1 < len(cells):
            nxt = cells[i + 1].strip()
            if _ENDS_WITH_DIGIT_RE.search(cur) and _THREE_DIGITS_RE.match(nxt):
                out.append(f"{cur},{nxt}")
                i += 2
                continue
        out.append(cells[i])
        i += 1
    return out


def merge_thousand_groups(cells: list[str], width: int, *, max_passes: int) -> list[str]:
    """Merge thousands groups until ``cells`` fits ``width`` or stops shrinking."""

    passes = 0
    while len(cells) > width and passes < max_passes:
        merged = merge_thousand_groups_once(cells)
        passes += 1
        if len(merged) == len(cells):
            break
        cells = merged
    return cells


def force_fit(cells: list[str], width: int, delimiter: str) -> list[str]:
    """Coerce ``cells`` to ``width``: join overflow into the last cell, or pad."""

    if len(cells) > width:
        tail = delimiter.join(cells[width - 1 :])
        return [*cells[: width - 1], tail]
    return cells + [""] * (width - len(cells))


# ---------------------------------------------------------------------------
# Strategies, in the order they are tried
# ---------------------------------------------------------------------------


def _exact(line: str, delimiter: str, width: int) -> list[str] | None:
    cells = split_line(line, delimiter)
    return cells if len(cells) == width else None


def _alt_delimiter(line: str, delimiter: str, width: int) -> list[str] | None:
    for alt in CANDIDATE_DELIMITERS:
        if alt == delimiter:
            continue
        cells = split_line(line, alt)
        if len(cells) == width:
            return cells
    return None


def _thousands_merge(line: str, delimiter: str, width: int) -> list[str] | None:
    cells = split_line(line, delimiter)
    if len(cells) <= width:
        return None
    cells = merge_thousand_groups(cells, width, max_passes=_MERGE_PASSES)
    return cells if len(cells) == width else None


def _force_fit(line: str, delimiter: str, width: int) -> list[str]:
    naive = [c.strip() for c in line.split(delimiter)]
    naive = merge_thousand_groups(naive, width, max_passes=_FORCE_FIT_MERGE_PASSES)
    return force_fit(naive, width, delimiter)


REPAIR_STEPS: tuple[tuple[RepairStrategy, RepairStep], ...] = (
    (RepairStrategy.EXACT, _exact),
    (RepairStrategy.ALT_DELIMITER, _alt_delimiter),
    (RepairStrategy.THOUSANDS_MERGE, _thousands_merge),
    (RepairStrategy.FORCE_FIT, _force_fit),
)


def repair_row(line: str, delimiter: str, width: int) -> RepairOutcome:
    """Return the cells of ``line`` with exactly ``width`` entries.

    ``width`` must be at least 1. The outcome names the strategy that
    succeeded so callers can flag rows that needed the last resort.
    """

    if width < 1:
        raise ValueError("width must be a positive integer")

    for strategy, step in REPAIR_STEPS:
        cells = step(line, delimiter, width)
        if cells is not None:
            if strategy is not RepairStrategy.EXACT:
                _logger.debug("row repaired via %s: %d cells", strategy.value, len(cells))
            return RepairOutcome(cells=cells, strategy=strategy)

    # The force-fit step always returns; this is unreachable.
    raise AssertionError("repair strategies exhausted")


__all__ = [
    "REPAIR_STEPS",
    "RepairOutcome",
    "force_fit",
    "merge_thousand_groups",
    "merge_thousand_groups_once",
    "repair_row",
]
