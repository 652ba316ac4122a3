"""Tolerant CSV parser for bulk transaction uploads.

Turns the text of an uploaded spreadsheet export into :class:`ParsedRow`
records plus a list of human-readable errors. Expected header (any order,
case, spacing or underscores):

``Date, Item Purchase, Customer Name, Store Name, Payment Method, Purchase,
Notes``

``Customer Name`` and ``Notes`` are optional. Malformed rows never raise: a
row with a bad date or a missing store/payment method is reported in
``errors`` and skipped, and the rest of the file is still parsed. Only a file
without a data row or without the required columns aborts the parse, with a
single error and ``structural_error=True``.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

from ..logging_setup import get_logger
from ..models import ParsedRow, ParseResult, RepairStrategy
from .records import coalesce_records, detect_delimiter, split_line
from .repair import repair_row
from .values import clean_number, normalize_date, to_whole_amount

_logger = get_logger("bulk_ingest.ingest.parser")

CANONICAL_HEADER: tuple[str, ...] = (
    "Date",
    "Item Purchase",
    "Customer Name",
    "Store Name",
    "Payment Method",
    "Purchase",
    "Notes",
)

_HEADER_NOISE_RE = re.compile(r"[_\s]+")


def normalize_header(cell: str) -> str:
    """Lowercase ``cell`` and drop whitespace and underscores."""

    return _HEADER_NOISE_RE.sub("", cell.strip().lower())


# Logical column -> accepted header spellings (compared after normalize_header).
HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "date": ("date",),
    "item_purchase": ("item purchase", "itempurchase", "item_purchase"),
    "customer_name": ("customer name", "customername", "customer_name"),
    "store_name": ("store name", "storename", "store_name"),
    "payment_method": ("payment method", "paymentmethod", "payment_method"),
    "purchase": ("purchase", "purchaseprice", "purchase_price"),
    "notes": ("notes", "note"),
}

# Required columns with the names used in the structural error message.
REQUIRED_COLUMNS: dict[str, str] = {
    "date": "date",
    "item_purchase": "item purchase",
    "store_name": "store name",
    "payment_method": "payment method",
    "purchase": "purchase",
}

TOO_FEW_LINES_ERROR = "CSV file must contain at least a header row and one data row"


class CsvStructureError(ValueError):
    """The file cannot be parsed at all (no data rows, missing columns)."""


@dataclass(frozen=True, slots=True)
class HeaderIndex:
    """Positions of the logical columns in one file's header.

    Optional columns that are absent have position ``-1``.
    """

    width: int
    date: int
    item_purchase: int
    customer_name: int
    store_name: int
    payment_method: int
    purchase: int
    notes: int


def resolve_header(cells: Sequence[str]) -> HeaderIndex:
    """Map header ``cells`` to a :class:`HeaderIndex`.

    Raises :class:`CsvStructureError` naming every missing required column.
    """

    normalized = [normalize_header(c) for c in cells]
    positions: dict[str, int] = {}
    for column, aliases in HEADER_ALIASES.items():
        wanted = {normalize_header(a) for a in aliases}
        positions[column] = next((i for i, h in enumerate(normalized) if h in wanted), -1)

    missing = [label for column, label in REQUIRED_COLUMNS.items() if positions[column] < 0]
    if missing:
        raise CsvStructureError(f"Missing required columns: {', '.join(missing)}")

    return HeaderIndex(width=len(cells), **positions)


def _cell(cells: Sequence[str], pos: int) -> str:
    return cells[pos] if 0 <= pos < len(cells) else ""


def _extract_row(
    cells: Sequence[str],
    header: HeaderIndex,
    *,
    row_number: int,
    repair: RepairStrategy,
) -> ParsedRow | str:
    """Build a row from repaired ``cells``; return an error message on rejection."""

    raw_date = _cell(cells, header.date)
    iso_date = normalize_date(raw_date)
    if iso_date is None:
        return f'Row {row_number}: Invalid date "{raw_date}"'

    store_name = _cell(cells, header.store_name)
    if not store_name:
        return f"Row {row_number}: Store name is required"
    payment_method = _cell(cells, header.payment_method)
    if not payment_method:
        return f"Row {row_number}: Payment method is required"

    raw_price = _cell(cells, header.purchase)
    price = to_whole_amount(clean_number(raw_price))
    if price < 0:
        return f'Row {row_number}: Purchase price must not be negative "{raw_price}"'

    return ParsedRow(
        date=iso_date,
        item_purchase=_cell(cells, header.item_purchase),
        customer_name=_cell(cells, header.customer_name),
        store_name=store_name,
        payment_method=payment_method,
        purchase_price=price,
        notes=_cell(cells, header.notes),
        row_number=row_number,
        repair=None if repair is RepairStrategy.EXACT else repair,
    )


def parse_csv(content: str) -> ParseResult:
    """Parse uploaded CSV text into rows and errors.

    Rows keep file order. Errors carry the 1-based row number (the header is
    row 1). See the module docstring for the failure model.
    """

    records = coalesce_records(content)
    if len(records) < 2:
        return ParseResult(rows=[], errors=[TOO_FEW_LINES_ERROR], structural_error=True)

    lines = [r.text for r in records]
    delimiter = detect_delimiter(lines)
    try:
        header = resolve_header(split_line(lines[0], delimiter))
    except CsvStructureError as exc:
        _logger.info("parse aborted: %s", exc)
        return ParseResult(rows=[], errors=[str(exc)], structural_error=True)

    _logger.debug(
        "delimiter=%r columns=%d records=%d", delimiter, header.width, len(records) - 1
    )

    rows: list[ParsedRow] = []
    errors: list[str] = []
    for offset, record in enumerate(records[1:], start=2):
        outcome = repair_row(record.text, delimiter, header.width)
        parsed = _extract_row(outcome.cells, header, row_number=offset, repair=outcome.strategy)
        if isinstance(parsed, str):
            errors.append(parsed)
        else:
            rows.append(parsed)

    _logger.info("parsed %d rows, %d rejected", len(rows), len(errors))
    return ParseResult(rows=rows, errors=errors)


def template_csv(today: date | None = None) -> str:
    """Return the downloadable import template.

    Prices are plain integers and text cells are quoted, which is the layout
    the parser reads without any repair.
    """

    day = (today or date.today()).isoformat()
    return "\n".join(
        [
            ",".join(CANONICAL_HEADER),
            f'{day},"Wireless Headphones","John Smith","Tech Store Downtown",'
            f'"Credit Card",1125000,"Customer was very satisfied"',
            f'{day},"Coffee Mug","Sarah Johnson","Home Goods Plus","Cash",127500,'
            f'"Part of a bulk order"',
        ]
    )


__all__ = [
    "CANONICAL_HEADER",
    "CsvStructureError",
    "HEADER_ALIASES",
    "HeaderIndex",
    "normalize_header",
    "parse_csv",
    "resolve_header",
    "template_csv",
]
