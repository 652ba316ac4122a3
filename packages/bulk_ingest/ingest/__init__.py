"""Tolerant CSV ingestion for bulk transaction uploads."""

from .parser import (
    CANONICAL_HEADER,
    CsvStructureError,
    HeaderIndex,
    parse_csv,
    resolve_header,
    template_csv,
)
from .records import coalesce_records, detect_delimiter, split_line
from .repair import RepairOutcome, repair_row
from .values import clean_number, normalize_date, to_whole_amount

__all__ = [
    "CANONICAL_HEADER",
    "CsvStructureError",
    "HeaderIndex",
    "RepairOutcome",
    "clean_number",
    "coalesce_records",
    "detect_delimiter",
    "normalize_date",
    "parse_csv",
    "repair_row",
    "resolve_header",
    "split_line",
    "template_csv",
    "to_whole_amount",
]
