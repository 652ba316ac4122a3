"""Public interface for the ``bulk_ingest`` package.

Symbol re-exports only: the CSV parser, the catalog matcher, reconciliation
into transaction payloads, and the multi-file batch runner.
"""

from .batch import FileReport, ingest_file, ingest_files
from .catalog import CatalogError, catalog_from_csv, catalog_from_json, load_catalog
from .ingest import CsvStructureError, clean_number, parse_csv, template_csv
from .matching import (
    DEFAULT_VOCABULARY,
    MATCH_THRESHOLD,
    MatchVocabulary,
    find_best_match,
    similarity,
)
from .models import (
    CatalogEntry,
    MatchResult,
    ParsedRow,
    ParseResult,
    RepairStrategy,
    TransactionPayload,
)
from .reconcile import ReconciledRow, reconcile, to_payloads

__all__ = [
    # Parsing
    "parse_csv",
    "template_csv",
    "clean_number",
    "CsvStructureError",
    # Matching
    "find_best_match",
    "similarity",
    "MatchVocabulary",
    "DEFAULT_VOCABULARY",
    "MATCH_THRESHOLD",
    # Reconciliation / batch
    "reconcile",
    "to_payloads",
    "ReconciledRow",
    "ingest_file",
    "ingest_files",
    "FileReport",
    # Catalog snapshots
    "load_catalog",
    "catalog_from_json",
    "catalog_from_csv",
    "CatalogError",
    # Models / types
    "CatalogEntry",
    "MatchResult",
    "ParsedRow",
    "ParseResult",
    "RepairStrategy",
    "TransactionPayload",
]
