"""Loading catalog snapshots from disk.

The matcher takes the catalog as an in-memory list; fetching and paging it
belongs to the caller. For command-line runs the snapshot is a file:

- JSON: a list of ``{"id", "name", "price"}`` objects, or the product-listing
  response shape ``{"products": [...]}``;
- CSV: a header with ``id``, ``name`` and ``price`` columns. Catalog exports
  are machine-written, so the stdlib :mod:`csv` reader is enough here; prices
  still go through :func:`clean_number` to accept ``Rp 25.000``.
"""

from __future__ import annotations

import csv
import json
from collections.abc import Iterable, Mapping
from io import StringIO
from os import PathLike
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .ingest.values import clean_number
from .logging_setup import get_logger
from .models import CatalogEntry

_logger = get_logger("bulk_ingest.catalog")

_REQUIRED_CSV_COLUMNS = ("id", "name")


class CatalogError(ValueError):
    """The catalog snapshot is unreadable or holds an invalid entry."""


def _validate_entries(items: Iterable[Any], *, source: str) -> list[CatalogEntry]:
    entries: list[CatalogEntry] = []
    for pos, item in enumerate(items, start=1):
        if not isinstance(item, Mapping):
            raise CatalogError(f"{source}: entry {pos} is not an object")
        try:
            entries.append(CatalogEntry.model_validate(dict(item)))
        except ValidationError as exc:
            raise CatalogError(f"{source}: invalid entry {pos}: {exc}") from exc
    return entries


def catalog_from_json(text: str, *, source: str = "<json>") -> list[CatalogEntry]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CatalogError(f"{source}: invalid JSON: {exc}") from exc
    if isinstance(data, Mapping):
        data = data.get("products")
    if not isinstance(data, list):
        raise CatalogError(f"{source}: expected a list of products or a 'products' list")
    return _validate_entries(data, source=source)


def catalog_from_csv(text: str, *, source: str = "<csv>") -> list[CatalogEntry]:
    reader = csv.DictReader(StringIO(text.replace("\ufeff", "")))
    fields = {(f or "").strip().lower(): f for f in reader.fieldnames or []}
    missing = [c for c in _REQUIRED_CSV_COLUMNS if c not in fields]
    if missing:
        raise CatalogError(f"{source}: missing catalog columns: {', '.join(missing)}")

    def _rows() -> Iterable[dict[str, Any]]:
        for row in reader:
            raw_price = row.get(fields["price"]) if "price" in fields else None
            yield {
                "id": row.get(fields["id"]),
                "name": row.get(fields["name"]),
                "price": clean_number(raw_price),
            }

    return _validate_entries(_rows(), source=source)


def load_catalog(path: str | PathLike[str]) -> list[CatalogEntry]:
    """Read a catalog snapshot; the format follows the file extension.

    ``.csv`` files are read as CSV, everything else as JSON. Raises
    :class:`CatalogError` on malformed content and ``OSError`` when the file
    cannot be read.
    """

    p = Path(path)
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() == ".csv":
        entries = catalog_from_csv(text, source=str(p))
    else:
        entries = catalog_from_json(text, source=str(p))
    _logger.info("loaded %d catalog entries from %s", len(entries), p)
    return entries


__all__ = ["CatalogError", "catalog_from_csv", "catalog_from_json", "load_catalog"]
