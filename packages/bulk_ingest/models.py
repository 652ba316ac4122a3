"""Data models for the bulk transaction ingestion pipeline.

Records produced by the parser and matcher are frozen ``dataclass`` objects
(created fresh per call, never cached). Shapes that cross a boundary with an
external collaborator, the catalog snapshot coming in and the transaction
payload going out, are pydantic models so they are validated on the way in
and serialized with ``model_dump`` on the way out.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Parser records
# ---------------------------------------------------------------------------


class RepairStrategy(StrEnum):
    """How a data row was brought to the header width."""

    EXACT = "exact"
    ALT_DELIMITER = "alt-delimiter"
    THOUSANDS_MERGE = "thousands-merge"
    FORCE_FIT = "force-fit"


@dataclass(frozen=True, slots=True)
class RawRecord:
    """One logical CSV record after multi-line coalescing.

    ``start_line`` and ``end_line`` are the 1-based physical lines the record
    spans in the normalized input.
    """

    text: str
    start_line: int
    end_line: int


@dataclass(frozen=True, slots=True)
class ParsedRow:
    """A validated transaction row.

    ``date`` is an ISO ``YYYY-MM-DD`` string and ``purchase_price`` a
    non-negative whole-Rupiah integer. ``store_name`` and ``payment_method``
    are never empty. ``row_number`` is the 1-based logical record number with
    the header counted as row 1, matching the numbers used in parse errors.
    """

    date: str
    item_purchase: str
    customer_name: str
    store_name: str
    payment_method: str
    purchase_price: int
    notes: str = ""
    row_number: int = 0
    repair: RepairStrategy | None = None

    @property
    def low_confidence(self) -> bool:
        # Force-fit can move free text into the wrong column.
        return self.repair is RepairStrategy.FORCE_FIT


@dataclass(frozen=True, slots=True)
class ParseResult:
    rows: list[ParsedRow] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    structural_error: bool = False


# ---------------------------------------------------------------------------
# Catalog and matching
# ---------------------------------------------------------------------------


class CatalogEntry(BaseModel):
    """A product from the catalog snapshot supplied by the caller."""

    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)

    id: str
    name: str
    price: float = Field(default=0.0, ge=0)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> Any:
        # Listing services hand out numeric and UUID keys alike.
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("price", mode="before")
    @classmethod
    def _none_price_is_zero(cls, v: Any) -> Any:
        return 0.0 if v is None else v


@dataclass(frozen=True, slots=True)
class MatchResult:
    id: str
    name: str
    price: float
    similarity: float


def as_catalog_entry(item: CatalogEntry | Mapping[str, Any]) -> CatalogEntry:
    """Return ``item`` as a :class:`CatalogEntry`, validating mappings."""

    if isinstance(item, CatalogEntry):
        return item
    return CatalogEntry.model_validate(dict(item))


# ---------------------------------------------------------------------------
# Downstream payload
# ---------------------------------------------------------------------------


class TransactionPayload(BaseModel):
    """One transaction as accepted by the bulk-transaction endpoint.

    Empty optional strings are sent as ``None``; amounts are whole Rupiah.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    date: str
    item_purchased: str | None
    customer_name: str | None
    store_name: str | None
    payment_method: str | None
    purchase_price: int = Field(ge=0)
    selling_price: int = Field(ge=0)
    product_id: str | None
    revenue: int
    notes: str | None
    month: int = Field(ge=1, le=12)
    year: int = Field(gt=0)


__all__ = [
    "CatalogEntry",
    "MatchResult",
    "ParseResult",
    "ParsedRow",
    "RawRecord",
    "RepairStrategy",
    "TransactionPayload",
    "as_catalog_entry",
]
