"""Merge parsed rows with catalog matches into bulk-transaction payloads.

This is the step the upload screen performs between parsing and posting:
each row's ``item_purchase`` is matched against the catalog snapshot, the
matched product's id and selling price are attached, and revenue is derived.
Rows without a match (or that needed a last-resort column repair) are
flagged for manual review rather than dropped.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any

from .ingest.values import to_whole_amount
from .logging_setup import get_logger
from .matching import DEFAULT_VOCABULARY, MATCH_THRESHOLD, MatchVocabulary, find_best_match
from .models import CatalogEntry, MatchResult, ParsedRow, TransactionPayload, as_catalog_entry

_logger = get_logger("bulk_ingest.reconcile")


@dataclass(frozen=True, slots=True)
class ReconciledRow:
    row: ParsedRow
    match: MatchResult | None

    @property
    def needs_review(self) -> bool:
        return self.match is None or self.row.low_confidence

    def to_payload(self) -> TransactionPayload:
        """Build the payload for the bulk-transaction endpoint.

        Without a match the selling price is ``0`` and ``product_id`` is
        ``None`` (a custom, unlinked line item).
        """

        row = self.row
        selling_price = to_whole_amount(self.match.price) if self.match else 0
        day = date.fromisoformat(row.date)
        return TransactionPayload(
            date=row.date,
            item_purchased=row.item_purchase or None,
            customer_name=row.customer_name or None,
            store_name=row.store_name or None,
            payment_method=row.payment_method or None,
            purchase_price=row.purchase_price,
            selling_price=selling_price,
            product_id=self.match.id if self.match else None,
            revenue=selling_price - row.purchase_price,
            notes=row.notes or None,
            month=day.month,
            year=day.year,
        )


def reconcile(
    rows: Sequence[ParsedRow],
    catalog: Sequence[CatalogEntry | Mapping[str, Any]],
    *,
    vocabulary: MatchVocabulary = DEFAULT_VOCABULARY,
    threshold: float = MATCH_THRESHOLD,
) -> list[ReconciledRow]:
    """Match every row against ``catalog``, keeping row order."""

    # Validate the snapshot once rather than once per row.
    entries = [as_catalog_entry(item) for item in catalog]
    out = [
        ReconciledRow(
            row=row,
            match=find_best_match(
                row.item_purchase, entries, vocabulary=vocabulary, threshold=threshold
            ),
        )
        for row in rows
    ]
    unmatched = sum(1 for r in out if r.match is None)
    _logger.info("reconciled %d rows, %d without a catalog match", len(out), unmatched)
    return out


def to_payloads(reconciled: Sequence[ReconciledRow]) -> list[dict[str, Any]]:
    """Serialize reconciled rows as JSON-ready dicts, in order."""

    return [r.to_payload().model_dump() for r in reconciled]


__all__ = ["ReconciledRow", "reconcile", "to_payloads"]
