"""Parallel ingestion of several uploaded files.

Parsing and matching are CPU-only and share no state, so independent files
can be processed side by side. ``ingest_files`` runs one task per file in a
bounded thread pool, keeps at most ``concurrency`` tasks in flight, and
returns reports in input order.

A file that cannot be read (missing, unreadable, not UTF-8) produces a report
with ``read_error`` set; the other files are still processed. Unexpected
exceptions propagate after cancelling work that has not started yet.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from os import PathLike
from pathlib import Path
from typing import Any

from .ingest.parser import parse_csv
from .logging_setup import get_logger
from .matching import MATCH_THRESHOLD
from .models import CatalogEntry, ParseResult, as_catalog_entry
from .reconcile import ReconciledRow, reconcile

_logger = get_logger("bulk_ingest.batch")


@dataclass(frozen=True, slots=True)
class FileReport:
    path: Path
    result: ParseResult | None = None
    reconciled: list[ReconciledRow] | None = None
    read_error: str | None = None

    @property
    def ok(self) -> bool:
        """True when the file was read and its structure was parseable."""

        return self.read_error is None and self.result is not None and not self.result.structural_error


def ingest_file(
    path: str | PathLike[str],
    catalog: Sequence[CatalogEntry] | None = None,
    *,
    threshold: float = MATCH_THRESHOLD,
) -> FileReport:
    """Read, parse and (with a catalog) reconcile a single file."""

    p = Path(path)
    try:
        content = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        return FileReport(path=p, read_error=f"File not found: {p}")
    except PermissionError:
        return FileReport(path=p, read_error=f"Permission denied: {p}")
    except UnicodeDecodeError as exc:
        return FileReport(path=p, read_error=f"File is not valid UTF-8 text: {p} ({exc.reason})")
    except IsADirectoryError:
        return FileReport(path=p, read_error=f"Not a file: {p}")

    result = parse_csv(content)
    reconciled = None
    if catalog is not None and not result.structural_error:
        reconciled = reconcile(result.rows, catalog, threshold=threshold)
    return FileReport(path=p, result=result, reconciled=reconciled)


def ingest_files(
    paths: Iterable[str | PathLike[str]],
    catalog: Sequence[CatalogEntry | Mapping[str, Any]] | None = None,
    *,
    concurrency: int,
    threshold: float = MATCH_THRESHOLD,
) -> list[FileReport]:
    """Ingest ``paths`` with at most ``concurrency`` files in flight.

    Reports come back in the order of ``paths``.
    """

    if not isinstance(concurrency, int) or concurrency < 1:
        raise ValueError("concurrency must be a positive integer")

    entries = [as_catalog_entry(item) for item in catalog] if catalog is not None else None
    it = enumerate(paths)
    results: dict[int, FileReport] = {}
    future_to_idx: dict[Future[FileReport], int] = {}

    def _submit(pool: ThreadPoolExecutor) -> Future[FileReport] | None:
        try:
            idx, path = next(it)
        except StopIteration:
            return None
        fut = pool.submit(ingest_file, path, entries, threshold=threshold)
        future_to_idx[fut] = idx
        return fut

    with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="bulk-ingest") as pool:
        active: set[Future[FileReport]] = set()
        for _ in range(concurrency):
            fut = _submit(pool)
            if fut is None:
                break
            active.add(fut)

        while active:
            done, active = wait(active, return_when=FIRST_COMPLETED)
            for fut in done:
                idx = future_to_idx.pop(fut)
                try:
                    results[idx] = fut.result()
                except Exception:
                    pool.shutdown(wait=False, cancel_futures=True)
                    raise
            # Top up the window, one new task per completion.
            for _ in range(len(done)):
                fut = _submit(pool)
                if fut is None:
                    break
                active.add(fut)

    reports = [results[i] for i in sorted(results)]
    _logger.info(
        "ingested %d files, %d failed", len(reports), sum(1 for r in reports if not r.ok)
    )
    return reports


__all__ = ["FileReport", "ingest_file", "ingest_files"]
