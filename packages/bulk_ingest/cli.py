"""CLI for the ``bulk_ingest`` package.

Command handlers (``cmd_ingest``, ``cmd_match``, ``cmd_template``) are plain
functions returning an exit code; the Typer app below only wires options to
them. Environment variables may come from a local ``.env`` (loaded with
``python-dotenv`` without overriding the real environment):

- ``BULK_INGEST_LOG_LEVEL``: logging level for the package logger.
- ``BULK_INGEST_MAX_WORKERS``: cap on files parsed in parallel.
- ``BULK_INGEST_MATCH_THRESHOLD``: matcher threshold when ``--threshold`` is
  not given.
"""

from __future__ import annotations

import json
import os
import re
import sys
from collections.abc import Sequence
from datetime import date
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv

from .logging_setup import configure_logging

# ---- Configuration helpers ---------------------------------------------------


def _resolve_max_workers(n_files: int) -> int:
    """Worker count for ``n_files``: env override, else ``min(8, n_files)``.

    Always between 1 and 32 and never above ``n_files``.
    """

    raw = os.getenv("BULK_INGEST_MAX_WORKERS")
    try:
        max_workers = int(raw) if raw else None
    except ValueError:
        max_workers = None

    if max_workers is not None and max_workers > 0:
        return max(1, min(max_workers, n_files, 32))
    return max(1, min(8, n_files))


def _resolve_threshold(cli_value: float | None) -> float:
    from .matching import MATCH_THRESHOLD

    if cli_value is not None:
        return cli_value
    raw = os.getenv("BULK_INGEST_MATCH_THRESHOLD")
    if raw:
        try:
            value = float(raw)
        except ValueError:
            return MATCH_THRESHOLD
        if 0.0 <= value <= 1.0:
            return value
    return MATCH_THRESHOLD


_TSV_BREAKS_RE = re.compile(r"[\t\r\n]+")


def _tsv_cell(value: object) -> str:
    # Quoted cells may hold tabs and newlines; one output line per row.
    return _TSV_BREAKS_RE.sub(" ", str(value))


# ---- Command handlers --------------------------------------------------------


def cmd_ingest(
    paths: Sequence[str | os.PathLike[str]],
    *,
    catalog_path: str | os.PathLike[str] | None = None,
    as_json: bool = False,
    threshold: float | None = None,
) -> int:
    """Parse CSV uploads, match them against a catalog and print the result.

    Output goes to stdout: one tab-separated line per accepted row, or (with
    ``as_json``) one JSON document listing transaction payloads, errors and
    rows needing review per file. Match columns appear only with a catalog;
    without one rows stay unlinked and only force-fitted rows need review.
    Tabs and newlines inside cells are printed as spaces. Parse errors go to
    stderr as ``<file>: <message>``.

    Returns ``1`` when the catalog or any file could not be read, or a file
    was structurally invalid; per-row errors alone still return ``0``.
    """

    from .batch import ingest_files
    from .catalog import CatalogError, load_catalog
    from .models import CatalogEntry
    from .reconcile import ReconciledRow

    if not paths:
        print("Error: no input files given.", file=sys.stderr)
        return 1

    catalog: list[CatalogEntry] | None = None
    if catalog_path is not None:
        try:
            catalog = load_catalog(catalog_path)
        except FileNotFoundError:
            print(f"Error: Catalog file not found: {catalog_path}", file=sys.stderr)
            return 1
        except (OSError, CatalogError) as e:
            print(f"Error: failed to load catalog: {e}", file=sys.stderr)
            return 1

    reports = ingest_files(
        paths,
        catalog,
        concurrency=_resolve_max_workers(len(paths)),
        threshold=_resolve_threshold(threshold),
    )

    def _review(r: ReconciledRow) -> bool:
        return r.needs_review if catalog is not None else r.row.low_confidence

    exit_code = 0
    documents = []
    for report in reports:
        if report.read_error is not None:
            print(f"Error: {report.read_error}", file=sys.stderr)
            exit_code = 1
            continue
        result = report.result
        if result is None:
            continue
        for err in result.errors:
            print(f"{report.path}: {err}", file=sys.stderr)
        if result.structural_error:
            exit_code = 1
            continue

        reconciled = report.reconciled
        if reconciled is None:
            reconciled = [ReconciledRow(row=row, match=None) for row in result.rows]

        if as_json:
            documents.append(
                {
                    "file": str(report.path),
                    "transactions": [r.to_payload().model_dump() for r in reconciled],
                    "errors": list(result.errors),
                    "needs_review": [r.row.row_number for r in reconciled if _review(r)],
                }
            )
            continue

        for r in reconciled:
            row = r.row
            cells: list[object] = [
                row.row_number,
                row.date,
                row.item_purchase,
                row.store_name,
                row.payment_method,
                row.purchase_price,
            ]
            if catalog is not None:
                cells += [r.match.name, f"{r.match.similarity:.2f}"] if r.match else ["No match", ""]
            cells.append("review" if _review(r) else "")
            print("\t".join(_tsv_cell(c) for c in cells))

    if as_json:
        print(json.dumps(documents, ensure_ascii=False, indent=2))
    return exit_code


def cmd_match(query: str, *, catalog_path: str | os.PathLike[str], threshold: float | None = None) -> int:
    """Print the best catalog match for ``query`` (or ``No match``)."""

    from .catalog import CatalogError, load_catalog
    from .matching import find_best_match

    try:
        catalog = load_catalog(catalog_path)
    except FileNotFoundError:
        print(f"Error: Catalog file not found: {catalog_path}", file=sys.stderr)
        return 1
    except (OSError, CatalogError) as e:
        print(f"Error: failed to load catalog: {e}", file=sys.stderr)
        return 1

    match = find_best_match(query, catalog, threshold=_resolve_threshold(threshold))
    if match is None:
        print("No match")
    else:
        print(f"{match.id}\t{_tsv_cell(match.name)}\t{match.price:g}\t{match.similarity:.2f}")
    return 0


def cmd_template(day: str | None = None) -> int:
    """Print the import template CSV, dated ``day`` (ISO) or today."""

    from .ingest.parser import template_csv

    try:
        today = date.fromisoformat(day) if day else None
    except ValueError:
        print(f"Error: invalid date (expected YYYY-MM-DD): {day}", file=sys.stderr)
        return 1
    print(template_csv(today))
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Ingest bulk transaction CSV uploads and link items to the product catalog. "
        "Loads settings from a local .env before running."
    ),
)

CatalogOption = Annotated[
    Path | None,
    typer.Option("--catalog", help="Catalog snapshot (.json or .csv) with id, name, price."),
]
ThresholdOption = Annotated[
    float | None,
    typer.Option(
        "--threshold",
        min=0.0,
        max=1.0,
        help="Minimum similarity for a catalog match (default 0.68).",
    ),
]


@app.command("ingest")
def ingest_cmd(
    files: Annotated[list[Path], typer.Argument(help="CSV files to ingest.")],
    catalog: CatalogOption = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print JSON payloads.")] = False,
    threshold: ThresholdOption = None,
) -> None:
    """Parse CSV uploads and reconcile their items with the catalog."""

    code = cmd_ingest(files, catalog_path=catalog, as_json=as_json, threshold=threshold)
    raise typer.Exit(code)


@app.command("match")
def match_cmd(
    query: Annotated[str, typer.Argument(help="Free-text item description.")],
    catalog: Annotated[
        Path,
        typer.Option("--catalog", help="Catalog snapshot (.json or .csv) with id, name, price."),
    ],
    threshold: ThresholdOption = None,
) -> None:
    """Find the catalog product that best matches QUERY."""

    raise typer.Exit(cmd_match(query, catalog_path=catalog, threshold=threshold))


@app.command("template")
def template_cmd(
    day: Annotated[
        str | None, typer.Option("--date", help="Date for the example rows (YYYY-MM-DD).")
    ] = None,
) -> None:
    """Print a CSV template for bulk uploads."""

    raise typer.Exit(cmd_template(day))


@app.callback()
def _root() -> None:
    """Load ``.env`` from the working directory and set up logging."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    app()
