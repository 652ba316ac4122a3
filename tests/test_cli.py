import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from bulk_ingest.cli import _resolve_max_workers, _resolve_threshold, app

HEADER = "Date,Item Purchase,Customer Name,Store Name,Payment Method,Purchase,Notes"

runner = CliRunner()


@pytest.fixture
def catalog_path(tmp_path: Path) -> Path:
    path = tmp_path / "catalog.json"
    path.write_text(
        json.dumps(
            {
                "products": [
                    {"id": "p1", "name": "CAPCUT PRIVATE 1 BULAN", "price": 25000},
                    {"id": "p2", "name": "Spotify Family Premium Plan", "price": 50000},
                ]
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def upload(tmp_path: Path) -> Path:
    path = tmp_path / "upload.csv"
    path.write_text(
        "\n".join(
            [
                HEADER,
                '2025-03-05,"capcut private 1 bulan andika","Andika","Store A","Cash",20000,""',
                '2025-03-06,"Mystery Box","Budi","Store B","BCA",5000,""',
            ]
        ),
        encoding="utf-8",
    )
    return path


def test_template_command():
    result = runner.invoke(app, ["template", "--date", "2025-04-01"])

    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert lines[0] == HEADER
    assert lines[1].startswith('2025-04-01,"Wireless Headphones"')


def test_template_command_rejects_bad_date():
    result = runner.invoke(app, ["template", "--date", "04/01/2025"])

    assert result.exit_code == 1
    assert "invalid date" in result.output


def test_match_command(catalog_path: Path):
    result = runner.invoke(app, ["match", "capcut private 1 bulan budi", "--catalog", str(catalog_path)])

    assert result.exit_code == 0
    assert result.output.strip() == "p1\tCAPCUT PRIVATE 1 BULAN\t25000\t1.00"


def test_match_command_without_a_match(catalog_path: Path):
    result = runner.invoke(app, ["match", "random unrelated text", "--catalog", str(catalog_path)])

    assert result.exit_code == 0
    assert result.output.strip() == "No match"


def test_match_command_threshold_option(catalog_path: Path):
    args = ["match", "spotify family", "--catalog", str(catalog_path)]

    assert runner.invoke(app, args).output.strip() == "No match"
    result = runner.invoke(app, [*args, "--threshold", "0.5"])
    assert result.output.strip() == "p2\tSpotify Family Premium Plan\t50000\t0.50"


def test_match_command_missing_catalog(tmp_path: Path):
    result = runner.invoke(app, ["match", "x", "--catalog", str(tmp_path / "nope.json")])

    assert result.exit_code == 1
    assert "Catalog file not found" in result.output


def test_match_command_invalid_catalog(tmp_path: Path):
    bad = tmp_path / "bad.json"
    bad.write_text("{broken", encoding="utf-8")

    result = runner.invoke(app, ["match", "x", "--catalog", str(bad)])

    assert result.exit_code == 1
    assert "failed to load catalog" in result.output


def test_ingest_command_prints_rows(upload: Path, catalog_path: Path):
    result = runner.invoke(app, ["ingest", str(upload), "--catalog", str(catalog_path)])

    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert "2\t2025-03-05\tcapcut private 1 bulan andika\tStore A\tCash\t20000\tCAPCUT PRIVATE 1 BULAN\t1.00\t" in lines
    assert "3\t2025-03-06\tMystery Box\tStore B\tBCA\t5000\tNo match\t\treview" in lines


def test_ingest_command_json(upload: Path, catalog_path: Path):
    result = runner.invoke(app, ["ingest", str(upload), "--catalog", str(catalog_path), "--json"])

    assert result.exit_code == 0
    [doc] = json.loads(result.output)
    assert doc["file"] == str(upload)
    assert doc["errors"] == []
    assert doc["needs_review"] == [3]
    first, second = doc["transactions"]
    assert first["product_id"] == "p1"
    assert first["selling_price"] == 25000
    assert first["revenue"] == 5000
    assert second["product_id"] is None
    assert second["revenue"] == -5000


def test_ingest_command_reports_row_errors_without_failing(tmp_path: Path):
    path = tmp_path / "rows.csv"
    path.write_text(
        HEADER + '\nsomeday,"Widget","Jane","Store A","Cash",100,""\n2025-01-01,"Gadget","","S","Cash",100,""',
        encoding="utf-8",
    )

    result = runner.invoke(app, ["ingest", str(path)])

    assert result.exit_code == 0
    assert f'{path}: Row 2: Invalid date "someday"' in result.output
    assert "3\t2025-01-01\tGadget" in result.output


def test_ingest_command_fails_on_unreadable_or_invalid_files(tmp_path: Path, upload: Path):
    header_only = tmp_path / "header.csv"
    header_only.write_text(HEADER, encoding="utf-8")

    missing = runner.invoke(app, ["ingest", str(upload), str(tmp_path / "missing.csv")])
    structural = runner.invoke(app, ["ingest", str(header_only)])

    assert missing.exit_code == 1
    assert "File not found" in missing.output
    assert structural.exit_code == 1
    assert "at least a header row and one data row" in structural.output


def test_ingest_command_missing_catalog(upload: Path, tmp_path: Path):
    result = runner.invoke(app, ["ingest", str(upload), "--catalog", str(tmp_path / "none.json")])

    assert result.exit_code == 1
    assert "Catalog file not found" in result.output


def test_dotenv_threshold_does_not_override_environment(catalog_path: Path, monkeypatch: pytest.MonkeyPatch):
    Path(".env").write_text("BULK_INGEST_MATCH_THRESHOLD=0.5\n", encoding="utf-8")
    args = ["match", "spotify family", "--catalog", str(catalog_path)]

    monkeypatch.setenv("BULK_INGEST_MATCH_THRESHOLD", "0.9")
    assert runner.invoke(app, args).output.strip() == "No match"

    monkeypatch.delenv("BULK_INGEST_MATCH_THRESHOLD")
    assert runner.invoke(app, args).output.strip().startswith("p2\t")


def test_resolve_max_workers(monkeypatch: pytest.MonkeyPatch):
    assert _resolve_max_workers(20) == 8
    assert _resolve_max_workers(3) == 3
    assert _resolve_max_workers(0) == 1

    monkeypatch.setenv("BULK_INGEST_MAX_WORKERS", "4")
    assert _resolve_max_workers(10) == 4
    assert _resolve_max_workers(2) == 2
    monkeypatch.setenv("BULK_INGEST_MAX_WORKERS", "100")
    assert _resolve_max_workers(50) == 32
    monkeypatch.setenv("BULK_INGEST_MAX_WORKERS", "lots")
    assert _resolve_max_workers(20) == 8


def test_resolve_threshold(monkeypatch: pytest.MonkeyPatch):
    assert _resolve_threshold(None) == 0.68
    assert _resolve_threshold(0.3) == 0.3

    monkeypatch.setenv("BULK_INGEST_MATCH_THRESHOLD", "0.9")
    assert _resolve_threshold(None) == 0.9
    assert _resolve_threshold(0.3) == 0.3
    monkeypatch.setenv("BULK_INGEST_MATCH_THRESHOLD", "2")
    assert _resolve_threshold(None) == 0.68
    monkeypatch.setenv("BULK_INGEST_MATCH_THRESHOLD", "high")
    assert _resolve_threshold(None) == 0.68


def test_ingest_without_catalog_prints_unlinked_rows(upload: Path):
    result = runner.invoke(app, ["ingest", str(upload)])

    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert "2\t2025-03-05\tcapcut private 1 bulan andika\tStore A\tCash\t20000\t" in lines
    assert "3\t2025-03-06\tMystery Box\tStore B\tBCA\t5000\t" in lines
    assert "No match" not in result.output


def test_ingest_without_catalog_json_only_flags_repairs(tmp_path: Path, upload: Path):
    forced = tmp_path / "forced.csv"
    forced.write_text(HEADER + "\n2025-03-07,Widget,Ann,Store C,Cash,100,paid, in full", encoding="utf-8")

    result = runner.invoke(app, ["ingest", str(upload), str(forced), "--json"])

    assert result.exit_code == 0
    clean, repaired = json.loads(result.output)
    assert clean["needs_review"] == []
    assert [t["product_id"] for t in clean["transactions"]] == [None, None]
    assert repaired["needs_review"] == [2]


def test_ingest_keeps_one_line_per_row_for_multiline_cells(tmp_path: Path, catalog_path: Path):
    path = tmp_path / "multiline.csv"
    path.write_text(
        HEADER + '\n2025-03-05,"Mystery\nBox","Budi","Store\tB","BCA",5000,"two\nlines"',
        encoding="utf-8",
    )

    result = runner.invoke(app, ["ingest", str(path), "--catalog", str(catalog_path)])

    assert result.exit_code == 0
    assert result.output.splitlines() == ["2\t2025-03-05\tMystery Box\tStore B\tBCA\t5000\tNo match\t\treview"]
