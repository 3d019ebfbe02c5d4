import shutil
import sqlite3
from pathlib import Path

import pytest

from prg_import.cli import parse_args, run_command
from prg_import.common.constants import EXIT_HARD_FAIL, EXIT_SUCCESS
from prg_import.common.fs import read_json
from prg_import.pipeline.database import DatabaseBackend

FIXTURE = Path("tests/fixtures/PRG_PunktyAdresowe_sample.xml")


def _sqlite_backend(db_path: Path) -> DatabaseBackend:
    conn = sqlite3.connect(db_path)
    conn.execute(
        "CREATE TABLE address_points (kod_pocztowy TEXT, miejscowosc TEXT, ulica TEXT, numer TEXT, lat REAL, lon REAL)"
    )
    conn.commit()
    conn.close()
    return DatabaseBackend(connect=lambda: sqlite3.connect(db_path), placeholder="?")


@pytest.mark.integration
def test_cli_run_writes_summary_and_log(tmp_path: Path):
    source_dir = tmp_path / "prg"
    source_dir.mkdir()
    shutil.copy(FIXTURE, source_dir / FIXTURE.name)
    report_path = tmp_path / "out" / "run_summary.json"
    log_dir = tmp_path / "logs"
    args = parse_args(
        [
            str(source_dir),
            "localhost",
            "prg",
            "secret",
            "geo",
            "--report-path",
            str(report_path),
            "--log-dir",
            str(log_dir),
            "--run-id",
            "run-cli",
        ]
    )

    exit_code = run_command(args, backend=_sqlite_backend(tmp_path / "prg.sqlite"))

    assert exit_code == EXIT_SUCCESS
    summary = read_json(report_path)
    assert summary["status"] == "success"
    assert summary["totals"]["records_split"] == 3
    assert summary["totals"]["records_committed"] == 2
    assert summary["skipped_by_reason"] == {"INVALID_POSITION": 1}
    assert summary["failed_batches"] == []
    assert (log_dir / "run-cli.log.jsonl").exists()


@pytest.mark.integration
def test_cli_reports_fatal_format_error(tmp_path: Path):
    source_dir = tmp_path / "prg"
    source_dir.mkdir()
    (source_dir / "broken.xml").write_text("<prg-ad:PRG_PunktAdresowy>\n<prg-ad:ulica>x</prg-ad:ulica>\n", encoding="utf-8")
    report_path = tmp_path / "run_summary.json"
    args = parse_args([str(source_dir), "localhost", "prg", "secret", "geo", "--report-path", str(report_path)])

    exit_code = run_command(args, backend=_sqlite_backend(tmp_path / "prg.sqlite"))

    assert exit_code == EXIT_HARD_FAIL
    summary = read_json(report_path)
    assert summary["status"] == "error"
    assert summary["fatal_error"]["error_code"] == "FORMAT_ERROR"
    assert "broken.xml" in summary["fatal_error"]["message"]
