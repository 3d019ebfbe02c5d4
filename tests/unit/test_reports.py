from collections import Counter
from pathlib import Path

from prg_import.common.errors import CleanupError
from prg_import.common.fs import read_json
from prg_import.pipeline.batch_loader import FailedBatch, LoadReport
from prg_import.pipeline.reports import ChunkFailure, RunSummary, write_run_summary


def test_summary_status_progression():
    summary = RunSummary(run_id="run-1")
    assert summary.status == "success"

    summary.load = LoadReport(submitted=4, committed=2, failed_batches=[FailedBatch(2, 2, 2, "INSERT_ERROR", "boom")])
    assert summary.status == "partial"

    summary.record_fatal(CleanupError("Temp dir could not be deleted"))
    assert summary.status == "error"
    assert summary.fatal_error == {"error_code": "CLEANUP_ERROR", "message": "Temp dir could not be deleted"}


def test_write_run_summary_payload(tmp_path: Path):
    summary = RunSummary(
        run_id="run-2",
        files=["a.xml"],
        chunks=2,
        records_split=5,
        records_extracted=5,
        records_transformed=3,
        skipped=Counter({"INVALID_NUMBER": 1, "INVALID_POSITION": 1}),
        failed_chunks=[ChunkFailure("a.xml", 2, "PARSE_ERROR", "bad")],
        load=LoadReport(submitted=3, committed=3, batches_committed=1),
    )

    payload = read_json(write_run_summary(tmp_path / "reports" / "run_summary.json", summary))

    assert payload["status"] == "partial"
    assert payload["totals"]["records_skipped"] == 2
    assert payload["totals"]["records_committed"] == 3
    assert payload["skipped_by_reason"] == {"INVALID_NUMBER": 1, "INVALID_POSITION": 1}
    assert payload["failed_chunks"] == [
        {"source_file": "a.xml", "chunk_index": 2, "error_code": "PARSE_ERROR", "error": "bad"}
    ]
