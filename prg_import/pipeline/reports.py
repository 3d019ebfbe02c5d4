"""Run summary aggregation."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from prg_import.common.fs import write_json
from prg_import.pipeline.batch_loader import LoadReport


@dataclass(frozen=True)
class ChunkFailure:
    source_file: str
    chunk_index: int
    error_code: str
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_file": self.source_file,
            "chunk_index": self.chunk_index,
            "error_code": self.error_code,
            "error": self.error,
        }


@dataclass
class RunSummary:
    run_id: str
    files: list[str] = field(default_factory=list)
    chunks: int = 0
    records_split: int = 0
    records_extracted: int = 0
    records_transformed: int = 0
    skipped: Counter = field(default_factory=Counter)
    failed_chunks: list[ChunkFailure] = field(default_factory=list)
    load: LoadReport = field(default_factory=LoadReport)
    fatal_error: dict[str, str] | None = None
    cancelled: bool = False

    @property
    def skipped_total(self) -> int:
        return sum(self.skipped.values())

    @property
    def status(self) -> str:
        if self.fatal_error is not None or self.cancelled:
            return "error"
        if self.failed_chunks or self.load.failed_batches:
            return "partial"
        return "success"

    def record_fatal(self, exc: Exception) -> None:
        self.fatal_error = {
            "error_code": getattr(exc, "error_code", "UNEXPECTED_ERROR"),
            "message": str(exc),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status,
            "files": list(self.files),
            "totals": {
                "chunks": self.chunks,
                "records_split": self.records_split,
                "records_extracted": self.records_extracted,
                "records_transformed": self.records_transformed,
                "records_skipped": self.skipped_total,
                "records_submitted": self.load.submitted,
                "records_committed": self.load.committed,
                "records_discarded": self.load.discarded,
                "batches_committed": self.load.batches_committed,
            },
            "skipped_by_reason": dict(sorted(self.skipped.items())),
            "failed_chunks": [failure.to_dict() for failure in self.failed_chunks],
            "failed_batches": [batch.to_dict() for batch in self.load.failed_batches],
            "fatal_error": self.fatal_error,
            "cancelled": self.cancelled,
        }


def write_run_summary(path: Path, summary: RunSummary) -> Path:
    write_json(path, summary.to_dict())
    return path
