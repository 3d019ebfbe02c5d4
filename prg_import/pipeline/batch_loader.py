"""Bounded batch inserts with per-batch failure isolation."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Iterable

from prg_import.common.constants import DEFAULT_BATCH_SIZE
from prg_import.common.errors import InsertError
from prg_import.common.logging import log_event
from prg_import.common.models import AddressPoint


@dataclass(frozen=True)
class FailedBatch:
    batch_index: int
    first_record_index: int
    size: int
    error_code: str
    error: str

    @property
    def record_indices(self) -> range:
        """Half-open range of submitted-order indices, reported as ``[start, stop]``."""
        return range(self.first_record_index, self.first_record_index + self.size)

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_index": self.batch_index,
            "first_record_index": self.first_record_index,
            "size": self.size,
            "record_indices": [self.record_indices.start, self.record_indices.stop],
            "error_code": self.error_code,
            "error": self.error,
        }


@dataclass
class LoadReport:
    submitted: int = 0
    committed: int = 0
    batches_committed: int = 0
    discarded: int = 0
    failed_batches: list[FailedBatch] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "submitted": self.submitted,
            "committed": self.committed,
            "batches_committed": self.batches_committed,
            "discarded": self.discarded,
            "failed_batches": [batch.to_dict() for batch in self.failed_batches],
        }


def build_insert_sql(table: str, columns: Iterable[str], placeholder: str) -> str:
    """Insert statement for identifiers that were validated at config load."""
    column_list = list(columns)
    values = ", ".join([placeholder] * len(column_list))
    return f"INSERT INTO {table} ({', '.join(column_list)}) VALUES ({values})"


class BatchLoader:
    """Groups address points into batches and writes each batch with one ``executemany``.

    Not thread-safe: one writer owns a loader and its connection. Only
    ``cancel`` may be called from another thread.
    """

    def __init__(
        self,
        connection,
        *,
        table: str,
        columns: Iterable[str],
        batch_size: int = DEFAULT_BATCH_SIZE,
        placeholder: str = "%s",
        logger: logging.Logger | None = None,
        run_id: str | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.connection = connection
        self.batch_size = batch_size
        self.sql = build_insert_sql(table, columns, placeholder)
        self.logger = logger
        self.run_id = run_id
        self.report = LoadReport()
        self._buffer: list[AddressPoint] = []
        self._batch_index = 0
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def pending(self) -> int:
        return len(self._buffer)

    def cancel(self) -> None:
        self._cancelled.set()

    def add(self, point: AddressPoint) -> None:
        if self.cancelled:
            self.report.discarded += 1
            return
        self._buffer.append(point)
        if len(self._buffer) >= self.batch_size:
            self._write_buffer()

    def extend(self, points: Iterable[AddressPoint]) -> None:
        for point in points:
            self.add(point)

    def flush(self) -> None:
        """Write the residual partial batch, or drop it if the run was cancelled."""
        if self.cancelled:
            self.report.discarded += len(self._buffer)
            self._buffer = []
            return
        if self._buffer:
            self._write_buffer()

    def load(self, points: Iterable[AddressPoint]) -> LoadReport:
        self.extend(points)
        self.flush()
        return self.report

    def _write_buffer(self) -> None:
        batch = self._buffer
        self._buffer = []
        self._batch_index += 1
        first_record_index = self.report.submitted
        self.report.submitted += len(batch)
        try:
            self._insert(batch)
        except InsertError as exc:
            failed = FailedBatch(
                batch_index=self._batch_index,
                first_record_index=first_record_index,
                size=len(batch),
                error_code=exc.error_code,
                error=str(exc),
            )
            self.report.failed_batches.append(failed)
            self._log(
                f"batch {self._batch_index} failed: {exc}",
                level=logging.ERROR,
                event="BATCH_FAIL",
                status="error",
                rows_in=len(batch),
                error_code=exc.error_code,
            )
            return
        self.report.committed += len(batch)
        self.report.batches_committed += 1
        self._log(
            f"{self.report.committed} rows inserted",
            event="BATCH_COMMIT",
            status="ok",
            rows_in=len(batch),
            rows_out=len(batch),
        )

    def _insert(self, batch: list[AddressPoint]) -> None:
        rows = [point.as_row() for point in batch]
        cursor = None
        try:
            cursor = self.connection.cursor()
            cursor.executemany(self.sql, rows)
            self.connection.commit()
        except Exception as exc:
            self._rollback()
            raise InsertError(f"{type(exc).__name__}: {exc}") from exc
        finally:
            if cursor is not None:
                cursor.close()

    def _rollback(self) -> None:
        try:
            self.connection.rollback()
        except Exception as exc:
            self._log(
                f"rollback failed: {exc}",
                level=logging.ERROR,
                event="BATCH_FAIL",
                status="error",
                error_code=InsertError.error_code,
            )

    def _log(self, message: str, *, level: int = logging.INFO, **fields: Any) -> None:
        if self.logger is None:
            return
        log_event(self.logger, message, level=level, run_id=self.run_id, stage="load", batch=self._batch_index, **fields)
