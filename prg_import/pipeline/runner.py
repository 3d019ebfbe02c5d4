"""Import orchestration: split, then extract and transform in workers, then load in one writer."""

from __future__ import annotations

import logging
import queue
import threading
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path

from prg_import.common.constants import CHUNK_SUFFIX, NORMALISED_SUFFIX, TMP_DIR_PREFIX
from prg_import.common.errors import ParseError, PipelineError, SourceIOError, ValidationError
from prg_import.common.fs import list_files_with_suffix, scoped_workdir
from prg_import.common.logging import log_event
from prg_import.common.models import AddressPoint, ChunkFragment, RunConfig
from prg_import.common.time_utils import workdir_timestamp
from prg_import.pipeline.batch_loader import BatchLoader, LoadReport
from prg_import.pipeline.coordinates import CoordinateTransformer
from prg_import.pipeline.database import DatabaseBackend
from prg_import.pipeline.extract import iter_record_fields
from prg_import.pipeline.normalise import normalise_fragment
from prg_import.pipeline.reports import ChunkFailure, RunSummary
from prg_import.pipeline.splitter import split_file_into_chunks

_END_OF_STREAM = object()
QUEUE_POLL_SECONDS = 0.5


@dataclass
class ChunkResult:
    fragment: ChunkFragment
    extracted: int = 0
    transformed: int = 0
    skipped: Counter = field(default_factory=Counter)
    failure: ChunkFailure | None = None


class ImportRun:
    """One importer run over every source file of ``config.source_dir``.

    ``summary`` is filled in as the run progresses and stays readable after
    ``execute`` raises.
    """

    def __init__(
        self,
        config: RunConfig,
        backend: DatabaseBackend,
        *,
        run_id: str,
        logger: logging.Logger,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.config = config
        self.backend = backend
        self.run_id = run_id
        self.logger = logger
        self.cancel_event = cancel_event or threading.Event()
        self.summary = RunSummary(run_id=run_id)
        self.transformer = CoordinateTransformer(
            config.source_crs,
            config.target_crs,
            bbox_wgs84=config.bbox_wgs84,
            enforce_bbox=config.enforce_bbox,
        )

    def cancel(self) -> None:
        self.cancel_event.set()

    def execute(self) -> RunSummary:
        sources = list_files_with_suffix(self.config.source_dir, self.config.input_suffix)
        self.summary.files = [path.name for path in sources]
        workdir_name = f"{TMP_DIR_PREFIX}{workdir_timestamp()}"
        self._event(f"run started with {self.config.to_dict()}", event="RUN_START", status="ok", rows_in=len(sources))

        try:
            with scoped_workdir(
                self.config.source_dir,
                workdir_name,
                (CHUNK_SUFFIX, NORMALISED_SUFFIX),
                logger=self.logger,
            ) as workdir:
                fragments = self._split_all(sources, workdir)
                self._process_fragments(fragments)
        except PipelineError as exc:
            self.summary.record_fatal(exc)
            raise
        finally:
            self.summary.cancelled = self.cancel_event.is_set() and self.summary.fatal_error is None

        return self.summary

    def _event(self, message: str, *, level: int = logging.INFO, **fields) -> None:
        log_event(self.logger, message, level=level, run_id=self.run_id, **fields)

    def _split_all(self, sources: list[Path], workdir: Path) -> list[ChunkFragment]:
        fragments: list[ChunkFragment] = []
        for source in sources:
            self._event("started splitting file into chunks", stage="split", source_file=source.name, event="STAGE_START", status="ok")
            file_fragments = split_file_into_chunks(
                source,
                self.config.record_tag,
                self.config.chunk_size,
                workdir,
                logger=self.logger,
                run_id=self.run_id,
            )
            split_count = sum(fragment.record_count for fragment in file_fragments)
            self.summary.chunks += len(file_fragments)
            self.summary.records_split += split_count
            fragments.extend(file_fragments)
            self._event(
                "ended splitting file into chunks",
                stage="split",
                source_file=source.name,
                event="STAGE_END",
                status="ok",
                rows_out=split_count,
            )
        return fragments

    def _process_fragments(self, fragments: list[ChunkFragment]) -> None:
        points: queue.Queue = queue.Queue(maxsize=self.config.queue_size)
        fatal: PipelineError | None = None

        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="prg-writer") as writer_pool:
            writer = writer_pool.submit(self._drain, points)
            try:
                with ThreadPoolExecutor(max_workers=self.config.workers, thread_name_prefix="prg-chunk") as pool:
                    futures = [pool.submit(self._process_chunk, fragment, points) for fragment in fragments]
                    try:
                        for future in as_completed(futures):
                            try:
                                self._merge(future.result())
                            except PipelineError as exc:
                                if fatal is None:
                                    fatal = exc
                                self.cancel_event.set()
                    except BaseException:
                        self.cancel_event.set()
                        raise
            finally:
                self._put(points, _END_OF_STREAM, force=True)
            writer.result()

        if fatal is not None:
            raise fatal

    def _merge(self, result: ChunkResult) -> None:
        self.summary.records_extracted += result.extracted
        self.summary.records_transformed += result.transformed
        self.summary.skipped.update(result.skipped)
        if result.failure is not None:
            self.summary.failed_chunks.append(result.failure)

    def _put(self, points: queue.Queue, item, *, force: bool = False) -> bool:
        while True:
            if self.cancel_event.is_set() and not force:
                return False
            try:
                points.put(item, timeout=QUEUE_POLL_SECONDS)
                return True
            except queue.Full:
                continue

    def _process_chunk(self, fragment: ChunkFragment, points: queue.Queue) -> ChunkResult:
        result = ChunkResult(fragment=fragment)
        if self.cancel_event.is_set():
            return result

        normalised = normalise_fragment(fragment.path, self.config.replacements)
        try:
            for item in iter_record_fields(
                normalised,
                self.config.record_element,
                locality_admin_level=self.config.locality_admin_level,
            ):
                result.extracted += 1
                try:
                    if isinstance(item, ValidationError):
                        raise item
                    point = AddressPoint(
                        postal_code=item.postal_code,
                        locality=item.locality,
                        street=item.street,
                        house_number=item.house_number,
                        coord=self.transformer.transform_raw(item.raw_x, item.raw_y),
                    )
                except ValidationError as exc:
                    result.skipped[exc.reason] += 1
                    self._event(
                        f"record skipped: {exc}",
                        level=logging.DEBUG,
                        stage="extract",
                        source_file=fragment.source_file,
                        chunk=fragment.index,
                        event="RECORD_SKIP",
                        status="skipped",
                        error_code=exc.error_code,
                    )
                    continue
                if not self._put(points, point):
                    break
                result.transformed += 1
        except ParseError as exc:
            result.failure = ChunkFailure(
                source_file=fragment.source_file,
                chunk_index=fragment.index,
                error_code=exc.error_code,
                error=str(exc),
            )
            self._event(
                f"chunk skipped: {exc}",
                level=logging.ERROR,
                stage="extract",
                source_file=fragment.source_file,
                chunk=fragment.index,
                event="CHUNK_FAIL",
                status="error",
                error_code=exc.error_code,
            )
            return result

        self._event(
            "chunk imported",
            stage="extract",
            source_file=fragment.source_file,
            chunk=fragment.index,
            event="CHUNK_DONE",
            status="ok",
            rows_in=result.extracted,
            rows_out=result.transformed,
        )
        return result

    def _drain(self, points: queue.Queue) -> LoadReport:
        """Writer loop: the only place that touches the database."""
        try:
            connection = self.backend.connect()
        except Exception as exc:
            self.cancel_event.set()
            self._discard_until_end(points)
            raise SourceIOError(f"Could not connect to {self.backend.description or 'database'}: {exc}") from exc

        loader = BatchLoader(
            connection,
            table=self.config.table,
            columns=self.config.columns,
            batch_size=self.config.batch_size,
            placeholder=self.backend.placeholder,
            logger=self.logger,
            run_id=self.run_id,
        )
        self.summary.load = loader.report
        self._event("loading started", stage="load", event="STAGE_START", status="ok")
        ended = False
        try:
            while True:
                item = points.get()
                if item is _END_OF_STREAM:
                    ended = True
                    break
                if self.cancel_event.is_set():
                    loader.cancel()
                loader.add(item)
            if self.cancel_event.is_set():
                loader.cancel()
            loader.flush()
        except BaseException:
            self.cancel_event.set()
            if not ended:
                self._discard_until_end(points)
            raise
        finally:
            connection.close()
        self._event(
            "loading finished",
            stage="load",
            event="STAGE_END",
            status="ok",
            rows_in=loader.report.submitted,
            rows_out=loader.report.committed,
        )
        return loader.report

    def _discard_until_end(self, points: queue.Queue) -> None:
        while points.get() is not _END_OF_STREAM:
            pass
