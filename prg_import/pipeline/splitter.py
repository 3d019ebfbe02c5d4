"""Streaming splitter that cuts a record-per-block document into bounded fragments.

Record boundaries are detected line by line: an opening tag and a closing
tag must each start a (whitespace-trimmed) line. This holds for the PRG GML
exports and is not a general XML splitting strategy.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator

from prg_import.common.constants import CHUNK_SUFFIX
from prg_import.common.errors import FormatError, SourceIOError
from prg_import.common.logging import log_event
from prg_import.common.models import Chunk, ChunkFragment

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8" ?>'
FRAGMENT_ROOT = "root"


def iter_chunks(lines: Iterable[str], tag_name: str, chunk_size: int, *, source_name: str = "<stream>") -> Iterator[Chunk]:
    """Yield chunks of at most ``chunk_size`` complete records, in input order.

    Text outside records is dropped. Raises FormatError if the stream ends
    inside a record, a record opens inside another, or a closing tag has no
    open record.
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be positive")

    open_prefix = f"<{tag_name}"
    close_prefix = f"</{tag_name}>"

    records: list[tuple[str, ...]] = []
    current: list[str] = []
    inside = False
    record_count = 0
    chunk_index = 0
    opened_at = 0
    line_no = 0

    for line_no, raw_line in enumerate(lines, start=1):
        line = raw_line.strip()
        if _starts_tag(line, open_prefix):
            if inside:
                raise FormatError(
                    f"Nested <{tag_name}> record in {source_name}: opened at line {opened_at}, "
                    f"new record starts at line {line_no} before it was closed"
                )
            inside = True
            opened_at = line_no
        elif not inside and line.startswith(close_prefix):
            raise FormatError(f"Stray </{tag_name}> in {source_name} at line {line_no} with no open record")
        if inside:
            current.append(line)
            if line.startswith(close_prefix):
                inside = False
                records.append(tuple(current))
                current = []
                record_count += 1
                if record_count % chunk_size == 0:
                    chunk_index += 1
                    yield Chunk(index=chunk_index, records=tuple(records))
                    records = []

    if inside:
        raise FormatError(
            f"Unterminated <{tag_name}> record in {source_name}: opened at line {opened_at}, "
            f"stream ended at line {line_no}"
        )
    if records:
        yield Chunk(index=chunk_index + 1, records=tuple(records))


def _starts_tag(line: str, open_prefix: str) -> bool:
    # "<tag" must not match "<tagOther".
    if not line.startswith(open_prefix):
        return False
    rest = line[len(open_prefix):]
    return rest == "" or rest[0] in " \t>/"


def render_chunk(chunk: Chunk) -> str:
    return f"{XML_DECLARATION}\n<{FRAGMENT_ROOT}>" + "\n".join(chunk.lines()) + f"</{FRAGMENT_ROOT}>"


def fragment_path(workdir: Path, source_name: str, chunk_index: int) -> Path:
    return workdir / f"chunk{chunk_index}-{source_name}{CHUNK_SUFFIX}"


def _decoded_chunks(handle, tag_name: str, chunk_size: int, source_name: str) -> Iterator[Chunk]:
    try:
        yield from iter_chunks(handle, tag_name, chunk_size, source_name=source_name)
    except UnicodeDecodeError as exc:
        raise FormatError(f"{source_name} is not valid UTF-8: {exc}") from exc


def split_file_into_chunks(
    source_path: Path,
    tag_name: str,
    chunk_size: int,
    workdir: Path,
    *,
    logger: logging.Logger | None = None,
    run_id: str | None = None,
) -> list[ChunkFragment]:
    """Split one source document into fragment files inside ``workdir``."""
    fragments: list[ChunkFragment] = []
    records_seen = 0
    try:
        handle = source_path.open("r", encoding="utf-8")
    except OSError as exc:
        raise SourceIOError(f"Error opening file: [{source_path}]") from exc

    with handle:
        for chunk in _decoded_chunks(handle, tag_name, chunk_size, source_path.name):
            target = fragment_path(workdir, source_path.name, chunk.index)
            try:
                target.write_text(render_chunk(chunk), encoding="utf-8")
            except OSError as exc:
                raise SourceIOError(f"Error writing fragment: [{target}]") from exc
            records_seen += chunk.record_count
            fragments.append(
                ChunkFragment(
                    source_file=source_path.name,
                    index=chunk.index,
                    record_count=chunk.record_count,
                    path=target,
                )
            )
            if logger is not None:
                log_event(
                    logger,
                    f"processed {records_seen} tags",
                    run_id=run_id,
                    stage="split",
                    source_file=source_path.name,
                    chunk=chunk.index,
                    event="CHUNK_WRITTEN",
                    status="ok",
                    rows_out=chunk.record_count,
                )
    return fragments
