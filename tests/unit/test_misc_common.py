import json
import logging
from datetime import datetime
from pathlib import Path

import pytest

from prg_import.common.errors import CleanupError, SourceIOError
from prg_import.common.fs import list_files_with_suffix, scoped_workdir
from prg_import.common.ids import generate_run_id
from prg_import.common.logging import JsonLineFormatter, build_logger
from prg_import.common.time_utils import workdir_timestamp

SUFFIXES = (".chunk", ".no_namespaced_xml")


def test_generate_run_id_prefix():
    assert generate_run_id().startswith("run-")


def test_workdir_timestamp_format():
    assert workdir_timestamp(datetime(2018, 11, 3, 9, 5, 7)) == "2018-11-03-09-05-07"


def test_list_files_with_suffix_skips_directories(tmp_path: Path):
    (tmp_path / "b.xml").write_text("", encoding="utf-8")
    (tmp_path / "a.xml").write_text("", encoding="utf-8")
    (tmp_path / "c.txt").write_text("", encoding="utf-8")
    (tmp_path / "dir.xml").mkdir()
    assert [path.name for path in list_files_with_suffix(tmp_path, ".xml")] == ["a.xml", "b.xml"]


def test_scoped_workdir_removes_artifacts(tmp_path: Path):
    with scoped_workdir(tmp_path, "tmp-x", SUFFIXES) as workdir:
        (workdir / "chunk1-a.xml.chunk").write_text("x", encoding="utf-8")
        (workdir / "chunk1-a.xml.chunk.no_namespaced_xml").write_text("x", encoding="utf-8")
    assert not workdir.exists()


def test_scoped_workdir_removes_directory_when_body_fails(tmp_path: Path):
    with pytest.raises(RuntimeError):
        with scoped_workdir(tmp_path, "tmp-x", SUFFIXES) as workdir:
            (workdir / "chunk1-a.xml.chunk").write_text("x", encoding="utf-8")
            raise RuntimeError("boom")
    assert not (tmp_path / "tmp-x").exists()


def test_scoped_workdir_leftover_artifact_raises_cleanup_error(tmp_path: Path):
    with pytest.raises(CleanupError):
        with scoped_workdir(tmp_path, "tmp-x", SUFFIXES) as workdir:
            (workdir / "unexpected.txt").write_text("x", encoding="utf-8")


def test_scoped_workdir_existing_directory_raises_io_error(tmp_path: Path):
    (tmp_path / "tmp-x").mkdir()
    with pytest.raises(SourceIOError):
        with scoped_workdir(tmp_path, "tmp-x", SUFFIXES):
            pass


def test_json_formatter_emits_stable_fields():
    record = logging.LogRecord("prg", logging.INFO, __file__, 1, "chunk imported", None, None)
    record.chunk = 3
    record.event = "CHUNK_DONE"

    payload = json.loads(JsonLineFormatter().format(record))

    assert payload["message"] == "chunk imported"
    assert payload["chunk"] == 3
    assert payload["event"] == "CHUNK_DONE"
    assert payload["batch"] is None


def test_build_logger_writes_jsonl_file(tmp_path: Path):
    logger = build_logger("run-test", log_dir=tmp_path, level="DEBUG")
    logger.info("hello", extra={"stage": "split"})
    for handler in logger.handlers:
        handler.flush()

    line = (tmp_path / "run-test.log.jsonl").read_text(encoding="utf-8").strip()
    assert json.loads(line)["stage"] == "split"
