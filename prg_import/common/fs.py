"""Filesystem helpers."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator

from prg_import.common.errors import CleanupError, SourceIOError


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def read_yaml(path: Path):
    import yaml

    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def write_json(path: Path, payload) -> None:
    ensure_dir(path.parent)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2, sort_keys=True)
        f.write("\n")


def read_json(path: Path):
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def list_files_with_suffix(directory: Path, suffix: str) -> list[Path]:
    """Regular files directly inside ``directory`` whose name ends with ``suffix``, sorted by name."""
    return sorted(
        (path for path in directory.iterdir() if path.is_file() and path.name.endswith(suffix)),
        key=lambda path: path.name,
    )


def remove_workdir(path: Path, suffixes: Iterable[str]) -> None:
    """Delete the importer's own artifacts and then the directory itself.

    Anything else left in the directory makes the final ``rmdir`` fail.
    """
    for suffix in suffixes:
        for artifact in list_files_with_suffix(path, suffix):
            try:
                artifact.unlink()
            except OSError as exc:
                raise CleanupError(f"File unlink unsuccessful: [{artifact}]") from exc
    try:
        path.rmdir()
    except OSError as exc:
        raise CleanupError(f"Temp dir could not be deleted: [{path}]") from exc


@contextmanager
def scoped_workdir(
    parent: Path,
    name: str,
    suffixes: Iterable[str],
    logger: logging.Logger | None = None,
) -> Iterator[Path]:
    """Create ``parent / name`` and remove it on every exit path."""
    path = parent / name
    suffixes = tuple(suffixes)
    try:
        path.mkdir()
    except OSError as exc:
        raise SourceIOError(f"Could not create a temporary directory: [{path}]") from exc
    try:
        yield path
    except BaseException:
        try:
            remove_workdir(path, suffixes)
        except CleanupError as cleanup_exc:
            # The body's exception wins; the leftover directory is only logged.
            if logger is not None:
                logger.error(str(cleanup_exc), extra={"event": "CLEANUP_FAIL", "error_code": cleanup_exc.error_code})
        raise
    remove_workdir(path, suffixes)
