"""Namespace prefix removal for chunk fragments."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from prg_import.common.constants import NORMALISED_SUFFIX
from prg_import.common.errors import SourceIOError


def strip_namespaces(content: str, replacements: Iterable[tuple[str, str]]) -> str:
    for search, replace in replacements:
        content = content.replace(search, replace)
    return content


def normalise_fragment(path: Path, replacements: Iterable[tuple[str, str]]) -> Path:
    target = path.with_name(path.name + NORMALISED_SUFFIX)
    try:
        content = path.read_text(encoding="utf-8")
        target.write_text(strip_namespaces(content, replacements), encoding="utf-8")
    except OSError as exc:
        raise SourceIOError(f"Error normalising fragment: [{path}]") from exc
    return target
