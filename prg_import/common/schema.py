"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

import re

from prg_import.common.errors import ConfigError

SQL_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,63}$")
TABLE_COLUMN_COUNT = 6


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_positive_int(value, ctx: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"{ctx} must be a positive integer, got {value!r}")


def _assert_identifier(value, ctx: str) -> None:
    if not isinstance(value, str) or not SQL_IDENTIFIER_RE.match(value):
        raise ConfigError(f"{ctx} is not a valid SQL identifier: {value!r}")


def validate_importer_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    top_required = {
        "splitting",
        "normalise",
        "extraction",
        "crs",
        "validation",
        "loading",
        "database",
        "concurrency",
    }
    _assert_required_keys(cfg, top_required, "importer config")
    _assert_no_unknown_keys(cfg, top_required, "importer config", allow_unknown)

    _assert_required_keys(cfg["splitting"], {"record_tag", "chunk_size", "input_suffix"}, "splitting")
    _assert_positive_int(cfg["splitting"]["chunk_size"], "splitting.chunk_size")
    if not cfg["splitting"]["record_tag"]:
        raise ConfigError("splitting.record_tag must not be empty")

    _assert_required_keys(cfg["normalise"], {"replacements"}, "normalise")
    replacements = cfg["normalise"]["replacements"]
    if not isinstance(replacements, list):
        raise ConfigError("normalise.replacements must be a list of [search, replace] pairs")
    for idx, pair in enumerate(replacements):
        if not isinstance(pair, list) or len(pair) != 2 or not pair[0]:
            raise ConfigError(f"normalise.replacements[{idx}] must be a [search, replace] pair")

    _assert_required_keys(cfg["extraction"], {"record_element", "locality_admin_level"}, "extraction")
    level = cfg["extraction"]["locality_admin_level"]
    if isinstance(level, bool) or not isinstance(level, int) or level < 0:
        raise ConfigError(f"extraction.locality_admin_level must be a non-negative integer, got {level!r}")

    _assert_required_keys(cfg["crs"], {"source", "target"}, "crs")

    _assert_required_keys(cfg["validation"], {"enforce_bbox"}, "validation")
    if cfg["validation"]["enforce_bbox"]:
        _assert_required_keys(cfg["validation"], {"bbox_wgs84"}, "validation")
    if "bbox_wgs84" in cfg["validation"]:
        _assert_required_keys(
            cfg["validation"]["bbox_wgs84"],
            {"min_lat", "max_lat", "min_lon", "max_lon"},
            "validation.bbox_wgs84",
        )

    _assert_required_keys(cfg["loading"], {"batch_size", "table", "columns"}, "loading")
    _assert_positive_int(cfg["loading"]["batch_size"], "loading.batch_size")
    _assert_identifier(cfg["loading"]["table"], "loading.table")
    columns = cfg["loading"]["columns"]
    if not isinstance(columns, list) or len(columns) != TABLE_COLUMN_COUNT:
        raise ConfigError(f"loading.columns must list exactly {TABLE_COLUMN_COUNT} column names")
    for idx, column in enumerate(columns):
        _assert_identifier(column, f"loading.columns[{idx}]")
    dupes = {name for name in columns if columns.count(name) > 1}
    if dupes:
        raise ConfigError(f"Duplicate table columns: {', '.join(sorted(dupes))}")

    _assert_required_keys(cfg["database"], {"port", "charset", "collation", "connect_attempts"}, "database")
    _assert_positive_int(cfg["database"]["connect_attempts"], "database.connect_attempts")

    _assert_required_keys(cfg["concurrency"], {"workers", "queue_size"}, "concurrency")
    _assert_positive_int(cfg["concurrency"]["workers"], "concurrency.workers")
    _assert_positive_int(cfg["concurrency"]["queue_size"], "concurrency.queue_size")

    return cfg
