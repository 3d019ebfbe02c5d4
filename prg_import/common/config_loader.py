"""Configuration loading and run configuration assembly."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from prg_import.common.errors import ConfigError
from prg_import.common.fs import read_yaml
from prg_import.common.models import DatabaseTarget, RunConfig
from prg_import.common.schema import validate_importer_config

CONFIG_FILENAME = "importer.yml"


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    if overlay is None:
        return base
    return _deep_merge(base, overlay)


def load_importer_config(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> dict:
    overlay_path = None
    if overlay_config_dir is not None:
        overlay_path = overlay_config_dir / CONFIG_FILENAME
    cfg = _load_yaml_with_overlay(config_dir / CONFIG_FILENAME, overlay_path)
    return validate_importer_config(cfg, allow_unknown=allow_unknown)


def build_run_config(
    cfg: dict,
    *,
    source_dir: Path,
    host: str,
    username: str,
    password: str,
    schema: str,
) -> RunConfig:
    database_cfg = cfg["database"]
    validation_cfg = cfg["validation"]
    bbox = validation_cfg.get("bbox_wgs84")
    return RunConfig(
        source_dir=source_dir,
        database=DatabaseTarget(
            host=host,
            username=username,
            password=password,
            schema=schema,
            port=int(database_cfg["port"]),
            charset=database_cfg["charset"],
            collation=database_cfg["collation"],
            connect_attempts=int(database_cfg["connect_attempts"]),
        ),
        chunk_size=cfg["splitting"]["chunk_size"],
        batch_size=cfg["loading"]["batch_size"],
        record_tag=cfg["splitting"]["record_tag"],
        input_suffix=cfg["splitting"]["input_suffix"],
        replacements=tuple((search, replace or "") for search, replace in cfg["normalise"]["replacements"]),
        record_element=cfg["extraction"]["record_element"],
        locality_admin_level=cfg["extraction"]["locality_admin_level"],
        source_crs=cfg["crs"]["source"],
        target_crs=cfg["crs"]["target"],
        bbox_wgs84={key: float(value) for key, value in bbox.items()} if bbox else None,
        enforce_bbox=bool(validation_cfg["enforce_bbox"]),
        table=cfg["loading"]["table"],
        columns=tuple(cfg["loading"]["columns"]),
        workers=cfg["concurrency"]["workers"],
        queue_size=cfg["concurrency"]["queue_size"],
    )
