"""Data models used across the pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class PlanarCoord:
    """Easting (x) and northing (y) in the national grid, metres."""

    x: float
    y: float


@dataclass(frozen=True)
class GeoCoord:
    lat: float
    lon: float


@dataclass(frozen=True)
class RawAddressFields:
    """Field values of one record as read from a fragment, before any conversion."""

    postal_code: str
    locality: str
    street: str
    house_number: str
    raw_x: str
    raw_y: str


@dataclass(frozen=True)
class AddressPoint:
    postal_code: str
    locality: str
    street: str
    house_number: str
    coord: GeoCoord

    def as_row(self) -> tuple[str, str, str, str, float, float]:
        return (
            self.postal_code,
            self.locality,
            self.street,
            self.house_number,
            self.coord.lat,
            self.coord.lon,
        )


@dataclass(frozen=True)
class Chunk:
    index: int
    records: tuple[tuple[str, ...], ...]

    @property
    def record_count(self) -> int:
        return len(self.records)

    def lines(self) -> list[str]:
        return [line for record in self.records for line in record]


@dataclass(frozen=True)
class ChunkFragment:
    """A chunk written to the temp directory."""

    source_file: str
    index: int
    record_count: int
    path: Path


@dataclass(frozen=True)
class DatabaseTarget:
    host: str
    username: str
    password: str = field(repr=False)
    schema: str
    port: int = 3306
    charset: str = "utf8mb4"
    collation: str = "utf8mb4_unicode_520_ci"
    connect_attempts: int = 3


@dataclass(frozen=True)
class RunConfig:
    source_dir: Path
    database: DatabaseTarget
    chunk_size: int
    batch_size: int
    record_tag: str
    input_suffix: str
    replacements: tuple[tuple[str, str], ...]
    record_element: str
    locality_admin_level: int
    source_crs: str
    target_crs: str
    bbox_wgs84: dict[str, float] | None
    enforce_bbox: bool
    table: str
    columns: tuple[str, ...]
    workers: int
    queue_size: int

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["source_dir"] = str(self.source_dir)
        payload["database"].pop("password", None)
        return payload
