"""National grid to geographic coordinate transformation."""

from __future__ import annotations

import math
import threading
from typing import Any

from pyproj import CRS, Transformer

from prg_import.common.constants import SOURCE_CRS, TARGET_CRS
from prg_import.common.errors import ValidationError
from prg_import.common.models import GeoCoord, PlanarCoord


def _safe_float(value: Any, axis: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Planar {axis} is not a number: {value!r}", reason="INVALID_NUMBER") from None
    if not math.isfinite(number):
        raise ValidationError(f"Planar {axis} is not finite: {value!r}", reason="INVALID_NUMBER")
    return number


def parse_planar(raw_x: Any, raw_y: Any) -> PlanarCoord:
    return PlanarCoord(x=_safe_float(raw_x, "x"), y=_safe_float(raw_y, "y"))


def _within_bbox(coord: GeoCoord, bbox: dict) -> bool:
    return (
        bbox["min_lat"] <= coord.lat <= bbox["max_lat"]
        and bbox["min_lon"] <= coord.lon <= bbox["max_lon"]
    )


class CoordinateTransformer:
    """Reprojects easting/northing pairs to latitude/longitude.

    Holds only the CRS definitions; each thread builds its own
    ``pyproj.Transformer`` on first use.
    """

    def __init__(
        self,
        source_crs: str = SOURCE_CRS,
        target_crs: str = TARGET_CRS,
        *,
        bbox_wgs84: dict | None = None,
        enforce_bbox: bool = False,
    ) -> None:
        self.source_crs = CRS.from_user_input(source_crs)
        self.target_crs = CRS.from_user_input(target_crs)
        self.bbox_wgs84 = bbox_wgs84
        self.enforce_bbox = enforce_bbox and bbox_wgs84 is not None
        self._local = threading.local()

    def _transformers(self) -> tuple[Transformer, Transformer]:
        pair = getattr(self._local, "pair", None)
        if pair is None:
            forward = Transformer.from_crs(self.source_crs, self.target_crs, always_xy=True)
            inverse = Transformer.from_crs(self.target_crs, self.source_crs, always_xy=True)
            pair = (forward, inverse)
            self._local.pair = pair
        return pair

    def to_geo(self, planar: PlanarCoord) -> GeoCoord:
        forward, _ = self._transformers()
        lon, lat = forward.transform(planar.x, planar.y)
        if not (math.isfinite(lat) and math.isfinite(lon)):
            raise ValidationError(f"Coordinate {planar} is outside the projection domain", reason="INVALID_NUMBER")
        coord = GeoCoord(lat=lat, lon=lon)
        if self.enforce_bbox and not _within_bbox(coord, self.bbox_wgs84):
            raise ValidationError(f"Coordinate {coord} is outside the configured bounds", reason="COORDINATE_OUTLIER")
        return coord

    def to_planar(self, coord: GeoCoord) -> PlanarCoord:
        _, inverse = self._transformers()
        x, y = inverse.transform(coord.lon, coord.lat)
        return PlanarCoord(x=x, y=y)

    def transform_raw(self, raw_x: Any, raw_y: Any) -> GeoCoord:
        return self.to_geo(parse_planar(raw_x, raw_y))
