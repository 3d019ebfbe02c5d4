import threading

import pytest
from pyproj import Transformer

from prg_import.common.errors import ValidationError
from prg_import.common.models import GeoCoord, PlanarCoord
from prg_import.pipeline.coordinates import CoordinateTransformer, parse_planar

# Easting, northing in EPSG:2180 near Szczecin, Gdańsk, Warsaw, Białystok, Wrocław, Kraków.
GRID_POINTS = [
    (214000.0, 612000.0),
    (474000.0, 727000.0),
    (637500.34, 486700.12),
    (763000.0, 593000.0),
    (358000.0, 359000.0),
    (566300.75, 244200.5),
]


def test_transform_matches_pyproj_directly():
    transformer = Transformer.from_crs("EPSG:2180", "EPSG:4326", always_xy=True)
    lon, lat = transformer.transform(637500.34, 486700.12)

    result = CoordinateTransformer().to_geo(PlanarCoord(x=637500.34, y=486700.12))

    assert result == GeoCoord(lat=lat, lon=lon)
    assert 52.0 < result.lat < 52.5
    assert 20.8 < result.lon < 21.3


@pytest.mark.parametrize("x,y", GRID_POINTS)
def test_output_within_poland_and_inverse_round_trips(x, y):
    transformer = CoordinateTransformer()

    geo = transformer.to_geo(PlanarCoord(x=x, y=y))
    back = transformer.to_planar(geo)

    assert 49.0 <= geo.lat <= 55.0
    assert 14.0 <= geo.lon <= 24.0
    assert abs(back.x - x) < 1e-4
    assert abs(back.y - y) < 1e-4


def test_transform_is_deterministic_across_threads():
    transformer = CoordinateTransformer()
    expected = [transformer.to_geo(PlanarCoord(x=x, y=y)) for x, y in GRID_POINTS]
    results: dict[int, list[GeoCoord]] = {}

    def work(slot: int) -> None:
        results[slot] = [transformer.to_geo(PlanarCoord(x=x, y=y)) for x, y in GRID_POINTS]

    threads = [threading.Thread(target=work, args=(slot,)) for slot in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert all(result == expected for result in results.values())


@pytest.mark.parametrize("raw_x,raw_y", [("", "1"), ("abc", "1"), ("1", "nan"), ("inf", "1"), (None, "1")])
def test_parse_planar_rejects_non_finite_values(raw_x, raw_y):
    with pytest.raises(ValidationError) as excinfo:
        parse_planar(raw_x, raw_y)
    assert excinfo.value.reason == "INVALID_NUMBER"


def test_transform_raw_parses_strings():
    geo = CoordinateTransformer().transform_raw("566300.75", "244200.5")
    assert 49.9 < geo.lat < 50.2
    assert 19.8 < geo.lon < 20.1


def test_bbox_enforcement_flags_outliers():
    bbox = {"min_lat": 49.0, "max_lat": 55.0, "min_lon": 14.0, "max_lon": 24.5}
    strict = CoordinateTransformer(bbox_wgs84=bbox, enforce_bbox=True)
    lenient = CoordinateTransformer(bbox_wgs84=bbox, enforce_bbox=False)
    far_west = PlanarCoord(x=-400000.0, y=500000.0)

    with pytest.raises(ValidationError) as excinfo:
        strict.to_geo(far_west)
    assert excinfo.value.reason == "COORDINATE_OUTLIER"
    assert lenient.to_geo(far_west).lon < 14.0
