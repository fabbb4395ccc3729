from __future__ import annotations

from layers.loaders import areas_from_geojson
from layers.names import UNNAMED_AREA, resolve_area_name
from regions.registry import clear_registry_cache, get_region, load_region_areas


def test_halifax_region_config():
    cfg = get_region("halifax")
    assert cfg.timezoneOffset == "-04:00"
    assert [p.name for p in cfg.presets] == [
        "NSCC IT Campus",
        "Dalhousie University",
        "Saint Mary's University",
    ]


def test_unknown_region_falls_back_to_default():
    assert get_region("atlantis").id == "halifax"
    assert get_region(None).id == "halifax"


def test_region_areas_load_once_with_name_keys():
    areas = load_region_areas("halifax")
    assert len(areas) == 7
    assert areas.name_keys[0] == "GSA_NAME"
    assert load_region_areas("halifax") is areas
    multi = [a for a in areas.features if a.geometry["type"] == "MultiPolygon"]
    assert [resolve_area_name(a.props) for a in multi] == ["Eastern Passage"]


def test_areas_from_geojson_skips_non_polygons():
    data = {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "properties": {"NAME": "P"}, "geometry": {"type": "Point", "coordinates": [0, 0]}},
            {"type": "Feature", "properties": {"NAME": "Empty"}, "geometry": {"type": "Polygon", "coordinates": []}},
            {"type": "Feature", "properties": {"NAME": "A"}, "geometry": {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 0]]]}},
            None,
        ],
    }
    areas = areas_from_geojson(data)
    assert [a.id for a in areas] == ["area-2"]
    assert areas_from_geojson(["nope"]) == []


def test_resolve_area_name_priority():
    assert resolve_area_name({"name": "b", "GSA_NAME": " A "}) == "A"
    assert resolve_area_name({"COMMUNITY": "", "label": "L"}) == "L"
    assert resolve_area_name({"NAME": 12}) == UNNAMED_AREA
    assert resolve_area_name(None) == UNNAMED_AREA
    assert resolve_area_name({"x": "y"}, ["x"]) == "y"


def test_unknown_preferred_region_falls_back_to_first_found(monkeypatch):
    monkeypatch.setenv("CATCHMENT_REGION", "atlantis")
    assert get_region("nowhere").id == "halifax"


def test_clear_registry_cache_reloads_areas():
    first = load_region_areas("halifax")
    clear_registry_cache()
    again = load_region_areas("halifax")
    assert again is not first
    assert len(again) == len(first)
