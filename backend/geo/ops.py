from __future__ import annotations

import math
from typing import Any, Iterable, Mapping

from shapely.geometry import GeometryCollection, MultiPolygon, Point, Polygon, mapping, shape
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

from geo.aoi import BBox

# Deepest legit GeoJSON nesting is FeatureCollection -> Feature -> MultiPolygon
# coordinates (4 levels of arrays). Anything much deeper is garbage.
_MAX_WALK_DEPTH = 32


def bounding_box(geometry: Any) -> BBox | None:
    """
    Bounding box of any GeoJSON-ish input (geometry, Feature, FeatureCollection,
    bare coordinate arrays) or a shapely geometry.

    Returns None when no finite (lon, lat) pair was found. Never raises: malformed
    input degrades to None so callers can simply skip it.
    """
    if isinstance(geometry, BaseGeometry):
        try:
            if geometry.is_empty:
                return None
            b = BBox(*(float(v) for v in geometry.bounds))
        except Exception:
            return None
        return b if b.is_valid() else None

    acc = [math.inf, math.inf, -math.inf, -math.inf]
    try:
        _walk(geometry, acc, 0)
    except Exception:
        return None

    b = BBox(min_lon=acc[0], min_lat=acc[1], max_lon=acc[2], max_lat=acc[3])
    return b if b.is_valid() else None


def boxes_overlap(a: BBox | None, b: BBox | None) -> bool:
    if a is None or b is None:
        return False
    return a.overlaps(b)


def to_shape(geometry: Any) -> BaseGeometry | None:
    """
    GeoJSON geometry (or Feature) -> shapely geometry, repaired with buffer(0)
    when invalid. None if it can't be parsed.
    """
    if isinstance(geometry, BaseGeometry):
        return geometry
    if not isinstance(geometry, Mapping):
        return None
    if geometry.get("type") == "Feature":
        return to_shape(geometry.get("geometry"))
    try:
        geom = shape(geometry)
        if geom.is_empty:
            return geom
        if not geom.is_valid:
            geom = geom.buffer(0)
        return geom
    except Exception:
        return None


def union_fragments(catchment: Any) -> Polygon | MultiPolygon:
    """
    Dissolve every polygonal fragment of a catchment response into one region.

    Accepts a FeatureCollection, a Feature, a bare geometry, a list of any of these,
    or a shapely geometry. Empty or malformed input yields an empty Polygon.
    """
    parts = list(_polygonal_parts(catchment, 0))
    if not parts:
        return Polygon()
    try:
        u = unary_union(parts)
    except Exception:
        return Polygon()
    return _polygonal(u)


def centroid(geometry: Any) -> tuple[float, float] | None:
    """
    Area-weighted centroid as (lon, lat). None for empty/degenerate geometry.
    """
    geom = to_shape(geometry)
    if geom is None or geom.is_empty:
        return None
    c = geom.centroid
    if c.is_empty:
        return None
    x, y = float(c.x), float(c.y)
    if not (math.isfinite(x) and math.isfinite(y)):
        return None
    return x, y


def point_in_region(point: tuple[float, float], region: BaseGeometry | None) -> bool:
    # covers() counts boundary points as inside; holes are excluded.
    if region is None:
        return False
    try:
        if region.is_empty:
            return False
        return bool(region.covers(Point(float(point[0]), float(point[1]))))
    except Exception:
        return False


def region_to_geojson(region: BaseGeometry | None) -> dict[str, Any]:
    """
    FeatureCollection with zero or one feature, ready for a map overlay source.
    """
    if region is None or region.is_empty:
        return {"type": "FeatureCollection", "features": []}
    return {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "properties": {}, "geometry": mapping(region)}
        ],
    }


def _walk(node: Any, acc: list[float], depth: int) -> None:
    if depth > _MAX_WALK_DEPTH or node is None:
        return

    if isinstance(node, Mapping):
        gtype = node.get("type")
        if gtype == "FeatureCollection":
            for f in node.get("features") or []:
                _walk(f, acc, depth + 1)
        elif gtype == "Feature":
            _walk(node.get("geometry"), acc, depth + 1)
        elif gtype == "GeometryCollection":
            for g in node.get("geometries") or []:
                _walk(g, acc, depth + 1)
        else:
            _walk(node.get("coordinates"), acc, depth + 1)
        return

    if not isinstance(node, (list, tuple)):
        return

    if len(node) >= 2 and _is_number(node[0]) and _is_number(node[1]):
        lon, lat = float(node[0]), float(node[1])
        if math.isfinite(lon) and math.isfinite(lat):
            acc[0] = min(acc[0], lon)
            acc[1] = min(acc[1], lat)
            acc[2] = max(acc[2], lon)
            acc[3] = max(acc[3], lat)
        return

    for child in node:
        _walk(child, acc, depth + 1)


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _polygonal_parts(obj: Any, depth: int) -> Iterable[Polygon]:
    if depth > _MAX_WALK_DEPTH or obj is None:
        return

    if isinstance(obj, BaseGeometry):
        yield from _polygons_of(obj)
        return

    if isinstance(obj, (list, tuple)):
        for item in obj:
            yield from _polygonal_parts(item, depth + 1)
        return

    if not isinstance(obj, Mapping):
        return

    gtype = obj.get("type")
    if gtype == "FeatureCollection":
        for f in obj.get("features") or []:
            yield from _polygonal_parts(f, depth + 1)
    elif gtype == "Feature":
        yield from _polygonal_parts(obj.get("geometry"), depth + 1)
    elif gtype == "GeometryCollection":
        for g in obj.get("geometries") or []:
            yield from _polygonal_parts(g, depth + 1)
    elif gtype in ("Polygon", "MultiPolygon"):
        geom = to_shape(obj)
        if geom is not None:
            yield from _polygons_of(geom)


def _polygons_of(geom: BaseGeometry) -> Iterable[Polygon]:
    if geom.is_empty:
        return
    if isinstance(geom, Polygon):
        yield geom
    elif isinstance(geom, (MultiPolygon, GeometryCollection)):
        for g in geom.geoms:
            yield from _polygons_of(g)


def _polygonal(geom: BaseGeometry) -> Polygon | MultiPolygon:
    # unary_union may yield a GeometryCollection (e.g. polygons + slivers);
    # keep the polygonal parts only.
    if isinstance(geom, (Polygon, MultiPolygon)):
        return geom if not geom.is_empty else Polygon()
    polys = list(_polygons_of(geom))
    if not polys:
        return Polygon()
    if len(polys) == 1:
        return polys[0]
    return MultiPolygon(polys)
