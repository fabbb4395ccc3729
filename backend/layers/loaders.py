from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from layers.types import AreaFeature

logger = logging.getLogger(__name__)

_AREA_GEOMETRY_TYPES = {"Polygon", "MultiPolygon"}


def load_geojson_areas(path: Path) -> list[AreaFeature]:
    data = json.loads(path.read_text(encoding="utf-8"))
    areas = areas_from_geojson(data)
    logger.info("Loaded %d areas from %s", len(areas), path)
    return areas


def areas_from_geojson(data: Any) -> list[AreaFeature]:
    """
    FeatureCollection -> AreaFeatures.

    Unlike layer loading for rendering, MultiPolygons are kept whole: an area split
    into islands is still one area with one centroid.
    """
    if not isinstance(data, dict):
        return []
    features = data.get("features") or []

    out: list[AreaFeature] = []
    skipped = 0
    for i, feature in enumerate(features):
        geom = (feature or {}).get("geometry") or {}
        props = (feature or {}).get("properties") or {}
        if geom.get("type") not in _AREA_GEOMETRY_TYPES or not geom.get("coordinates"):
            skipped += 1
            continue

        fid = str((feature or {}).get("id") or props.get("id") or f"area-{i}")
        out.append(AreaFeature(id=fid, geometry=geom, props=dict(props)))

    if skipped:
        logger.debug("Skipped %d features without polygon geometry", skipped)
    return out
